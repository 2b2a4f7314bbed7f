"""Configuration loading utilities."""

import json
from pathlib import Path

from loguru import logger

from canvassync.config.schema import Config

CONFIG_FILENAME = ".canvassync.json"


def get_config_path(repo_root: Path | None = None) -> Path:
    """Get the configuration file path for a repository root."""
    return Path(repo_root or Path.cwd()) / CONFIG_FILENAME


def load_config(repo_root: Path | None = None, config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        repo_root: Repository root holding ``.canvassync.json``. Defaults to cwd.
        config_path: Explicit config file path. Overrides ``repo_root``.

    Returns:
        Loaded configuration object, or defaults when the file is missing or invalid.
    """
    path = config_path or get_config_path(repo_root)

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            data = _migrate_config(data)
            return Config.model_validate(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}. Using default configuration.")

    return Config()


def save_config(config: Config, repo_root: Path | None = None, config_path: Path | None = None) -> Path:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        repo_root: Repository root. Defaults to cwd.
        config_path: Explicit path to save to. Overrides ``repo_root``.

    Returns:
        Path the configuration was written to.
    """
    path = config_path or get_config_path(repo_root)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(by_alias=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

    logger.debug(f"Config saved: {path}")
    return path


def _migrate_config(data: dict) -> dict:
    """Migrate old config formats to current."""
    if not isinstance(data, dict):
        return data
    # layout.shapePrefix (single legacy prefix) → layout.legacyWidgetPrefixes
    layout = data.get("layout")
    if isinstance(layout, dict) and "shapePrefix" in layout and "legacyWidgetPrefixes" not in layout:
        layout["legacyWidgetPrefixes"] = [layout.pop("shapePrefix")]
    return data
