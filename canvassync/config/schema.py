"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LayoutConfig(Base):
    """File and directory names of the on-disk room layout."""
    snapshot_file: str = "canvas-state.json"
    metadata_file: str = "canvas-metadata.json"
    global_storage_file: str = "global-storage.json"
    link_info_file: str = "canvas-link-info.json"

    room_prefix: str = "room-"
    widget_prefix: str = "widget-"
    # Older trees named widget folders after the full shape id ("shape-<id>")
    legacy_widget_prefixes: list[str] = Field(default_factory=lambda: ["shape-"])

    properties_file: str = "properties.json"
    template_source_file: str = "template.jsx"
    template_output_file: str = "template.html"
    widget_storage_file: str = "storage.json"

    @property
    def widget_files(self) -> tuple[str, str, str, str]:
        """The four files a widget directory must hold to be packed."""
        return (
            self.properties_file,
            self.template_source_file,
            self.template_output_file,
            self.widget_storage_file,
        )

    def is_room_dir_name(self, name: str) -> bool:
        return name.startswith(self.room_prefix)

    def is_widget_dir_name(self, name: str) -> bool:
        if name.startswith(self.widget_prefix):
            return True
        return any(name.startswith(prefix) for prefix in self.legacy_widget_prefixes)


class DefaultsConfig(Base):
    """Values filled in for fields a snapshot or a properties file omits."""
    grid_size: int = 10
    canvas_mode: str = "freeform"
    canvas_name: str = "Canvas"
    unknown_room_id: str = "room-unknown"
    page_id: str = "page:page"
    page_name: str = "Page 1"
    page_index: str = "a1"
    shape_index: str = "a1"
    storage_record_id: str = "canvas_storage:main"

    widget_width: float = 300
    widget_height: float = 200
    rotation: float = 0
    opacity: float = 1
    is_locked: bool = False
    color: str = "black"
    zoom_scale: float = 1
    template_handle: str = "notepad-react-test"

    link_width: float = 200
    link_height: float = 100
    link_label: str = "Subcanvas Link"
    link_type: str = "realfile"

    tombstone_history_starts_at_clock: int = 1


class LoggingConfig(Base):
    """Logging sinks."""
    level: str = "INFO"
    log_file: str = ""  # Empty: console only


class Config(BaseSettings):
    """Root configuration for canvassync."""
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def log_path(self) -> Path | None:
        """Get expanded log file path, if file logging is enabled."""
        if not self.logging.log_file:
            return None
        return Path(self.logging.log_file).expanduser()

    model_config = ConfigDict(
        env_prefix="CANVASSYNC_",
        env_nested_delimiter="__"
    )
