"""Small helpers for reading loosely-typed JSON values."""

from typing import Any, Dict


def coalesce(value: Any, default: Any) -> Any:
    """``default`` only when ``value`` is None. Zero and empty values are kept."""
    return default if value is None else value


def as_dict(value: Any) -> Dict[str, Any]:
    """``value`` if it is a JSON object, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}
