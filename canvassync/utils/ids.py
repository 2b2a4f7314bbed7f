"""Helpers for generating and converting room, page and shape identifiers."""

from __future__ import annotations

import secrets
import uuid

SHAPE_PREFIX = "shape:"
PAGE_PREFIX = "page:"
ROOM_PREFIX = "room-"

_ID_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
_WIDGET_ID_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"

CANVAS_NAME_PREFIXES = ["Canvas", "Workspace", "Board", "Space", "Room", "Area", "Zone"]
CANVAS_NAME_SUFFIXES = ["Alpha", "Beta", "Gamma", "Delta", "Prime", "Nova", "Core", "Hub", "Lab", "Studio"]


def _random_chars(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_room_id() -> str:
    """Generate a room id like ``room-1a7b548b-0c59-4a58-9753-e824eb99a2c9``."""
    return f"{ROOM_PREFIX}{uuid.uuid4()}"


def generate_shape_id(url_safe: bool = True) -> str:
    """Generate a 16-character shape id like ``shape:Y59wm6acnQvwpBlp``.

    Widget ids are alphanumeric only so the derived directory name never
    starts with a dash; link ids may use ``-`` and ``_``.
    """
    alphabet = _ID_CHARS if url_safe else _WIDGET_ID_CHARS
    return f"{SHAPE_PREFIX}{_random_chars(alphabet, 16)}"


def generate_page_id() -> str:
    """Generate a 17-character page id like ``page:BjLIELOAtCOisIXsUlL_n``."""
    return f"{PAGE_PREFIX}{_random_chars(_ID_CHARS, 17)}"


def generate_canvas_name() -> str:
    """Generate a display name like ``Board-Nova``."""
    return f"{secrets.choice(CANVAS_NAME_PREFIXES)}-{secrets.choice(CANVAS_NAME_SUFFIXES)}"


def strip_shape_prefix(shape_id: str) -> str:
    """``shape:foo`` -> ``foo``. Ids without the prefix are returned unchanged."""
    if shape_id.startswith(SHAPE_PREFIX):
        return shape_id[len(SHAPE_PREFIX):]
    return shape_id


def widget_dir_name(shape_id: str, prefix: str = "widget-") -> str:
    """Directory name for a widget shape: ``shape:foo`` -> ``widget-foo``."""
    return f"{prefix}{strip_shape_prefix(shape_id)}"


def shape_id_from_dir_name(dir_name: str, prefixes: list[str] | tuple[str, ...] = ("widget-", "shape-")) -> str:
    """Inverse of :func:`widget_dir_name`: ``widget-foo`` -> ``shape:foo``."""
    for prefix in prefixes:
        if dir_name.startswith(prefix):
            return f"{SHAPE_PREFIX}{dir_name[len(prefix):]}"
    return f"{SHAPE_PREFIX}{dir_name}"
