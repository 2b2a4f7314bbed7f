"""Utility functions for canvassync."""

from canvassync.utils.ids import (
    generate_canvas_name,
    generate_page_id,
    generate_room_id,
    generate_shape_id,
    shape_id_from_dir_name,
    strip_shape_prefix,
    widget_dir_name,
)

__all__ = [
    "generate_canvas_name",
    "generate_page_id",
    "generate_room_id",
    "generate_shape_id",
    "shape_id_from_dir_name",
    "strip_shape_prefix",
    "widget_dir_name",
]
