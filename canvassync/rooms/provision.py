"""Room and widget provisioning.

Creates new child rooms and widgets with a consistent initial file set, and
deletes rooms and widgets behind path safety checks. These are the
operations a user (or an editor integration) runs between pack and unpack
cycles.
"""

import json
import random
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from canvassync.config.schema import Config
from canvassync.models.records import (
    DOCUMENT_RECORD_ID,
    SHAPE_TYPE_LINK,
    TYPE_NAME_DOCUMENT,
    TYPE_NAME_PAGE,
    TYPE_NAME_SHAPE,
    TYPE_NAME_STORAGE,
)
from canvassync.models.snapshot import default_schema
from canvassync.sync.errors import (
    CanvasSyncError,
    MalformedJSONError,
    MissingSnapshotError,
    UnsafeDeletionError,
)
from canvassync.sync.tree import read_json, write_json
from canvassync.sync.unpacker import utc_timestamp
from canvassync.utils.ids import (
    generate_canvas_name,
    generate_page_id,
    generate_room_id,
    generate_shape_id,
    widget_dir_name,
)

INITIAL_CLOCK = 2
WIDGET_CONFIG_KEY = "__widget_config"


def random_position() -> Dict[str, float]:
    """A position within the visible area of a fresh canvas."""
    return {
        "x": random.random() * 1000 + 100,
        "y": random.random() * 800 + 100,
    }


@dataclass
class ChildRoom:
    """A room created by :meth:`RoomProvisioner.create_child_room`."""

    path: Path
    room_id: str
    canvas_name: str
    page_id: str
    link_shape_id: str
    parent_room_id: str


@dataclass
class NewWidget:
    """A widget created by :meth:`RoomProvisioner.create_widget`."""

    path: Path
    shape_id: str
    widget_id: str
    template_handle: str


class RoomProvisioner:
    """Creates and deletes rooms and widgets inside a canvas repository."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.layout = self.config.layout
        self.defaults = self.config.defaults

    def _page_id(self, room_path: Path) -> str:
        """First page id recorded in a room's metadata, or the default page id."""
        metadata_path = room_path / self.layout.metadata_file
        try:
            metadata = read_json(metadata_path)
            pages = metadata.get("pages") or []
            if pages and pages[0].get("id"):
                return pages[0]["id"]
        except (OSError, CanvasSyncError, AttributeError) as e:
            logger.warning(f"Could not read canvas metadata of {room_path.name}, using default page id: {e}")
        return self.defaults.page_id

    # ========================================================================
    # Rooms
    # ========================================================================

    def create_child_room(self, parent_room_path: Path) -> ChildRoom:
        """Create a new child room under ``parent_room_path`` and link it from the parent.

        Args:
            parent_room_path: Existing room directory

        Returns:
            The created room

        Raises:
            FileNotFoundError: if the parent room directory does not exist
            CanvasSyncError: if the parent has no metadata file
            MissingSnapshotError: if the parent has no snapshot file
        """
        parent_room_path = Path(parent_room_path)
        if not parent_room_path.is_dir():
            raise FileNotFoundError(f"Parent room directory does not exist: {parent_room_path}")
        if not (parent_room_path / self.layout.metadata_file).is_file():
            raise CanvasSyncError(f"Could not find parent canvas metadata in {parent_room_path}", parent_room_path)
        parent_state_path = parent_room_path / self.layout.snapshot_file
        if not parent_state_path.is_file():
            raise MissingSnapshotError(f"Parent {self.layout.snapshot_file} not found", parent_state_path)

        parent_page_id = self._page_id(parent_room_path)
        parent_room_id = parent_room_path.name
        parent_state = read_json(parent_state_path)
        if not isinstance(parent_state, dict):
            raise MalformedJSONError(f"Parent {self.layout.snapshot_file} is not a JSON object", parent_state_path)

        room_id = generate_room_id()
        room = ChildRoom(
            path=parent_room_path / room_id,
            room_id=room_id,
            canvas_name=generate_canvas_name(),
            page_id=generate_page_id(),
            link_shape_id=generate_shape_id(),
            parent_room_id=parent_room_id,
        )
        if room.path.exists():
            logger.warning(f"Directory {room.room_id} already exists, files will be overwritten")
        room.path.mkdir(parents=True, exist_ok=True)

        link_clock = (parent_state.get("clock") or 0) + 1
        position = random_position()

        write_json(room.path / self.layout.global_storage_file, {})
        write_json(room.path / self.layout.snapshot_file, self._initial_state(room))
        write_json(room.path / self.layout.link_info_file, {
            "parentCanvasId": parent_room_id,
            "linkShapeId": room.link_shape_id,
            "position": position,
            "size": {"w": self.defaults.link_width, "h": self.defaults.link_height},
            "label": room.canvas_name,
            "linkType": self.defaults.link_type,
            "rotation": 0,
            "opacity": 1,
            "isLocked": False,
            "meta": {},
            "parentId": parent_page_id,
            "index": self.defaults.shape_index,
            "lastChangedClock": link_clock,
        })
        write_json(room.path / self.layout.metadata_file, self._initial_metadata(room))
        logger.info(f"Created child room {room.room_id} ({room.canvas_name}) in {parent_room_id}")

        self._append_parent_link(parent_state_path, parent_state, room, parent_page_id, position)
        return room

    def _initial_state(self, room: ChildRoom) -> Dict[str, Any]:
        return {
            "clock": INITIAL_CLOCK,
            "documentClock": INITIAL_CLOCK,
            "tombstones": {},
            "tombstoneHistoryStartsAtClock": 1,
            "schema": default_schema(),
            "documents": [
                {
                    "state": {
                        "gridSize": self.defaults.grid_size,
                        "name": "",
                        "meta": {
                            "roomId": room.room_id,
                            "canvasMode": self.defaults.canvas_mode,
                            "canvasName": room.canvas_name,
                        },
                        "id": DOCUMENT_RECORD_ID,
                        "typeName": TYPE_NAME_DOCUMENT,
                    },
                    "lastChangedClock": INITIAL_CLOCK,
                },
                {
                    "state": {
                        "meta": {},
                        "id": room.page_id,
                        "name": self.defaults.page_name,
                        "index": self.defaults.page_index,
                        "typeName": TYPE_NAME_PAGE,
                    },
                    "lastChangedClock": 0,
                },
                {
                    "state": {
                        "widgets": {},
                        "global": {},
                        "id": self.defaults.storage_record_id,
                        "typeName": TYPE_NAME_STORAGE,
                    },
                    "lastChangedClock": 1,
                },
            ],
        }

    def _initial_metadata(self, room: ChildRoom) -> Dict[str, Any]:
        return {
            "canvas": {
                "roomId": room.room_id,
                "canvasMode": self.defaults.canvas_mode,
                "canvasName": room.canvas_name,
                "gridSize": self.defaults.grid_size,
            },
            "pages": [{
                "id": room.page_id,
                "name": self.defaults.page_name,
                "index": self.defaults.page_index,
                "meta": {},
                "lastChangedClock": 0,
            }],
            "canvasStorage": {"id": self.defaults.storage_record_id, "lastChangedClock": 1},
            "schema": default_schema(),
            "generatedAt": utc_timestamp(),
            "clock": INITIAL_CLOCK,
            "documentClock": INITIAL_CLOCK,
            "tombstones": {},
            "tombstoneHistoryStartsAtClock": 1,
        }

    def _append_parent_link(self, state_path: Path, state: Dict[str, Any], room: ChildRoom,
                            parent_page_id: str, position: Dict[str, float]) -> None:
        """Add a canvas-link shape for the new room to the parent's snapshot."""
        clock = state.get("clock") or 0
        state.setdefault("documents", []).append({
            "state": {
                "id": room.link_shape_id,
                "typeName": TYPE_NAME_SHAPE,
                "type": SHAPE_TYPE_LINK,
                "parentId": parent_page_id,
                "index": self.defaults.shape_index,
                "x": position["x"],
                "y": position["y"],
                "rotation": 0,
                "isLocked": False,
                "opacity": 1,
                "meta": {},
                "props": {
                    "w": self.defaults.link_width,
                    "h": self.defaults.link_height,
                    "targetCanvasId": room.room_id,
                    "label": room.canvas_name,
                    "linkType": self.defaults.link_type,
                },
            },
            "lastChangedClock": clock + 1,
        })
        state["clock"] = clock + 1
        state["documentClock"] = (state.get("documentClock") or 0) + 1
        write_json(state_path, state)
        logger.info(f"Updated parent {self.layout.snapshot_file} with canvas-link {room.link_shape_id}")

    def delete_room(self, room_path: Path) -> Path:
        """Delete a room directory and everything below it.

        The root room cannot be deleted: the path must contain at least two
        room directory segments.

        Raises:
            FileNotFoundError: if the directory does not exist
            UnsafeDeletionError: if the path is not a deletable room
        """
        room_path = Path(room_path)
        if not room_path.is_dir():
            raise FileNotFoundError(f"Room directory does not exist: {room_path}")
        if not self.layout.is_room_dir_name(room_path.name):
            raise UnsafeDeletionError(
                f"Directory does not appear to be a room directory "
                f"(should start with '{self.layout.room_prefix}'): {room_path.name}",
                room_path,
            )

        room_count = sum(1 for part in room_path.resolve().parts if self.layout.is_room_dir_name(part))
        if room_count < 2:
            raise UnsafeDeletionError(
                f"Cannot delete root room. Path must contain at least 2 '{self.layout.room_prefix}' "
                f"directories, found {room_count}: {room_path}",
                room_path,
            )

        shutil.rmtree(room_path)
        logger.info(f"Deleted room {room_path.name} ({room_count} room segments in path)")
        return room_path

    # ========================================================================
    # Widgets
    # ========================================================================

    def create_widget(self, room_path: Path, template_handle: str) -> NewWidget:
        """Create a widget directory in a room.

        The template output file is not created: it appears once the widget's
        template has been compiled, and the widget is not packed until then.

        Raises:
            FileNotFoundError: if the room directory does not exist
            ValueError: if ``template_handle`` is empty
        """
        room_path = Path(room_path)
        if not template_handle:
            raise ValueError("template_handle is required")
        if not room_path.is_dir():
            raise FileNotFoundError(f"Room directory does not exist: {room_path}")

        page_id = self._page_id(room_path)
        shape_id = generate_shape_id(url_safe=False)
        widget = NewWidget(
            path=room_path / widget_dir_name(shape_id, self.layout.widget_prefix),
            shape_id=shape_id,
            widget_id=f"{template_handle}_{int(time.time() * 1000)}",
            template_handle=template_handle,
        )
        if widget.path.exists():
            logger.warning(f"Directory {widget.path.name} already exists, files will be overwritten")
        widget.path.mkdir(parents=True, exist_ok=True)

        widget_config = {
            "roomId": room_path.name,
            "pageId": page_id,
            "shapeId": shape_id,
            "templateHandle": template_handle,
        }
        (widget.path / self.layout.template_source_file).write_bytes(b"")
        write_json(widget.path / self.layout.widget_storage_file, {WIDGET_CONFIG_KEY: json.dumps(widget_config)})
        write_json(widget.path / self.layout.properties_file, {
            "shapeId": shape_id,
            "widgetId": widget.widget_id,
            "templateHandle": template_handle,
            "position": random_position(),
            "size": {"w": self.defaults.widget_width, "h": self.defaults.widget_height},
            "rotation": self.defaults.rotation,
            "opacity": self.defaults.opacity,
            "isLocked": self.defaults.is_locked,
            "color": self.defaults.color,
            "zoomScale": self.defaults.zoom_scale,
            "meta": {"initializationState": "ready"},
            "parentId": page_id,
            "index": self.defaults.shape_index,
            "lastChangedClock": None,
        })
        logger.info(f"Created widget {widget.path.name} ({template_handle}) in {room_path.name}")
        return widget

    def delete_widget(self, widget_path: Path) -> Path:
        """Delete a widget directory.

        Raises:
            FileNotFoundError: if the directory does not exist
            UnsafeDeletionError: if the directory is not a widget directory
        """
        widget_path = Path(widget_path)
        if not widget_path.is_dir():
            raise FileNotFoundError(f"Widget directory does not exist: {widget_path}")
        if not self.layout.is_widget_dir_name(widget_path.name):
            raise UnsafeDeletionError(
                f"Directory does not appear to be a widget directory "
                f"(should start with '{self.layout.widget_prefix}'): {widget_path.name}",
                widget_path,
            )

        expected = (self.layout.properties_file, self.layout.widget_storage_file, self.layout.template_source_file)
        if not any((widget_path / name).exists() for name in expected):
            logger.warning(f"Directory {widget_path.name} doesn't contain expected widget files, deleting anyway")

        shutil.rmtree(widget_path)
        logger.info(f"Deleted widget {widget_path.name} from {widget_path.parent.name}")
        return widget_path
