"""Shared fixtures: snapshot builders and on-disk room trees."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from canvassync.config.schema import Config


def write_json_file(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def read_json_file(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def tree_bytes(root: Path, exclude: tuple = ()) -> Dict[str, bytes]:
    """Every file under ``root`` keyed by relative path."""
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file() and p.name not in exclude
    }


class SnapshotBuilder:
    """Builds ``canvas-state.json`` contents for tests."""

    def __init__(self, room_id: str, clock: int = 10, canvas_name: str = "Test Canvas"):
        self.room_id = room_id
        self.clock = clock
        self.canvas_name = canvas_name
        self.shapes: List[Dict[str, Any]] = []
        self.widget_storage: Dict[str, Any] = {}
        self.global_storage: Dict[str, Any] = {}

    def widget(self, shape_id: str, x: float = 10, y: float = 20, w: float = 300, h: float = 200,
               clock: Optional[int] = None, storage: Optional[Dict[str, Any]] = None,
               jsx: str = "export default () => <div/>", html: str = "<div></div>",
               index: str = "a1") -> "SnapshotBuilder":
        self.shapes.append({
            "state": {
                "id": shape_id,
                "typeName": "shape",
                "type": "miyagi-widget",
                "parentId": "page:page",
                "index": index,
                "x": x,
                "y": y,
                "rotation": 0,
                "isLocked": False,
                "opacity": 1,
                "meta": {"initializationState": "ready"},
                "props": {
                    "w": w,
                    "h": h,
                    "widgetId": f"widget_{shape_id}",
                    "templateHandle": "notepad",
                    "htmlContent": html,
                    "jsxContent": jsx,
                    "color": "black",
                    "zoomScale": 1,
                },
            },
            "lastChangedClock": clock if clock is not None else len(self.shapes) + 3,
        })
        if storage is not None:
            self.widget_storage[shape_id] = storage
        return self

    def link(self, shape_id: str, target: Optional[str], clock: Optional[int] = None,
             label: str = "Child", index: str = "a2") -> "SnapshotBuilder":
        props = {"w": 200, "h": 100, "label": label, "linkType": "realfile"}
        if target is not None:
            props["targetCanvasId"] = target
        self.shapes.append({
            "state": {
                "id": shape_id,
                "typeName": "shape",
                "type": "canvas-link",
                "parentId": "page:page",
                "index": index,
                "x": 50,
                "y": 60,
                "rotation": 0,
                "isLocked": False,
                "opacity": 1,
                "meta": {},
                "props": props,
            },
            "lastChangedClock": clock if clock is not None else len(self.shapes) + 3,
        })
        return self

    def raw(self, state: Dict[str, Any], clock: Optional[int] = 1) -> "SnapshotBuilder":
        self.shapes.append({"state": state, "lastChangedClock": clock})
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clock": self.clock,
            "documentClock": self.clock,
            "tombstones": {},
            "tombstoneHistoryStartsAtClock": 1,
            "schema": {"schemaVersion": 2, "sequences": {"com.tldraw.store": 5}},
            "documents": [
                {
                    "state": {
                        "gridSize": 10,
                        "name": "",
                        "meta": {
                            "roomId": self.room_id,
                            "canvasMode": "freeform",
                            "canvasName": self.canvas_name,
                        },
                        "id": "document:document",
                        "typeName": "document",
                    },
                    "lastChangedClock": 2,
                },
                {
                    "state": {
                        "meta": {},
                        "id": "page:page",
                        "name": "Page 1",
                        "index": "a1",
                        "typeName": "page",
                    },
                    "lastChangedClock": 0,
                },
                {
                    "state": {
                        "widgets": self.widget_storage,
                        "global": self.global_storage,
                        "id": "canvas_storage:main",
                        "typeName": "canvas_storage",
                    },
                    "lastChangedClock": 5,
                },
                *self.shapes,
            ],
        }


@pytest.fixture
def config():
    """Default configuration."""
    return Config()


@pytest.fixture
def repo(tmp_path):
    """An empty repository root."""
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def snapshot():
    """Factory for snapshot builders."""
    return SnapshotBuilder


@pytest.fixture
def place_room():
    """Create ``parent/<room_id>`` holding the builder's snapshot."""
    def _place(parent: Path, builder: Optional[SnapshotBuilder] = None, room_id: Optional[str] = None) -> Path:
        room_path = parent / (room_id or builder.room_id)
        room_path.mkdir(parents=True, exist_ok=True)
        if builder is not None:
            write_json_file(room_path / "canvas-state.json", builder.to_dict())
        return room_path
    return _place
