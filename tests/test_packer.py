"""Tests for packing room directories into snapshots."""

import pytest

from canvassync.models.snapshot import DEFAULT_SCHEMA_SEQUENCES
from canvassync.sync.errors import IncompleteWidgetError, MalformedJSONError
from canvassync.sync.packer import Packer
from conftest import read_json_file, write_json_file


def make_widget(room, name, props=None, jsx="<A/>", html="<a></a>", storage=None, skip=()):
    widget_dir = room / name
    widget_dir.mkdir(parents=True)
    files = {
        "properties.json": lambda p: write_json_file(p, props if props is not None else {}),
        "template.jsx": lambda p: p.write_bytes(jsx.encode("utf-8")),
        "template.html": lambda p: p.write_bytes(html.encode("utf-8")),
        "storage.json": lambda p: write_json_file(p, storage if storage is not None else {}),
    }
    for filename, write in files.items():
        if filename not in skip:
            write(widget_dir / filename)
    return widget_dir


def make_child(room, name, info):
    child = room / name
    child.mkdir(parents=True)
    write_json_file(child / "canvas-link-info.json", info)
    return child


@pytest.fixture
def packer(repo, config):
    return Packer(repo, config)


@pytest.fixture
def room(repo):
    room = repo / "room-A"
    room.mkdir()
    write_json_file(room / "canvas-metadata.json", {})
    return room


def states(snapshot):
    return [record.state for record in snapshot.documents]


def clocks(snapshot):
    return [record.last_changed_clock for record in snapshot.documents]


class TestPackRoom:
    """Test Packer.pack_room."""

    def test_fallback_clocks_and_order(self, room, packer):
        """Missing clocks are derived from record positions."""
        make_widget(room, "widget-w1", props={"shapeId": "shape:w1", "widgetId": "w", "templateHandle": "t"})
        make_child(room, "room-B", {"parentCanvasId": "room-A", "linkShapeId": "shape:l1"})

        snapshot = packer.pack_room(room).snapshot

        assert [s["typeName"] for s in states(snapshot)] == ["document", "page", "canvas_storage", "shape", "shape"]
        assert [s.get("type") for s in states(snapshot)[3:]] == ["miyagi-widget", "canvas-link"]
        assert clocks(snapshot) == [2, 0, 4, 3, 4]
        assert snapshot.clock == 6
        assert snapshot.document_clock == 6

    def test_metadata_clocks_are_kept(self, room, packer):
        """Recorded clocks win over fallbacks."""
        write_json_file(room / "canvas-metadata.json", {
            "clock": 40,
            "documentClock": 30,
            "pages": [{"id": "page:p", "name": "P", "index": "a5", "lastChangedClock": 7}],
            "canvasStorage": {"id": "canvas_storage:x", "lastChangedClock": 9},
        })
        make_widget(room, "widget-w1", props={"shapeId": "shape:w1", "lastChangedClock": 12})

        snapshot = packer.pack_room(room).snapshot

        assert clocks(snapshot) == [30, 7, 9, 12]
        assert snapshot.clock == 40
        assert snapshot.document_clock == 30
        assert states(snapshot)[1]["id"] == "page:p"
        assert states(snapshot)[2]["id"] == "canvas_storage:x"
        assert states(snapshot)[3]["parentId"] == "page:p"

    def test_document_defaults(self, room, packer):
        """An empty metadata file still yields a complete document record."""
        snapshot = packer.pack_room(room).snapshot
        document, page, storage = states(snapshot)

        assert document["meta"] == {"roomId": "room-A", "canvasMode": "freeform", "canvasName": "Canvas"}
        assert document["gridSize"] == 10
        assert document["id"] == "document:document"
        assert page == {"meta": {}, "id": "page:page", "name": "Page 1", "index": "a1", "typeName": "page"}
        assert storage["widgets"] == {}
        assert storage["global"] == {}
        assert snapshot.schema["sequences"] == DEFAULT_SCHEMA_SEQUENCES
        assert snapshot.tombstone_history_starts_at_clock == 1

    def test_widget_shape(self, room, packer):
        """Widget files become a miyagi-widget shape with its storage."""
        make_widget(
            room,
            "widget-w1",
            props={
                "shapeId": "shape:w1",
                "widgetId": "notes_1",
                "templateHandle": "notes",
                "position": {"x": 10, "y": 20},
                "size": {"w": 320, "h": 240},
                "opacity": 0.5,
                "color": "red",
                "index": "a3",
            },
            jsx="src\r\n",
            html="out",
            storage={"k": "v"},
        )
        write_json_file(room / "global-storage.json", {"g": 1})

        snapshot = packer.pack_room(room).snapshot
        storage, widget = states(snapshot)[2:]

        assert widget["id"] == "shape:w1"
        assert (widget["x"], widget["y"]) == (10, 20)
        assert widget["opacity"] == 0.5
        assert widget["rotation"] == 0
        assert widget["index"] == "a3"
        assert widget["props"]["w"] == 320
        assert widget["props"]["jsxContent"] == "src\r\n"
        assert widget["props"]["htmlContent"] == "out"
        assert widget["props"]["color"] == "red"
        assert widget["props"]["zoomScale"] == 1
        assert storage["widgets"] == {"shape:w1": {"k": "v"}}
        assert storage["global"] == {"g": 1}

    def test_widget_fallbacks(self, room, packer):
        """Missing widget properties fall back to directory name and defaults."""
        make_widget(room, "widget-abc", props={})
        make_widget(room, "widget-def", props={})

        snapshot = packer.pack_room(room).snapshot
        first, second = states(snapshot)[3:]

        assert first["id"] == "shape:abc"
        assert second["id"] == "shape:def"
        assert first["index"] == "a1"
        assert second["index"] == "a2"
        assert first["parentId"] == "page:page"
        assert first["meta"] == {"initializationState": "ready"}
        assert first["props"]["templateHandle"] == "notepad-react-test"
        assert first["props"]["widgetId"] == "widget_abc"
        assert second["props"]["widgetId"] == "widget_def"
        assert (first["props"]["w"], first["props"]["h"]) == (300, 200)

    def test_legacy_widget_directory(self, room, packer):
        """``shape-`` directories are still packed."""
        make_widget(room, "shape-old", props={})
        snapshot = packer.pack_room(room).snapshot
        assert states(snapshot)[3]["id"] == "shape:old"

    def test_incomplete_widget_skipped(self, room, packer):
        """A widget without its template source is left out without failing."""
        make_widget(room, "widget-ok", props={"shapeId": "shape:ok"})
        make_widget(room, "widget-half", props={"shapeId": "shape:half"}, skip=("template.jsx", "template.html"))

        result = packer.pack_room(room)

        ids = [s["id"] for s in states(result.snapshot)]
        assert "shape:half" not in ids
        assert "shape:ok" in ids
        assert result.widgets == 1
        assert "shape:half" not in states(result.snapshot)[2]["widgets"]
        assert len(result.problems) == 1
        assert isinstance(result.problems[0], IncompleteWidgetError)
        assert result.problems[0].missing == ["template.jsx", "template.html"]

    def test_malformed_widget_skipped(self, room, packer):
        """A widget with unreadable properties is reported and skipped."""
        widget_dir = make_widget(room, "widget-bad", props={})
        (widget_dir / "properties.json").write_text("{oops", encoding="utf-8")

        result = packer.pack_room(room)

        assert result.widgets == 0
        assert isinstance(result.problems[0], MalformedJSONError)

    def test_links_from_children(self, room, packer):
        """Only descriptors naming this room as parent become links."""
        make_child(room, "room-B", {
            "parentCanvasId": "room-A",
            "linkShapeId": "shape:lb",
            "position": {"x": 5, "y": 6},
            "label": "Bee",
        })
        make_child(room, "room-C", {"parentCanvasId": "room-Z", "linkShapeId": "shape:lc"})
        (room / "room-D").mkdir()
        make_child(room, "room-E", {"parentCanvasId": "room-A"})

        result = packer.pack_room(room)
        links = states(result.snapshot)[3:]

        assert result.links == 2
        assert [l["id"] for l in links] == ["shape:lb", "shape:link-to-room-E"]
        assert links[0]["props"]["targetCanvasId"] == "room-B"
        assert links[0]["props"]["label"] == "Bee"
        assert (links[0]["x"], links[0]["y"]) == (5, 6)
        assert (links[0]["props"]["w"], links[0]["props"]["h"]) == (200, 100)
        assert links[1]["props"]["label"] == "Link to room-E"
        assert links[1]["parentId"] == "page:page"

    def test_malformed_metadata(self, room, packer):
        """A broken metadata file fails the room."""
        (room / "canvas-metadata.json").write_text("nope", encoding="utf-8")
        with pytest.raises(MalformedJSONError):
            packer.pack_room(room)


class TestWriteRoom:
    """Test Packer.write_room."""

    def test_writes_snapshot(self, room, packer):
        """The snapshot file is written and a repeat write is skipped."""
        make_widget(room, "widget-w1", props={"shapeId": "shape:w1", "widgetId": "notes_1"})

        first = packer.write_room(room)
        data = read_json_file(room / "canvas-state.json")
        second = packer.write_room(room)

        assert first.written
        assert not second.written
        assert data["clock"] == first.snapshot.clock
        assert len(data["documents"]) == 4

    def test_repeat_write_without_widget_id(self, room, packer):
        """The fallback widget id is stable, so an unchanged room is not rewritten."""
        make_widget(room, "widget-abc", props={"templateHandle": "notes"})

        first = packer.write_room(room)
        second = packer.write_room(room)

        assert first.written
        assert not second.written
        assert states(second.snapshot)[3]["props"]["widgetId"] == "notes_abc"


class TestPackTree:
    """Test Packer.pack_tree."""

    def test_finds_nested_rooms(self, repo, room, packer):
        """Every room holding metadata is packed, parents first."""
        child = make_child(room, "room-B", {"parentCanvasId": "room-A"})
        write_json_file(child / "canvas-metadata.json", {})
        (room / "room-C").mkdir()
        grandchild = child / "room-D"
        grandchild.mkdir()
        write_json_file(grandchild / "canvas-metadata.json", {})
        hidden = repo / ".cache" / "room-X"
        hidden.mkdir(parents=True)
        write_json_file(hidden / "canvas-metadata.json", {})

        assert packer.find_room_dirs() == [room, child, grandchild]

        report = packer.pack_tree()

        assert report.ok
        assert [r.room_path for r in report.results] == [room, child, grandchild]
        assert (grandchild / "canvas-state.json").is_file()
        assert not (room / "room-C" / "canvas-state.json").exists()

    def test_failed_room_does_not_stop_others(self, repo, room, packer):
        """A room with broken metadata is reported, the others are packed."""
        child = room / "room-B"
        child.mkdir()
        (child / "canvas-metadata.json").write_text("[", encoding="utf-8")

        report = packer.pack_tree()

        assert not report.ok
        assert report.failed_rooms == [child]
        assert [r.room_path for r in report.results] == [room]

    def test_invalid_utf8_template(self, repo, room, packer):
        """Bytes that are not UTF-8 are replaced and packing carries on."""
        widget_dir = make_widget(room, "widget-w1", props={"shapeId": "shape:w1"})
        (widget_dir / "template.html").write_bytes(b"caf\xe9")
        sibling = repo / "room-B"
        sibling.mkdir()
        write_json_file(sibling / "canvas-metadata.json", {})

        report = packer.pack_tree()

        assert report.ok
        widget = read_json_file(room / "canvas-state.json")["documents"][3]["state"]
        assert widget["props"]["htmlContent"] == "caf\ufffd"
        assert (sibling / "canvas-state.json").is_file()
