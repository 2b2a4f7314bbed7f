"""End-to-end tests: unpack, pack, unpack again."""

import pytest

from canvassync.sync.errors import FatalConfigError, InvalidShapeIdError, MissingSnapshotError
from canvassync.sync.runner import run_pack, run_unpack
from conftest import read_json_file, tree_bytes, write_json_file


@pytest.fixture
def tree(repo, snapshot, place_room):
    """A root room with two widgets and one linked child room with a widget."""
    root = snapshot("room-A", clock=12)
    root.widget("shape:w1", x=10, y=20, storage={"todo": ["é", "b"]}, clock=6)
    root.link("shape:l1", "room-B", clock=7, label="Child", index="a3")
    root.widget("shape:w2", jsx="line1\r\nline2\n", html="<b>ü</b>", clock=8, index="a2", storage={"n": 1})
    root.global_storage = {"theme": "dark"}
    room_a = place_room(repo, root)
    place_room(room_a, snapshot("room-B", clock=4).widget("shape:w3", clock=3))
    return room_a


def shapes_and_storage(data):
    return {
        doc["state"]["id"]: doc
        for doc in data["documents"]
        if doc["state"]["typeName"] in ("shape", "canvas_storage")
    }


class TestRoundTrip:
    """Test that the two directions agree."""

    def test_unpack_twice_changes_nothing(self, repo, tree):
        """A second unpack run leaves every file byte-identical."""
        first = run_unpack(repo)
        before = tree_bytes(repo)
        second = run_unpack(repo)

        assert first.ok and second.ok
        assert tree_bytes(repo) == before
        assert second.collection.removed == 0

    def test_pack_reproduces_records(self, repo, tree):
        """Packing an unpacked tree reproduces shape and storage records."""
        original = read_json_file(tree / "canvas-state.json")
        run_unpack(repo)

        report = run_pack(repo)
        packed = read_json_file(tree / "canvas-state.json")

        assert report.ok
        assert shapes_and_storage(packed) == shapes_and_storage(original)
        assert packed["clock"] == original["clock"]
        assert packed["documentClock"] == original["documentClock"]
        assert packed["schema"] == original["schema"]

    def test_pack_then_unpack_reproduces_tree(self, repo, tree):
        """Unpacking a packed snapshot writes the same directory tree."""
        run_unpack(repo)
        before = tree_bytes(repo, exclude=("canvas-state.json",))

        run_pack(repo)
        run_unpack(repo)

        assert tree_bytes(repo, exclude=("canvas-state.json",)) == before

    def test_deleted_widget_survives_nothing(self, repo, tree):
        """A widget removed from the snapshot disappears on the next unpack."""
        run_unpack(repo)
        assert (tree / "widget-w2").is_dir()

        data = read_json_file(tree / "canvas-state.json")
        data["documents"] = [d for d in data["documents"] if d["state"].get("id") != "shape:w2"]
        write_json_file(tree / "canvas-state.json", data)
        report = run_unpack(repo)

        assert not (tree / "widget-w2").exists()
        assert report.collection.removed_widgets == [tree / "widget-w2"]

    def test_unlinked_room_is_removed(self, repo, tree):
        """Dropping the link shape removes the child room on the next unpack."""
        run_unpack(repo)
        data = read_json_file(tree / "canvas-state.json")
        data["documents"] = [d for d in data["documents"] if d["state"].get("id") != "shape:l1"]
        write_json_file(tree / "canvas-state.json", data)

        report = run_unpack(repo)

        assert not (tree / "room-B").exists()
        assert report.collection.removed_rooms == [tree / "room-B"]


class TestRunners:
    """Test whole-repository runs."""

    def test_unpack_without_root(self, repo):
        """No root room aborts the run."""
        with pytest.raises(FatalConfigError):
            run_unpack(repo)

    def test_unpack_report_warnings(self, repo, snapshot, place_room):
        """Tolerated problems become warnings without failing the run."""
        room_a = place_room(repo, snapshot("room-A").link("shape:l1", "room-B").link("shape:l2", "room-gone"))
        place_room(room_a, room_id="room-B")

        report = run_unpack(repo)

        assert report.ok
        assert len(report.warnings) == 2
        assert any(isinstance(p, MissingSnapshotError) for p in report.problems)

    def test_unpack_report_rejected_widget(self, repo, snapshot, place_room):
        """A widget whose shape id is a path is a warning, the rest of the room unpacks."""
        room_a = place_room(repo, snapshot("room-A").widget("shape:x/../../../escaped").widget("shape:w1"))

        report = run_unpack(repo)

        assert report.ok
        assert [type(p) for p in report.problems] == [InvalidShapeIdError]
        assert (room_a / "widget-w1").is_dir()
        assert not (repo.parent / "escaped").exists()

    def test_unpack_report_failed_room(self, repo, snapshot, place_room):
        """A room that cannot be parsed fails the run."""
        room_a = place_room(repo, snapshot("room-A").link("shape:l1", "room-B"))
        room_b = place_room(room_a, room_id="room-B")
        (room_b / "canvas-state.json").write_text("{", encoding="utf-8")

        report = run_unpack(repo)

        assert not report.ok
        assert report.failed_rooms == [room_b]

    def test_pack_single_room(self, repo, tree):
        """``room`` restricts packing to one directory."""
        run_unpack(repo)
        (tree / "room-B" / "canvas-state.json").unlink()

        report = run_pack(repo, room=tree)

        assert [r.room_path for r in report.results] == [tree]
        assert not (tree / "room-B" / "canvas-state.json").exists()

    def test_pack_single_room_failure(self, repo, tree):
        """A broken single room is reported, not raised."""
        (tree / "canvas-metadata.json").write_text("{", encoding="utf-8")

        report = run_pack(repo, room=tree)

        assert not report.ok
        assert report.failed_rooms == [tree]
