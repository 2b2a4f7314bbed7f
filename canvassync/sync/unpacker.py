"""Unpacker: one room's ``canvas-state.json`` to its directory layout.

For a room directory the unpacker writes:

- ``canvas-metadata.json`` (canvas identity, pages, schema, clocks)
- ``global-storage.json`` (the room's global key/value store)
- one ``widget-<id>/`` directory per widget shape
- one ``canvas-link-info.json`` per link shape, inside the *child* room
  directory the link points at

Writes are in place and skipped when the file already holds the same
content, so unpacking the same snapshot twice changes nothing.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from canvassync.config.schema import Config
from canvassync.models.records import ClassifiedRoom, LinkDescriptor, WidgetDescriptor
from canvassync.models.snapshot import Snapshot
from canvassync.sync.classifier import classify_snapshot
from canvassync.sync.errors import (
    BrokenLinkError,
    InvalidShapeIdError,
    MalformedJSONError,
    MissingSnapshotError,
    WriteFailureError,
)
from canvassync.sync.tree import ensure_dir, is_plain_name, read_json, write_blob, write_json
from canvassync.utils.ids import widget_dir_name

VOLATILE_METADATA_KEYS = ("generatedAt",)


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. ``2026-01-02T03:04:05.678Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _failing(error: WriteFailureError) -> Callable[[], bool]:
    def writer() -> bool:
        raise error
    return writer


@dataclass
class UnpackResult:
    """What unpacking one room produced."""

    room_path: Path
    links: List[LinkDescriptor] = field(default_factory=list)  # Followable: descriptor written
    broken_links: List[BrokenLinkError] = field(default_factory=list)
    rejected_widgets: List[InvalidShapeIdError] = field(default_factory=list)
    widget_dirs: List[Path] = field(default_factory=list)
    files_written: int = 0

    @property
    def room_id(self) -> str:
        return self.room_path.name


class Unpacker:
    """Writes the directory layout of single rooms from their snapshots."""

    def __init__(self, repo_root: Path, config: Optional[Config] = None):
        self.repo_root = Path(repo_root)
        self.config = config or Config()
        self.layout = self.config.layout
        self.defaults = self.config.defaults

    def _rel(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.repo_root))
        except ValueError:
            return str(path)

    def load_snapshot(self, room_path: Path) -> Snapshot:
        """Read and parse a room's snapshot file.

        Raises:
            MissingSnapshotError: if the room has no snapshot file
            MalformedJSONError: if the file is not a valid snapshot
        """
        snapshot_path = room_path / self.layout.snapshot_file
        if not snapshot_path.is_file():
            raise MissingSnapshotError(f"No {self.layout.snapshot_file} found for room {room_path.name}", snapshot_path)
        data = read_json(snapshot_path)
        try:
            return Snapshot.from_dict(data)
        except ValueError as e:
            raise MalformedJSONError(f"Invalid snapshot {self._rel(snapshot_path)}: {e}", snapshot_path) from e

    def unpack_room(self, room_path: Path) -> UnpackResult:
        """Unpack one room directory from its snapshot.

        Raises:
            MissingSnapshotError: if the room has no snapshot file
            MalformedJSONError: if the snapshot cannot be parsed
            WriteFailureError: if a file could not be written. The remaining
                files of the failing step are still attempted, later steps are not.
        """
        room_path = Path(room_path)
        snapshot = self.load_snapshot(room_path)
        room = classify_snapshot(snapshot, self.defaults)
        result = UnpackResult(room_path=room_path)

        logger.info(
            f"Unpacking room {room_path.name}: {len(room.widgets)} widgets, "
            f"{len(room.links)} links, {room.ignored} ignored records"
        )

        self._run_step(result, [
            lambda: write_json(
                room_path / self.layout.metadata_file,
                self.build_metadata(room, snapshot),
                volatile=VOLATILE_METADATA_KEYS,
            ),
            lambda: write_json(
                room_path / self.layout.global_storage_file,
                room.storage.global_storage if room.storage else {},
            ),
        ])

        seen: Dict[str, WidgetDescriptor] = {}
        for widget in room.widgets:
            dir_name = widget_dir_name(widget.shape_id, self.layout.widget_prefix)
            if not is_plain_name(dir_name):
                logger.warning(f"Skipping widget with unusable shape id {widget.shape_id!r} in room {room_path.name}")
                result.rejected_widgets.append(InvalidShapeIdError(
                    f"Widget shape id {widget.shape_id!r} is not a valid directory name", room_path
                ))
                continue
            if widget.shape_id in seen:
                logger.warning(f"Duplicate widget shape id {widget.shape_id} in room {room_path.name}; last one wins")
            seen[widget.shape_id] = widget
        widget_writers: List[Callable[[], bool]] = []
        for widget in seen.values():
            widget_writers.extend(self._widget_writers(widget, room_path, result))
        self._run_step(result, widget_writers)

        link_writers = []
        for link in room.links:
            writer = self._link_writer(link, room_path, result)
            if writer is not None:
                link_writers.append(writer)
        self._run_step(result, link_writers)

        return result

    def _run_step(self, result: UnpackResult, writers: List[Callable[[], bool]]) -> None:
        """Run every writer of one step, then raise if any of them failed."""
        failures: List[WriteFailureError] = []
        for writer in writers:
            try:
                if writer():
                    result.files_written += 1
            except WriteFailureError as e:
                logger.error(str(e))
                failures.append(e)
        if failures:
            raise WriteFailureError(
                f"{len(failures)} file(s) failed in room {result.room_id}: "
                + "; ".join(str(f) for f in failures),
                result.room_path,
            )

    def build_metadata(self, room: ClassifiedRoom, snapshot: Snapshot) -> Dict[str, Any]:
        """Contents of ``canvas-metadata.json`` for a classified room."""
        document = room.document
        if document is None:
            logger.warning("No document record found - using defaults for canvas metadata")
        meta = document.meta if document else {}

        metadata: Dict[str, Any] = {
            "canvas": {
                "roomId": meta.get("roomId") or self.defaults.unknown_room_id,
                "canvasMode": meta.get("canvasMode") or self.defaults.canvas_mode,
                "canvasName": meta.get("canvasName") or self.defaults.canvas_name,
                "gridSize": document.grid_size if document else self.defaults.grid_size,
            },
            "pages": [page.to_dict() for page in room.pages],
        }
        if room.storage is not None:
            metadata["canvasStorage"] = {
                "id": room.storage.record_id,
                "lastChangedClock": room.storage.last_changed_clock,
            }
        metadata.update({
            "schema": snapshot.schema,
            "generatedAt": utc_timestamp(),
            "clock": snapshot.clock,
            "documentClock": snapshot.document_clock,
            "tombstones": snapshot.tombstones,
            "tombstoneHistoryStartsAtClock": (
                snapshot.tombstone_history_starts_at_clock
                or self.defaults.tombstone_history_starts_at_clock
            ),
        })
        return metadata

    def _widget_writers(self, widget: WidgetDescriptor, room_path: Path,
                        result: UnpackResult) -> List[Callable[[], bool]]:
        widget_dir = room_path / widget_dir_name(widget.shape_id, self.layout.widget_prefix)
        result.widget_dirs.append(widget_dir)
        try:
            ensure_dir(widget_dir)
        except WriteFailureError as e:
            return [_failing(e)]

        logger.debug(f"Widget {self._rel(widget_dir)}/")
        return [
            lambda: write_json(widget_dir / self.layout.properties_file, widget.to_properties()),
            lambda: write_blob(widget_dir / self.layout.template_source_file, widget.template_source),
            lambda: write_blob(widget_dir / self.layout.template_output_file, widget.template_output),
            lambda: write_json(widget_dir / self.layout.widget_storage_file, widget.storage),
        ]

    def _link_writer(self, link: LinkDescriptor, room_path: Path,
                     result: UnpackResult) -> Optional[Callable[[], bool]]:
        """Writer for a link's descriptor, or None if the link cannot be followed."""
        target = link.target_canvas_id
        if not target:
            logger.warning(f"Canvas-link {link.link_shape_id} has no targetCanvasId")
            result.broken_links.append(BrokenLinkError(f"Canvas-link {link.link_shape_id} has no target", room_path))
            return None

        target_dir = room_path / target
        if not is_plain_name(target) or not target_dir.is_dir():
            logger.warning(f"Target room directory not found: {target} at {self._rel(target_dir)}")
            result.broken_links.append(BrokenLinkError(
                f"Canvas-link {link.link_shape_id} targets missing room {target}", target_dir
            ))
            return None

        result.links.append(link)
        info = link.to_link_info(parent_canvas_id=room_path.name)
        return lambda: write_json(target_dir / self.layout.link_info_file, info)
