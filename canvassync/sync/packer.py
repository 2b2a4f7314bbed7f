"""Packer: one room directory to its ``canvas-state.json``.

Each room is packed on its own from:

- its ``canvas-metadata.json`` and ``global-storage.json``
- every complete widget directory directly inside it
- the ``canvas-link-info.json`` of each immediate child room whose
  ``parentCanvasId`` names this room

No traversal is needed. Record order in the produced snapshot is fixed
(document, page, storage, widgets, links) because fallback clocks are
derived from record positions.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from canvassync.config.schema import Config
from canvassync.models.records import (
    DOCUMENT_RECORD_ID,
    TYPE_NAME_DOCUMENT,
    TYPE_NAME_PAGE,
    TYPE_NAME_STORAGE,
    Geometry,
    LinkDescriptor,
    WidgetDescriptor,
)
from canvassync.models.snapshot import Snapshot, default_schema
from canvassync.sync.errors import (
    CanvasSyncError,
    IncompleteWidgetError,
    MalformedJSONError,
    WriteFailureError,
)
from canvassync.sync.tree import iter_dirs, read_blob, read_json, read_json_or_default, write_json
from canvassync.utils.ids import shape_id_from_dir_name, strip_shape_prefix
from canvassync.utils.values import as_dict, coalesce


@dataclass
class PackResult:
    """Outcome of packing one room."""

    room_path: Path
    snapshot: Snapshot
    widgets: int = 0
    links: int = 0
    problems: List[CanvasSyncError] = field(default_factory=list)
    written: bool = False


@dataclass
class PackReport:
    """Outcome of packing a whole tree."""

    results: List[PackResult] = field(default_factory=list)
    failed_rooms: List[Path] = field(default_factory=list)
    problems: List[CanvasSyncError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_rooms


class Packer:
    """Builds room snapshots from the directory layout."""

    def __init__(self, repo_root: Path, config: Optional[Config] = None):
        self.repo_root = Path(repo_root)
        self.config = config or Config()
        self.layout = self.config.layout
        self.defaults = self.config.defaults

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def find_room_dirs(self) -> List[Path]:
        """Every directory that holds a metadata file, parents before children."""
        is_room = lambda p: self.layout.is_room_dir_name(p.name)  # noqa: E731
        has_metadata = lambda p: (p / self.layout.metadata_file).is_file()  # noqa: E731

        rooms = [self.repo_root] if has_metadata(self.repo_root) else []
        rooms.extend(
            room for room in iter_dirs(self.repo_root, is_room, recursive=True, descend=is_room, into_matches=True)
            if has_metadata(room)
        )
        return rooms

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_metadata(self, room_path: Path) -> Dict[str, Any]:
        """Room metadata, ``{}`` when missing.

        Raises:
            MalformedJSONError: if the file cannot be parsed
        """
        return as_dict(read_json_or_default(room_path / self.layout.metadata_file, {}))

    def load_global_storage(self, room_path: Path) -> Dict[str, Any]:
        """Room global storage, ``{}`` when missing.

        Raises:
            MalformedJSONError: if the file cannot be parsed
        """
        return as_dict(read_json_or_default(room_path / self.layout.global_storage_file, {}))

    def load_widget(self, widget_dir: Path, position: int, page_id: str) -> WidgetDescriptor:
        """Read one widget directory.

        Args:
            widget_dir: The ``widget-*`` directory
            position: 1-based position among the room's widgets (index fallback)
            page_id: The room's page id (parent fallback)

        Raises:
            IncompleteWidgetError: if one of the four widget files is missing
            MalformedJSONError: if properties or storage cannot be parsed
        """
        missing = [name for name in self.layout.widget_files if not (widget_dir / name).is_file()]
        if missing:
            raise IncompleteWidgetError(widget_dir, missing)

        props = as_dict(read_json(widget_dir / self.layout.properties_file))
        storage = read_json(widget_dir / self.layout.widget_storage_file)
        position_info = as_dict(props.get("position"))
        size = as_dict(props.get("size"))
        prefixes = [self.layout.widget_prefix, *self.layout.legacy_widget_prefixes]
        shape_id = props.get("shapeId") or props.get("id") or shape_id_from_dir_name(widget_dir.name, prefixes)
        template_handle = props.get("templateHandle") or self.defaults.template_handle

        return WidgetDescriptor(
            shape_id=shape_id,
            geometry=Geometry(
                x=coalesce(position_info.get("x"), coalesce(props.get("x"), 0)),
                y=coalesce(position_info.get("y"), coalesce(props.get("y"), 0)),
                w=coalesce(size.get("w"), coalesce(props.get("w"), self.defaults.widget_width)),
                h=coalesce(size.get("h"), coalesce(props.get("h"), self.defaults.widget_height)),
                rotation=coalesce(props.get("rotation"), self.defaults.rotation),
                opacity=coalesce(props.get("opacity"), self.defaults.opacity),
                is_locked=coalesce(props.get("isLocked"), self.defaults.is_locked),
            ),
            widget_id=props.get("widgetId") or f"{props.get('templateHandle') or 'widget'}_{strip_shape_prefix(shape_id)}",
            template_handle=template_handle,
            color=props.get("color") or self.defaults.color,
            zoom_scale=coalesce(props.get("zoomScale"), self.defaults.zoom_scale),
            meta=props["meta"] if isinstance(props.get("meta"), dict) else {"initializationState": "ready"},
            parent_id=props.get("parentId") or page_id,
            index=props.get("index") or f"a{position}",
            last_changed_clock=props.get("lastChangedClock"),
            template_source=read_blob(widget_dir / self.layout.template_source_file),
            template_output=read_blob(widget_dir / self.layout.template_output_file),
            storage=storage,
        )

    def load_widgets(self, room_path: Path, page_id: str,
                     problems: List[CanvasSyncError]) -> List[WidgetDescriptor]:
        """Every complete widget directly inside the room, in directory order."""
        widgets: List[WidgetDescriptor] = []
        widget_dirs = iter_dirs(room_path, lambda p: self.layout.is_widget_dir_name(p.name))
        for widget_dir in widget_dirs:
            try:
                widgets.append(self.load_widget(widget_dir, len(widgets) + 1, page_id))
            except IncompleteWidgetError as e:
                logger.warning(f"Skipping incomplete widget: {widget_dir.name} ({', '.join(e.missing)} missing)")
                problems.append(e)
            except MalformedJSONError as e:
                logger.error(f"Error loading widget {widget_dir.name}: {e}")
                problems.append(e)
        return widgets

    def load_links(self, room_path: Path, page_id: str,
                   problems: List[CanvasSyncError]) -> List[LinkDescriptor]:
        """Link shapes contributed by immediate child rooms that name this room as parent."""
        room_id = room_path.name
        links: List[LinkDescriptor] = []

        for child in iter_dirs(room_path, lambda p: self.layout.is_room_dir_name(p.name)):
            info_path = child / self.layout.link_info_file
            if not info_path.is_file():
                continue
            try:
                info = as_dict(read_json(info_path))
            except MalformedJSONError as e:
                logger.error(f"Error loading canvas-link info from {info_path}: {e}")
                problems.append(e)
                continue

            if info.get("parentCanvasId") != room_id:
                logger.debug(f"Ignoring stale link descriptor in {child.name} (parent {info.get('parentCanvasId')})")
                continue

            position = as_dict(info.get("position"))
            size = as_dict(info.get("size"))
            links.append(LinkDescriptor(
                link_shape_id=info.get("linkShapeId") or f"shape:link-to-{child.name}",
                target_canvas_id=child.name,
                geometry=Geometry(
                    x=coalesce(position.get("x"), 0),
                    y=coalesce(position.get("y"), 0),
                    w=coalesce(size.get("w"), self.defaults.link_width),
                    h=coalesce(size.get("h"), self.defaults.link_height),
                    rotation=coalesce(info.get("rotation"), self.defaults.rotation),
                    opacity=coalesce(info.get("opacity"), self.defaults.opacity),
                    is_locked=coalesce(info.get("isLocked"), self.defaults.is_locked),
                ),
                label=info.get("label") or f"Link to {child.name}",
                link_type=info.get("linkType") or self.defaults.link_type,
                meta=as_dict(info.get("meta")),
                parent_id=info.get("parentId") or page_id,
                index=info.get("index") or self.defaults.shape_index,
                last_changed_clock=info.get("lastChangedClock"),
                parent_canvas_id=room_id,
            ))
        return links

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def pack_room(self, room_path: Path) -> PackResult:
        """Build the snapshot of one room without writing it.

        Raises:
            MalformedJSONError: if the room's metadata or global storage cannot be parsed
        """
        room_path = Path(room_path)
        metadata = self.load_metadata(room_path)
        global_storage = self.load_global_storage(room_path)

        canvas = as_dict(metadata.get("canvas"))
        pages = metadata.get("pages") if isinstance(metadata.get("pages"), list) else []
        page = as_dict(pages[0]) if pages else {}
        page_id = page.get("id") or self.defaults.page_id
        storage_info = as_dict(metadata.get("canvasStorage"))

        problems: List[CanvasSyncError] = []
        widgets = self.load_widgets(room_path, page_id, problems)
        links = self.load_links(room_path, page_id, problems)

        snapshot = Snapshot(
            tombstones=as_dict(metadata.get("tombstones")),
            tombstone_history_starts_at_clock=(
                metadata.get("tombstoneHistoryStartsAtClock")
                or self.defaults.tombstone_history_starts_at_clock
            ),
            schema=metadata["schema"] if isinstance(metadata.get("schema"), dict) else default_schema(),
        )

        snapshot.append(
            {
                "gridSize": canvas.get("gridSize") or self.defaults.grid_size,
                "name": "",
                "meta": {
                    "roomId": canvas.get("roomId") or room_path.name,
                    "canvasMode": canvas.get("canvasMode") or self.defaults.canvas_mode,
                    "canvasName": canvas.get("canvasName") or self.defaults.canvas_name,
                },
                "id": DOCUMENT_RECORD_ID,
                "typeName": TYPE_NAME_DOCUMENT,
            },
            coalesce(metadata.get("documentClock"), 2),
        )
        snapshot.append(
            {
                "meta": as_dict(page.get("meta")),
                "id": page_id,
                "name": page.get("name") or self.defaults.page_name,
                "index": page.get("index") or self.defaults.page_index,
                "typeName": TYPE_NAME_PAGE,
            },
            coalesce(page.get("lastChangedClock"), 0),
        )
        snapshot.append(
            {
                "widgets": {widget.shape_id: widget.storage for widget in widgets},
                "global": global_storage,
                "id": storage_info.get("id") or self.defaults.storage_record_id,
                "typeName": TYPE_NAME_STORAGE,
            },
            coalesce(storage_info.get("lastChangedClock"), len(widgets) + len(links) + 2),
        )

        for shape in [*widgets, *links]:
            # Fallback clock: the record's position in the documents list
            snapshot.append(shape.to_shape_state(), coalesce(shape.last_changed_clock, len(snapshot.documents)))

        snapshot.clock = coalesce(metadata.get("clock"), len(snapshot.documents) + 1)
        snapshot.document_clock = coalesce(metadata.get("documentClock"), snapshot.clock)

        return PackResult(
            room_path=room_path,
            snapshot=snapshot,
            widgets=len(widgets),
            links=len(links),
            problems=problems,
        )

    def write_room(self, room_path: Path) -> PackResult:
        """Pack one room and write its ``canvas-state.json``.

        Raises:
            MalformedJSONError: if the room's metadata or global storage cannot be parsed
            WriteFailureError: if the snapshot file cannot be written
        """
        result = self.pack_room(room_path)
        snapshot_path = result.room_path / self.layout.snapshot_file
        result.written = write_json(snapshot_path, result.snapshot.to_dict())
        logger.info(
            f"Generated {self.layout.snapshot_file} for {result.room_path.name} with "
            f"{result.widgets} widgets and {result.links} canvas-links"
            + ("" if result.written else " (unchanged)")
        )
        return result

    def pack_tree(self) -> PackReport:
        """Pack every room directory under the repository root."""
        report = PackReport()
        room_dirs = self.find_room_dirs()
        logger.info(f"Found {len(room_dirs)} room directories to process")

        for room_dir in room_dirs:
            try:
                result = self.write_room(room_dir)
            except (MalformedJSONError, WriteFailureError) as e:
                logger.error(f"Error generating canvas state for room {room_dir.name}: {e}")
                report.failed_rooms.append(room_dir)
                report.problems.append(e)
                continue
            except OSError as e:
                logger.error(f"Error generating canvas state for room {room_dir.name}: {e}")
                report.failed_rooms.append(room_dir)
                report.problems.append(WriteFailureError(str(e), room_dir))
                continue
            report.results.append(result)
            report.problems.extend(result.problems)

        logger.success(f"Generated {len(report.results)}/{len(room_dirs)} {self.layout.snapshot_file} files")
        return report
