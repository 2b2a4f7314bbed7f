"""Normalized record variants produced by the record classifier.

A snapshot's ``documents`` list is a tagged union keyed on ``state.typeName``
(and, for shapes, ``state.type``). Each kind the converter understands maps
to exactly one dataclass below; everything else classifies as
:attr:`RecordKind.OTHER` and is left alone.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union


class RecordKind(Enum):
    """Kinds of snapshot records."""

    DOCUMENT = "document"
    PAGE = "page"
    STORAGE = "storage"
    WIDGET = "widget-shape"
    LINK = "link-shape"
    OTHER = "other"


# Wire tags
TYPE_NAME_DOCUMENT = "document"
TYPE_NAME_PAGE = "page"
TYPE_NAME_STORAGE = "canvas_storage"
TYPE_NAME_SHAPE = "shape"
SHAPE_TYPE_WIDGET = "miyagi-widget"
SHAPE_TYPE_LINK = "canvas-link"

DOCUMENT_RECORD_ID = "document:document"


@dataclass
class Geometry:
    """Position, size and display flags shared by widget and link shapes."""

    x: float = 0
    y: float = 0
    w: float = 0
    h: float = 0
    rotation: float = 0
    opacity: float = 1
    is_locked: bool = False


@dataclass
class DocumentInfo:
    """The room-level ``document`` record."""

    kind: ClassVar[RecordKind] = RecordKind.DOCUMENT

    record_id: str
    name: str
    grid_size: int
    meta: Dict[str, Any]
    last_changed_clock: Optional[int] = None

    @property
    def room_id(self) -> Optional[str]:
        return self.meta.get("roomId")

    @property
    def canvas_mode(self) -> Optional[str]:
        return self.meta.get("canvasMode")

    @property
    def canvas_name(self) -> Optional[str]:
        return self.meta.get("canvasName")


@dataclass
class PageInfo:
    """A ``page`` record."""

    kind: ClassVar[RecordKind] = RecordKind.PAGE

    record_id: str
    name: str
    index: str
    meta: Dict[str, Any]
    last_changed_clock: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record_id,
            "name": self.name,
            "index": self.index,
            "meta": self.meta,
            "lastChangedClock": self.last_changed_clock,
        }


@dataclass
class StorageMaps:
    """The ``canvas_storage`` record: per-widget and room-global key/value maps."""

    kind: ClassVar[RecordKind] = RecordKind.STORAGE

    record_id: str
    widgets: Dict[str, Any]
    global_storage: Dict[str, Any]
    last_changed_clock: Optional[int] = None


@dataclass
class WidgetDescriptor:
    """A ``miyagi-widget`` shape together with its private storage.

    ``template_source`` and ``template_output`` are opaque: they are moved
    between the snapshot and the widget directory without being looked at.
    """

    kind: ClassVar[RecordKind] = RecordKind.WIDGET

    shape_id: str
    geometry: Geometry
    widget_id: Optional[str] = None
    template_handle: Optional[str] = None
    color: str = "black"
    zoom_scale: float = 1
    meta: Dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[str] = None
    index: Optional[str] = None
    last_changed_clock: Optional[int] = None
    template_source: str = ""
    template_output: str = ""
    storage: Any = field(default_factory=dict)

    def to_properties(self) -> Dict[str, Any]:
        """Contents of the widget's ``properties.json``."""
        return {
            "shapeId": self.shape_id,
            "widgetId": self.widget_id,
            "templateHandle": self.template_handle,
            "position": {"x": self.geometry.x, "y": self.geometry.y},
            "size": {"w": self.geometry.w, "h": self.geometry.h},
            "rotation": self.geometry.rotation,
            "opacity": self.geometry.opacity,
            "isLocked": self.geometry.is_locked,
            "color": self.color,
            "zoomScale": self.zoom_scale,
            "meta": self.meta,
            "parentId": self.parent_id,
            "index": self.index,
            "lastChangedClock": self.last_changed_clock,
        }

    def to_shape_state(self) -> Dict[str, Any]:
        """The snapshot ``state`` object for this widget shape."""
        return {
            "id": self.shape_id,
            "typeName": TYPE_NAME_SHAPE,
            "type": SHAPE_TYPE_WIDGET,
            "parentId": self.parent_id,
            "index": self.index,
            "x": self.geometry.x,
            "y": self.geometry.y,
            "rotation": self.geometry.rotation,
            "isLocked": self.geometry.is_locked,
            "opacity": self.geometry.opacity,
            "meta": self.meta,
            "props": {
                "w": self.geometry.w,
                "h": self.geometry.h,
                "widgetId": self.widget_id,
                "templateHandle": self.template_handle,
                "htmlContent": self.template_output,
                "jsxContent": self.template_source,
                "color": self.color,
                "zoomScale": self.zoom_scale,
            },
        }


@dataclass
class LinkDescriptor:
    """A ``canvas-link`` shape pointing at a child room."""

    kind: ClassVar[RecordKind] = RecordKind.LINK

    link_shape_id: str
    target_canvas_id: Optional[str]
    geometry: Geometry
    label: str = "Subcanvas Link"
    link_type: str = "realfile"
    meta: Dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[str] = None
    index: Optional[str] = None
    last_changed_clock: Optional[int] = None
    parent_canvas_id: Optional[str] = None

    def to_link_info(self, parent_canvas_id: str) -> Dict[str, Any]:
        """Contents of ``canvas-link-info.json`` written into the child room."""
        return {
            "parentCanvasId": parent_canvas_id,
            "linkShapeId": self.link_shape_id,
            "position": {"x": self.geometry.x, "y": self.geometry.y},
            "size": {"w": self.geometry.w, "h": self.geometry.h},
            "label": self.label,
            "linkType": self.link_type,
            "rotation": self.geometry.rotation,
            "opacity": self.geometry.opacity,
            "isLocked": self.geometry.is_locked,
            "meta": self.meta,
            "parentId": self.parent_id,
            "index": self.index,
            "lastChangedClock": self.last_changed_clock,
        }

    def to_shape_state(self) -> Dict[str, Any]:
        """The snapshot ``state`` object for this link shape."""
        return {
            "id": self.link_shape_id,
            "typeName": TYPE_NAME_SHAPE,
            "type": SHAPE_TYPE_LINK,
            "parentId": self.parent_id,
            "index": self.index,
            "x": self.geometry.x,
            "y": self.geometry.y,
            "rotation": self.geometry.rotation,
            "isLocked": self.geometry.is_locked,
            "opacity": self.geometry.opacity,
            "meta": self.meta,
            "props": {
                "w": self.geometry.w,
                "h": self.geometry.h,
                "targetCanvasId": self.target_canvas_id,
                "label": self.label,
                "linkType": self.link_type,
            },
        }


Record = Union[DocumentInfo, PageInfo, StorageMaps, WidgetDescriptor, LinkDescriptor]


@dataclass
class ClassifiedRoom:
    """Every understood record of one snapshot, grouped by kind in list order."""

    document: Optional[DocumentInfo] = None
    pages: List[PageInfo] = field(default_factory=list)
    storage: Optional[StorageMaps] = None
    widgets: List[WidgetDescriptor] = field(default_factory=list)
    links: List[LinkDescriptor] = field(default_factory=list)
    ignored: int = 0

    def add(self, record: Optional[Record]) -> None:
        if record is None:
            self.ignored += 1
        elif record.kind is RecordKind.DOCUMENT:
            self.document = record
        elif record.kind is RecordKind.PAGE:
            self.pages.append(record)
        elif record.kind is RecordKind.STORAGE:
            self.storage = record
        elif record.kind is RecordKind.WIDGET:
            self.widgets.append(record)
        elif record.kind is RecordKind.LINK:
            self.links.append(record)
