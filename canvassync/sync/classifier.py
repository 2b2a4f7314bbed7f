"""Record classifier: raw snapshot records to normalized variants.

Pure functions only. Unknown or damaged records classify as ``None`` and are
skipped by callers; nothing in here raises on unexpected input.
"""

from typing import Any, Callable, Dict, Optional, Tuple

from canvassync.config.schema import DefaultsConfig
from canvassync.models.records import (
    SHAPE_TYPE_LINK,
    SHAPE_TYPE_WIDGET,
    TYPE_NAME_DOCUMENT,
    TYPE_NAME_PAGE,
    TYPE_NAME_SHAPE,
    TYPE_NAME_STORAGE,
    ClassifiedRoom,
    DocumentInfo,
    Geometry,
    LinkDescriptor,
    PageInfo,
    Record,
    StorageMaps,
    WidgetDescriptor,
)
from canvassync.models.snapshot import RawRecord, Snapshot
from canvassync.utils.values import as_dict, coalesce

_DEFAULTS = DefaultsConfig()


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _geometry(state: Dict[str, Any], props: Dict[str, Any], width: float, height: float,
              defaults: DefaultsConfig) -> Geometry:
    return Geometry(
        x=coalesce(state.get("x"), 0),
        y=coalesce(state.get("y"), 0),
        w=coalesce(props.get("w"), width),
        h=coalesce(props.get("h"), height),
        rotation=coalesce(state.get("rotation"), defaults.rotation),
        opacity=coalesce(state.get("opacity"), defaults.opacity),
        is_locked=coalesce(state.get("isLocked"), defaults.is_locked),
    )


def _document(record: RawRecord, widget_storage: Dict[str, Any], defaults: DefaultsConfig) -> DocumentInfo:
    state = record.state
    grid_size = state.get("gridSize")
    if not isinstance(grid_size, int) or isinstance(grid_size, bool) or grid_size <= 0:
        grid_size = defaults.grid_size
    return DocumentInfo(
        record_id=coalesce(state.get("id"), "document:document"),
        name=state.get("name") or "",
        grid_size=grid_size,
        meta=as_dict(state.get("meta")),
        last_changed_clock=record.last_changed_clock,
    )


def _page(record: RawRecord, widget_storage: Dict[str, Any], defaults: DefaultsConfig) -> PageInfo:
    state = record.state
    return PageInfo(
        record_id=coalesce(state.get("id"), defaults.page_id),
        name=state.get("name") or defaults.page_name,
        index=state.get("index") or defaults.page_index,
        meta=as_dict(state.get("meta")),
        last_changed_clock=record.last_changed_clock,
    )


def _storage(record: RawRecord, widget_storage: Dict[str, Any], defaults: DefaultsConfig) -> StorageMaps:
    state = record.state
    return StorageMaps(
        record_id=coalesce(state.get("id"), defaults.storage_record_id),
        widgets=as_dict(state.get("widgets")),
        global_storage=as_dict(state.get("global")),
        last_changed_clock=record.last_changed_clock,
    )


def _widget(record: RawRecord, widget_storage: Dict[str, Any], defaults: DefaultsConfig) -> Optional[WidgetDescriptor]:
    state = record.state
    shape_id = state.get("id")
    if not isinstance(shape_id, str) or not shape_id:
        return None
    props = as_dict(state.get("props"))
    return WidgetDescriptor(
        shape_id=shape_id,
        geometry=_geometry(state, props, defaults.widget_width, defaults.widget_height, defaults),
        widget_id=props.get("widgetId"),
        template_handle=props.get("templateHandle"),
        color=coalesce(props.get("color"), defaults.color),
        zoom_scale=coalesce(props.get("zoomScale"), defaults.zoom_scale),
        meta=as_dict(state.get("meta")),
        parent_id=state.get("parentId"),
        index=state.get("index"),
        last_changed_clock=record.last_changed_clock,
        template_source=_text(props.get("jsxContent")),
        template_output=_text(props.get("htmlContent")),
        storage=widget_storage.get(shape_id, {}),
    )


def _link(record: RawRecord, widget_storage: Dict[str, Any], defaults: DefaultsConfig) -> Optional[LinkDescriptor]:
    state = record.state
    shape_id = state.get("id")
    if not isinstance(shape_id, str) or not shape_id:
        return None
    props = as_dict(state.get("props"))
    return LinkDescriptor(
        link_shape_id=shape_id,
        target_canvas_id=props.get("targetCanvasId") or None,
        geometry=_geometry(state, props, defaults.link_width, defaults.link_height, defaults),
        label=props.get("label") or defaults.link_label,
        link_type=props.get("linkType") or defaults.link_type,
        meta=as_dict(state.get("meta")),
        parent_id=state.get("parentId"),
        index=state.get("index"),
        last_changed_clock=record.last_changed_clock,
    )


Classifier = Callable[[RawRecord, Dict[str, Any], DefaultsConfig], Optional[Record]]

# (typeName, shape type) -> classifier. Non-shape records use None as shape type.
_CLASSIFIERS: Dict[Tuple[str, Optional[str]], Classifier] = {
    (TYPE_NAME_DOCUMENT, None): _document,
    (TYPE_NAME_PAGE, None): _page,
    (TYPE_NAME_STORAGE, None): _storage,
    (TYPE_NAME_SHAPE, SHAPE_TYPE_WIDGET): _widget,
    (TYPE_NAME_SHAPE, SHAPE_TYPE_LINK): _link,
}


def record_tag(record: RawRecord) -> Tuple[Optional[str], Optional[str]]:
    """The dispatch key of a raw record."""
    type_name = record.type_name
    if not isinstance(type_name, str):
        return None, None
    shape_type = record.state.get("type") if type_name == TYPE_NAME_SHAPE else None
    return type_name, shape_type if isinstance(shape_type, str) else None


def classify_record(
    record: RawRecord,
    widget_storage: Optional[Dict[str, Any]] = None,
    defaults: Optional[DefaultsConfig] = None,
) -> Optional[Record]:
    """Classify one raw record.

    Args:
        record: Raw snapshot record
        widget_storage: The room storage record's per-widget map, used to
            attach a widget's private storage by shape id
        defaults: Values for omitted optional fields

    Returns:
        A normalized record, or None for kinds the converter ignores
    """
    classifier = _CLASSIFIERS.get(record_tag(record))
    if classifier is None:
        return None
    return classifier(record, widget_storage or {}, defaults or _DEFAULTS)


def find_widget_storage(snapshot: Snapshot) -> Dict[str, Any]:
    """The per-widget storage map of the first storage record, or ``{}``."""
    for record in snapshot.records_of_type(TYPE_NAME_STORAGE):
        return as_dict(record.state.get("widgets"))
    return {}


def classify_snapshot(snapshot: Snapshot, defaults: Optional[DefaultsConfig] = None) -> ClassifiedRoom:
    """Classify every record of a snapshot, preserving list order per kind."""
    widget_storage = find_widget_storage(snapshot)
    room = ClassifiedRoom()
    for record in snapshot.documents:
        room.add(classify_record(record, widget_storage, defaults))
    return room
