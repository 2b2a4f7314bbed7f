"""Conversion between room snapshots and room directory trees."""

from canvassync.sync.classifier import classify_record, classify_snapshot
from canvassync.sync.collector import CollectionReport, collect_garbage
from canvassync.sync.errors import (
    BrokenLinkError,
    CanvasSyncError,
    FatalConfigError,
    IncompleteWidgetError,
    InvalidShapeIdError,
    MalformedJSONError,
    MissingSnapshotError,
    UnsafeDeletionError,
    WriteFailureError,
)
from canvassync.sync.packer import Packer, PackReport, PackResult
from canvassync.sync.runner import UnpackReport, run_pack, run_unpack
from canvassync.sync.unpacker import Unpacker, UnpackResult
from canvassync.sync.walker import TraversalState, find_root_room, visit_next, walk

__all__ = [
    "classify_record",
    "classify_snapshot",
    "Unpacker",
    "UnpackResult",
    "Packer",
    "PackResult",
    "PackReport",
    "TraversalState",
    "find_root_room",
    "visit_next",
    "walk",
    "CollectionReport",
    "collect_garbage",
    "UnpackReport",
    "run_unpack",
    "run_pack",
    "CanvasSyncError",
    "FatalConfigError",
    "MissingSnapshotError",
    "MalformedJSONError",
    "IncompleteWidgetError",
    "InvalidShapeIdError",
    "BrokenLinkError",
    "WriteFailureError",
    "UnsafeDeletionError",
]
