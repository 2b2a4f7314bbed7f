"""Data models for canvas snapshots and their records."""

from .records import (
    ClassifiedRoom,
    DocumentInfo,
    Geometry,
    LinkDescriptor,
    PageInfo,
    Record,
    RecordKind,
    StorageMaps,
    WidgetDescriptor,
)
from .snapshot import RawRecord, Snapshot, default_schema

__all__ = [
    "Snapshot",
    "RawRecord",
    "default_schema",
    "RecordKind",
    "Record",
    "ClassifiedRoom",
    "DocumentInfo",
    "PageInfo",
    "StorageMaps",
    "WidgetDescriptor",
    "LinkDescriptor",
    "Geometry",
]
