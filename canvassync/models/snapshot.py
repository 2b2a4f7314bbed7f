"""Snapshot data model: the document-store representation of one room."""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_SCHEMA_VERSION = 2

# Per-kind migration sequence counters. Copied through unchanged; only the
# version number is ever looked at.
DEFAULT_SCHEMA_SEQUENCES: Dict[str, int] = {
    "com.tldraw.store": 5,
    "com.tldraw.asset": 1,
    "com.tldraw.camera": 1,
    "com.tldraw.canvas_storage": 1,
    "com.tldraw.document": 2,
    "com.tldraw.instance": 25,
    "com.tldraw.instance_page_state": 5,
    "com.tldraw.page": 1,
    "com.tldraw.instance_presence": 6,
    "com.tldraw.pointer": 1,
    "com.tldraw.shape": 4,
    "com.tldraw.asset.bookmark": 2,
    "com.tldraw.asset.image": 5,
    "com.tldraw.asset.video": 5,
    "com.tldraw.shape.arrow": 7,
    "com.tldraw.shape.bookmark": 2,
    "com.tldraw.shape.draw": 3,
    "com.tldraw.shape.embed": 4,
    "com.tldraw.shape.frame": 1,
    "com.tldraw.shape.geo": 12,
    "com.tldraw.shape.group": 0,
    "com.tldraw.shape.highlight": 1,
    "com.tldraw.shape.image": 5,
    "com.tldraw.shape.line": 6,
    "com.tldraw.shape.note": 9,
    "com.tldraw.shape.text": 4,
    "com.tldraw.shape.video": 4,
    "com.tldraw.shape.miyagi-widget": 0,
    "com.tldraw.shape.univer": 0,
    "com.tldraw.shape.block": 0,
    "com.tldraw.shape.canvas-link": 0,
    "com.tldraw.shape.file": 0,
    "com.tldraw.binding.arrow": 1,
}


def default_schema() -> Dict[str, Any]:
    """Fresh copy of the schema block written when none is recorded."""
    return {
        "schemaVersion": DEFAULT_SCHEMA_VERSION,
        "sequences": dict(DEFAULT_SCHEMA_SEQUENCES),
    }


@dataclass
class RawRecord:
    """One entry of a snapshot's ``documents`` list."""

    state: Dict[str, Any]
    last_changed_clock: Optional[int] = None

    @property
    def type_name(self) -> Optional[str]:
        return self.state.get("typeName")

    @property
    def record_id(self) -> Optional[str]:
        return self.state.get("id")

    def to_dict(self) -> Dict[str, Any]:
        return {"state": self.state, "lastChangedClock": self.last_changed_clock}

    @classmethod
    def from_dict(cls, data: Any) -> "RawRecord":
        if not isinstance(data, dict):
            return cls(state={})
        state = data.get("state")
        return cls(
            state=state if isinstance(state, dict) else {},
            last_changed_clock=data.get("lastChangedClock"),
        )


@dataclass
class Snapshot:
    """Complete state of one room at a point in time (``canvas-state.json``)."""

    clock: int = 0
    document_clock: int = 0
    tombstones: Dict[str, Any] = field(default_factory=dict)
    tombstone_history_starts_at_clock: int = 1
    schema: Dict[str, Any] = field(default_factory=default_schema)
    documents: List[RawRecord] = field(default_factory=list)

    @property
    def schema_version(self) -> Optional[int]:
        return self.schema.get("schemaVersion") if isinstance(self.schema, dict) else None

    def records_of_type(self, type_name: str) -> List[RawRecord]:
        """All raw records with the given ``typeName``, in list order."""
        return [record for record in self.documents if record.type_name == type_name]

    def append(self, state: Dict[str, Any], last_changed_clock: Optional[int] = None) -> RawRecord:
        """Append a record and return it."""
        record = RawRecord(state=state, last_changed_clock=last_changed_clock)
        self.documents.append(record)
        return record

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clock": self.clock,
            "documentClock": self.document_clock,
            "tombstones": self.tombstones,
            "tombstoneHistoryStartsAtClock": self.tombstone_history_starts_at_clock,
            "schema": self.schema,
            "documents": [record.to_dict() for record in self.documents],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        """Build a snapshot from parsed JSON.

        Raises:
            ValueError: if ``data`` is not a JSON object or ``documents`` is not a list
        """
        if not isinstance(data, dict):
            raise ValueError(f"snapshot must be a JSON object, got {type(data).__name__}")
        documents = data.get("documents") or []
        if not isinstance(documents, list):
            raise ValueError("snapshot 'documents' must be a list")
        schema = data.get("schema")
        return cls(
            clock=data.get("clock") or 0,
            document_clock=data.get("documentClock") or 0,
            tombstones=data.get("tombstones") or {},
            tombstone_history_starts_at_clock=data.get("tombstoneHistoryStartsAtClock") or 1,
            schema=copy.deepcopy(schema) if schema is not None else default_schema(),
            documents=[RawRecord.from_dict(doc) for doc in documents],
        )
