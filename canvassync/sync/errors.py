"""Error taxonomy for pack and unpack runs."""

from pathlib import Path
from typing import Optional


class CanvasSyncError(Exception):
    """Base class for all canvassync errors."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class FatalConfigError(CanvasSyncError):
    """The repository layout cannot be synced at all (zero or several root rooms)."""


class MissingSnapshotError(CanvasSyncError):
    """A room directory has no ``canvas-state.json``."""


class MalformedJSONError(CanvasSyncError):
    """A JSON file could not be parsed or has the wrong top-level shape."""


class IncompleteWidgetError(CanvasSyncError):
    """A widget directory lacks one of its four required files."""

    def __init__(self, path: Path, missing: list[str]):
        super().__init__(f"Incomplete widget {path.name}: missing {', '.join(missing)}", path)
        self.missing = missing


class BrokenLinkError(CanvasSyncError):
    """A link shape targets a room directory that does not exist."""


class WriteFailureError(CanvasSyncError):
    """One or more files of a room could not be written."""


class UnsafeDeletionError(CanvasSyncError):
    """Refused to delete a path that is not a deletable room or widget."""


class InvalidShapeIdError(CanvasSyncError):
    """A widget shape id does not map to a single directory name."""
