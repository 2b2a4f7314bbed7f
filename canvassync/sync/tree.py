"""Directory walking and file helpers shared by pack, unpack and collection."""

import json
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional

from loguru import logger

from canvassync.sync.errors import MalformedJSONError, WriteFailureError

DirPredicate = Callable[[Path], bool]


def _is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


def iter_dirs(
    root: Path,
    match: DirPredicate,
    recursive: bool = False,
    descend: Optional[DirPredicate] = None,
    into_matches: bool = False,
) -> Iterator[Path]:
    """Yield directories under ``root`` accepted by ``match``, sorted by name.

    Args:
        root: Directory to scan. A missing or unreadable root yields nothing.
        match: Predicate selecting the directories to yield.
        recursive: Also scan below ``root``'s immediate children.
        descend: When recursive, predicate selecting which directories to
            descend into. Defaults to every non-hidden one.
        into_matches: When recursive, also descend into matched directories
            (rooms nest rooms; widgets never nest widgets).

    Matches are yielded before their own subdirectories. The generator is
    lazy and can be restarted by calling it again.
    """
    try:
        entries = sorted((p for p in root.iterdir() if p.is_dir()), key=lambda p: p.name)
    except OSError as e:
        logger.debug(f"Cannot scan {root}: {e}")
        return

    for entry in entries:
        matched = match(entry)
        if matched:
            yield entry
        if not recursive or (matched and not into_matches):
            continue
        if descend(entry) if descend else not _is_hidden(entry):
            yield from iter_dirs(entry, match, True, descend, into_matches)


def read_json(path: Path) -> Any:
    """Parse a JSON file.

    Raises:
        FileNotFoundError: if the file does not exist
        MalformedJSONError: if the file is not valid JSON
    """
    raw = path.read_bytes()
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedJSONError(f"Malformed JSON in {path}: {e}", path) from e


def read_json_or_default(path: Path, default: Any) -> Any:
    """Parse a JSON file, returning ``default`` when it is missing."""
    if not path.is_file():
        return default
    return read_json(path)


def read_blob(path: Path) -> str:
    """Read an opaque text blob as stored (no newline translation).

    Bytes that are not valid UTF-8 decode to U+FFFD instead of failing.
    """
    return path.read_bytes().decode("utf-8", errors="replace")


def is_plain_name(name: str) -> bool:
    """True if ``name`` is a single directory entry name, never a path."""
    return (
        bool(name)
        and name not in (".", "..")
        and "/" not in name
        and "\\" not in name
        and Path(name).name == name
    )


def dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _strip_keys(data: Any, keys: Iterable[str]) -> Any:
    if not isinstance(data, dict):
        return data
    skip = set(keys)
    return {k: v for k, v in data.items() if k not in skip}


def write_blob(path: Path, content: str) -> bool:
    """Write text as UTF-8 bytes unless the file already holds exactly that.

    Returns:
        True if the file was written

    Raises:
        WriteFailureError: on any OS error
    """
    # Lone surrogates (half an emoji) are not encodable; they become "?"
    data = content.encode("utf-8", errors="replace")
    try:
        if path.is_file() and path.read_bytes() == data:
            return False
        path.write_bytes(data)
    except OSError as e:
        raise WriteFailureError(f"Failed to write {path}: {e}", path) from e
    logger.debug(f"Wrote {path}")
    return True


def write_json(path: Path, data: Any, volatile: Iterable[str] = ()) -> bool:
    """Write ``data`` as indented JSON unless the file already holds it.

    Top-level keys listed in ``volatile`` are ignored when comparing with the
    existing file, so a timestamp alone never causes a rewrite.

    Returns:
        True if the file was written

    Raises:
        WriteFailureError: on any OS error
    """
    volatile = tuple(volatile)
    if volatile and path.is_file():
        try:
            existing = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            existing = None
        if existing is not None and _strip_keys(existing, volatile) == _strip_keys(data, volatile):
            return False
    return write_blob(path, dump_json(data))


def ensure_dir(path: Path) -> Path:
    """Create ``path`` (and parents) if needed.

    Raises:
        WriteFailureError: if the directory cannot be created
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteFailureError(f"Failed to create directory {path}: {e}", path) from e
    return path
