"""Graph walker: breadth-first traversal of linked rooms from the single root.

There is no global index of rooms. The walker unpacks the root room, follows
the links that unpacking discovered, and repeats for every child room it
reaches. The traversal state is an immutable value: each step takes a state
and returns the next one, so a run can be stepped through one room at a time.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

from loguru import logger

from canvassync.config.schema import Config, LayoutConfig
from canvassync.sync.errors import (
    CanvasSyncError,
    FatalConfigError,
    MalformedJSONError,
    MissingSnapshotError,
    WriteFailureError,
)
from canvassync.sync.tree import iter_dirs
from canvassync.sync.unpacker import Unpacker


@dataclass(frozen=True)
class TraversalState:
    """Reachability bookkeeping of one unpack run."""

    root: Path
    queue: Tuple[Path, ...] = ()
    visited: FrozenSet[str] = frozenset()  # Room ids
    visited_paths: Tuple[Path, ...] = ()  # In visiting order
    widget_dirs: FrozenSet[Path] = frozenset()  # Processed (or protected) widget directories
    candidates: FrozenSet[Path] = frozenset()  # Room directories possibly unreferenced
    failed_rooms: Tuple[Path, ...] = ()
    problems: Tuple[CanvasSyncError, ...] = field(default=())

    @classmethod
    def start(cls, root: Path) -> "TraversalState":
        return cls(root=root, queue=(root,))

    @property
    def done(self) -> bool:
        return not self.queue


def find_root_room(repo_root: Path, layout: Optional[LayoutConfig] = None) -> Path:
    """Locate the single ``room-*`` directory directly under the repository root.

    Raises:
        FatalConfigError: if there is no such directory or more than one
    """
    layout = layout or LayoutConfig()
    rooms = list(iter_dirs(Path(repo_root), lambda p: layout.is_room_dir_name(p.name)))

    if not rooms:
        raise FatalConfigError(
            f"No root room directory found! Expected exactly one {layout.room_prefix}* "
            f"directory in {repo_root}.",
            Path(repo_root),
        )
    if len(rooms) > 1:
        names = ", ".join(room.name for room in rooms)
        raise FatalConfigError(
            f"Multiple root room directories found: {names}. Expected exactly one "
            f"{layout.room_prefix}* directory in {repo_root}.",
            Path(repo_root),
        )
    return rooms[0]


def visit_next(state: TraversalState, unpacker: Unpacker) -> TraversalState:
    """Pop the next room off the queue, unpack it and return the new state."""
    if state.done:
        return state

    room_path, rest = state.queue[0], state.queue[1:]
    room_id = room_path.name
    layout = unpacker.layout

    if room_id in state.visited:
        logger.warning(f"Room {room_id} already visited, skipping duplicate at {room_path}")
        return replace(state, queue=rest)

    logger.info(f"Processing room: {room_id}")
    try:
        result = unpacker.unpack_room(room_path)
    except MissingSnapshotError as e:
        logger.warning(f"{e} at {room_path}")
        return replace(state, queue=rest, problems=state.problems + (e,))
    except (MalformedJSONError, WriteFailureError, OSError) as e:
        logger.error(f"Error unpacking room {room_id}: {e}")
        error = e if isinstance(e, CanvasSyncError) else WriteFailureError(str(e), room_path)
        # Keep what is on disk: nothing of a failed room is known to be stale.
        existing_widgets = iter_dirs(room_path, lambda p: layout.is_widget_dir_name(p.name))
        return replace(
            state,
            queue=rest,
            visited=state.visited | {room_id},
            visited_paths=state.visited_paths + (room_path,),
            widget_dirs=state.widget_dirs | frozenset(existing_widgets),
            failed_rooms=state.failed_rooms + (room_path,),
            problems=state.problems + (error,),
        )

    visited = state.visited | {room_id}
    children = frozenset(iter_dirs(room_path, lambda p: layout.is_room_dir_name(p.name)))
    candidates = set(state.candidates | children)
    queue = list(rest)

    for link in result.links:
        target = link.target_canvas_id
        child_path = room_path / target
        candidates.discard(child_path)
        if target in visited or child_path in queue:
            logger.warning(
                f"Canvas-link {link.link_shape_id} in {room_id} points to already reached room "
                f"{target}; not following it again"
            )
            continue
        queue.append(child_path)

    return replace(
        state,
        queue=tuple(queue),
        visited=visited,
        visited_paths=state.visited_paths + (room_path,),
        widget_dirs=state.widget_dirs | frozenset(result.widget_dirs),
        candidates=frozenset(candidates),
        problems=state.problems + tuple(result.broken_links) + tuple(result.rejected_widgets),
    )


def walk(repo_root: Path, unpacker: Optional[Unpacker] = None, config: Optional[Config] = None) -> TraversalState:
    """Unpack every room reachable from the root room.

    Raises:
        FatalConfigError: if the root room cannot be identified
    """
    repo_root = Path(repo_root)
    unpacker = unpacker or Unpacker(repo_root, config)
    root = find_root_room(repo_root, unpacker.layout)

    logger.info(f"Starting graph traversal from root: {root.name}")
    state = TraversalState.start(root)
    while not state.done:
        state = visit_next(state, unpacker)

    logger.info(f"Graph traversal completed. Processed {len(state.visited)} rooms.")
    return state
