"""Whole-repository pack and unpack runs."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

from canvassync.config.schema import Config
from canvassync.sync.collector import CollectionReport, collect_garbage
from canvassync.sync.errors import CanvasSyncError, MissingSnapshotError
from canvassync.sync.packer import Packer, PackReport
from canvassync.sync.unpacker import Unpacker
from canvassync.sync.walker import TraversalState, walk


@dataclass
class UnpackReport:
    """Summary of an unpack run: traversal plus garbage collection."""

    state: TraversalState
    collection: CollectionReport
    problems: List[CanvasSyncError] = field(default_factory=list)

    @property
    def failed_rooms(self) -> List[Path]:
        return list(self.state.failed_rooms)

    @property
    def warnings(self) -> List[str]:
        return [str(problem) for problem in self.problems] + self.collection.failures

    @property
    def ok(self) -> bool:
        """False when a room could not be parsed or written."""
        return not self.state.failed_rooms


def run_unpack(repo_root: Path, config: Optional[Config] = None) -> UnpackReport:
    """Unpack every reachable room, then remove unreachable rooms and widgets.

    Raises:
        FatalConfigError: if the repository does not hold exactly one root room
    """
    repo_root = Path(repo_root)
    config = config or Config()
    logger.info(f"Starting canvas state unpacking with graph traversal in {repo_root}")

    state = walk(repo_root, Unpacker(repo_root, config))
    collection = collect_garbage(repo_root, state, config.layout)
    report = UnpackReport(state=state, collection=collection, problems=list(state.problems))

    skipped = sum(1 for p in report.problems if isinstance(p, MissingSnapshotError))
    summary = (
        f"Unpacked {len(state.visited)} rooms, removed {len(collection.removed_widgets)} widgets "
        f"and {len(collection.removed_rooms)} rooms ({skipped} skipped, {len(state.failed_rooms)} failed)"
    )
    if report.ok:
        logger.success(summary)
    else:
        logger.warning(summary)
    return report


def run_pack(repo_root: Path, config: Optional[Config] = None, room: Optional[Path] = None) -> PackReport:
    """Pack every room of the tree, or only ``room`` when given."""
    packer = Packer(Path(repo_root), config)
    if room is None:
        return packer.pack_tree()

    report = PackReport()
    try:
        result = packer.write_room(Path(room))
    except (CanvasSyncError, OSError) as e:
        logger.error(f"Error generating canvas state for room {Path(room).name}: {e}")
        report.failed_rooms.append(Path(room))
        report.problems.append(e if isinstance(e, CanvasSyncError) else CanvasSyncError(str(e), Path(room)))
        return report
    report.results.append(result)
    report.problems.extend(result.problems)
    return report
