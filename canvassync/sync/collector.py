"""Reachability collector: removes rooms and widgets the last traversal did not reach."""

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

from canvassync.config.schema import LayoutConfig
from canvassync.sync.tree import iter_dirs
from canvassync.sync.walker import TraversalState


@dataclass
class CollectionReport:
    """Directories removed (or not) by one collection pass."""

    removed_widgets: List[Path] = field(default_factory=list)
    removed_rooms: List[Path] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return len(self.removed_widgets) + len(self.removed_rooms)


def _remove_tree(path: Path, report: CollectionReport) -> bool:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        # Already gone, e.g. inside a room removed earlier in the same pass
        return False
    except OSError as e:
        logger.error(f"Failed to remove directory {path}: {e}")
        report.failures.append(f"{path}: {e}")
        return False
    return True


def collect_widgets(repo_root: Path, state: TraversalState, layout: Optional[LayoutConfig] = None,
                    report: Optional[CollectionReport] = None) -> CollectionReport:
    """Remove every widget directory under the root that the traversal did not process."""
    layout = layout or LayoutConfig()
    report = report or CollectionReport()

    # Materialize first: the tree changes while we delete.
    widget_dirs = list(iter_dirs(Path(repo_root), lambda p: layout.is_widget_dir_name(p.name), recursive=True))
    for widget_dir in widget_dirs:
        if widget_dir in state.widget_dirs:
            continue
        logger.info(f"Removing old widget: {widget_dir.relative_to(repo_root)}")
        if _remove_tree(widget_dir, report):
            report.removed_widgets.append(widget_dir)

    logger.info(f"Cleaned up {len(report.removed_widgets)} old widget directories")
    return report


def collect_rooms(repo_root: Path, state: TraversalState,
                  report: Optional[CollectionReport] = None) -> CollectionReport:
    """Remove every room directory left as a deletion candidate after traversal."""
    report = report or CollectionReport()
    logger.info(
        f"Found {len(state.candidates)} unreferenced room directories, "
        f"{len(state.visited)} referenced rooms"
    )

    for room_dir in sorted(state.candidates):
        logger.info(f"Removing unreferenced room: {room_dir.name} at {room_dir}")
        if _remove_tree(room_dir, report):
            report.removed_rooms.append(room_dir)

    logger.info(f"Cleaned up {len(report.removed_rooms)} unreferenced room directories")
    return report


def collect_garbage(repo_root: Path, state: TraversalState,
                    layout: Optional[LayoutConfig] = None) -> CollectionReport:
    """Run the widget pass, then the room pass."""
    report = CollectionReport()
    collect_widgets(repo_root, state, layout, report)
    collect_rooms(repo_root, state, report)
    return report
