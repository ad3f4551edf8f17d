"""Discovery of settled files in the input directory."""

import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from ..exceptions import DicomSortError
from ..models.sorting import FileCandidate

logger = logging.getLogger(__name__)


class FileScanner:
    """Enumerate files old enough to be considered fully written.

    The walk is sorted by name at every level so batches are stable between
    cycles, and it stops as soon as ``max_batch`` candidates are found; the
    rest of the tree is picked up by later cycles.
    """

    def __init__(
        self,
        root: Path,
        settle_delay: float,
        max_batch: int,
        recursive: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.root = root
        self.settle_delay = settle_delay
        self.max_batch = max_batch
        self.recursive = recursive
        self.clock = clock

    def scan(self) -> List[FileCandidate]:
        """Return up to ``max_batch`` settled files under the root."""
        if not self.root.is_dir():
            raise DicomSortError(f"Input directory does not exist: {self.root}")

        now = self.clock()
        discovered_at = datetime.fromtimestamp(now)
        candidates = []
        unsettled = 0

        for entry in self._walk(self.root):
            try:
                stat = entry.stat(follow_symlinks=False)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Cannot stat {entry.path}: {e}")
                continue

            created = getattr(stat, "st_birthtime", None)
            if now - self.last_change(stat.st_mtime, created) < self.settle_delay:
                unsettled += 1
                continue

            candidates.append(FileCandidate(
                path=Path(entry.path),
                discovered_at=discovered_at,
                modified_at=datetime.fromtimestamp(stat.st_mtime),
                size=stat.st_size,
                created_at=datetime.fromtimestamp(created) if created is not None else None,
            ))
            if len(candidates) >= self.max_batch:
                logger.debug(f"Batch limit of {self.max_batch} reached, stopping scan")
                break

        if candidates or unsettled:
            logger.debug(
                f"Found {len(candidates)} settled files in {self.root} "
                f"({unsettled} still being written)"
            )
        return candidates

    @staticmethod
    def last_change(modified: float, created: Optional[float] = None) -> float:
        """Most recent of the modification and creation timestamps."""
        if created is None:
            return modified
        return max(modified, created)

    def _walk(self, directory: Path) -> Iterator[os.DirEntry]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except FileNotFoundError:
            # Removed between listing and descending
            return
        except OSError as e:
            logger.warning(f"Cannot read directory {directory}: {e}")
            return

        for entry in entries:
            try:
                if entry.is_file(follow_symlinks=False):
                    yield entry
                elif self.recursive and entry.is_dir(follow_symlinks=False):
                    yield from self._walk(Path(entry.path))
            except OSError as e:
                logger.warning(f"Skipping {entry.path}: {e}")
