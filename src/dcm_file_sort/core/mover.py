"""File operations for relocating sorted DICOM files."""

import errno
import filecmp
import logging
import os
import shutil
import time
from pathlib import Path
from typing import Callable, List, Optional

from ..exceptions import PartialMoveError, TransientIOError
from ..models.sorting import MoveOutcome, MoveStatus, ResolvedPath, RetryPolicy

logger = logging.getLogger(__name__)

# errno values meaning "someone else holds the file right now"
BUSY_ERRNOS = {errno.EBUSY, errno.EACCES, errno.EAGAIN, errno.ETXTBSY}
# ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION
BUSY_WINERRORS = {32, 33}
# ERROR_NOT_SAME_DEVICE
CROSS_DEVICE_WINERROR = 17

PARTIAL_SUFFIX = ".partial"
PENDING_SUFFIX = ".pending"


def is_busy_error(error: OSError) -> bool:
    """Return True for errors worth retrying after a short wait."""
    if isinstance(error, (PermissionError, BlockingIOError)):
        return True
    if getattr(error, "winerror", None) in BUSY_WINERRORS:
        return True
    return error.errno in BUSY_ERRNOS


def is_cross_device_error(error: OSError) -> bool:
    return error.errno == errno.EXDEV or getattr(error, "winerror", None) == CROSS_DEVICE_WINERROR


def pending_marker(destination: Path) -> Path:
    """Hidden file beside ``destination`` naming the source whose delete is outstanding."""
    return destination.with_name(f".{destination.name}{PENDING_SUFFIX}")


class FileMover:
    """Move files into place with bounded retries.

    Same-volume moves are a single rename. Cross-volume moves copy to a hidden
    temporary file beside the destination, verify it byte for byte, rename it
    into place and only then delete the source. Until the source is gone a
    pending marker beside the destination records which file it came from,
    so an interrupted move can be told apart from an unrelated file with the
    same bytes. Copy/rename and delete each have their own retry budget.
    """

    def __init__(
        self,
        copy_policy: RetryPolicy,
        remove_policy: RetryPolicy,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.copy_policy = copy_policy
        self.remove_policy = remove_policy
        self.sleep = sleep

    def move(self, source: Path, resolved: ResolvedPath) -> MoveOutcome:
        """Relocate ``source`` to ``resolved.path``; never raises for per-file problems."""
        destination = resolved.path

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create directory {destination.parent}: {e}")
            return MoveOutcome(MoveStatus.TERMINAL_FAILURE, source, destination, error=str(e))

        if resolved.already_present:
            return self._remove_source(source, destination, copy_attempts=0)

        try:
            if self._same_device(source, destination.parent):
                try:
                    attempts = self._retry(
                        lambda: self._rename(source, destination),
                        self.copy_policy,
                        f"rename {source}",
                    )
                    logger.debug(f"Renamed {source} -> {destination}")
                    return MoveOutcome(MoveStatus.MOVED, source, destination, copy_attempts=attempts)
                except OSError as e:
                    if not is_cross_device_error(e):
                        raise
                    logger.debug(f"Rename across devices refused, copying {source} instead")

            attempts = self._retry(
                lambda: self._copy_verified(source, destination),
                self.copy_policy,
                f"copy {source}",
            )
            logger.debug(f"Copied {source} -> {destination}")

        except TransientIOError as e:
            logger.error(f"Giving up on {source} for now: {e}")
            return MoveOutcome(
                MoveStatus.TERMINAL_FAILURE, source, destination,
                copy_attempts=e.attempts, error=str(e),
            )
        except FileExistsError as e:
            logger.warning(f"Destination {destination} appeared before the move, retrying next cycle")
            return MoveOutcome(MoveStatus.TRANSIENT_FAILURE, source, destination, error=str(e))
        except FileNotFoundError as e:
            logger.error(f"Source {source} vanished before it could be moved: {e}")
            return MoveOutcome(MoveStatus.TERMINAL_FAILURE, source, destination, error=str(e))
        except OSError as e:
            logger.error(f"Failed to move {source} -> {destination}: {e}")
            return MoveOutcome(MoveStatus.TERMINAL_FAILURE, source, destination, error=str(e))

        return self._remove_source(source, destination, copy_attempts=attempts)

    def _retry(self, operation: Callable[[], None], policy: RetryPolicy, description: str) -> int:
        """Run ``operation`` until it succeeds; returns the number of attempts used.

        Busy errors are retried after ``policy.delay``; any other OSError
        propagates immediately. Raises TransientIOError once the budget is spent.
        """
        last_error: Optional[OSError] = None
        for attempt in range(1, policy.attempts + 1):
            try:
                operation()
                return attempt
            except OSError as e:
                if not is_busy_error(e):
                    raise
                last_error = e
                logger.debug(f"{description}: busy (attempt {attempt}/{policy.attempts}): {e}")
                if attempt < policy.attempts:
                    self.sleep(policy.delay)

        raise TransientIOError(
            f"{description} failed after {policy.attempts} attempts: {last_error}",
            attempts=policy.attempts,
        )

    def _remove_source(self, source: Path, destination: Path, copy_attempts: int) -> MoveOutcome:
        try:
            attempts = self._retry(lambda: self._unlink(source), self.remove_policy, f"remove {source}")
        except (TransientIOError, OSError) as e:
            error = PartialMoveError(source, destination, e)
            logger.error(f"PARTIAL MOVE: {error} (pending marker kept, next cycle retries the delete)")
            return MoveOutcome(
                MoveStatus.PARTIAL, source, destination,
                copy_attempts=copy_attempts,
                remove_attempts=getattr(e, "attempts", 1),
                error=str(error),
            )

        self._discard(pending_marker(destination))
        return MoveOutcome(
            MoveStatus.MOVED, source, destination,
            copy_attempts=copy_attempts, remove_attempts=attempts,
        )

    @staticmethod
    def _same_device(source: Path, directory: Path) -> bool:
        return os.stat(source).st_dev == os.stat(directory).st_dev

    @staticmethod
    def _rename(source: Path, destination: Path) -> None:
        # os.rename silently replaces an existing file on POSIX
        if os.path.lexists(destination):
            raise FileExistsError(errno.EEXIST, "Destination already exists", str(destination))
        os.rename(source, destination)

    @staticmethod
    def _copy_verified(source: Path, destination: Path) -> None:
        temp = destination.with_name(f".{destination.name}.{os.getpid()}{PARTIAL_SUFFIX}")
        marker = pending_marker(destination)
        try:
            shutil.copy2(source, temp)
            if not filecmp.cmp(source, temp, shallow=False):
                # The source changed while copying; treat it as still being written
                raise BlockingIOError(errno.EAGAIN, "Copy verification failed", str(source))
            marker.write_bytes(os.fsencode(source.absolute()))
            FileMover._rename(temp, destination)
        except BaseException:
            FileMover._discard(temp)
            FileMover._discard(marker)
            raise

    @staticmethod
    def clean_leftovers(root: Path) -> int:
        """Remove what interrupted copies left below ``root``.

        Temporary ``.partial`` files are always removed. A pending marker is
        removed once its destination or its recorded source is gone; markers of
        partial moves whose source still exists are kept. Assumes no other
        sorter instance writes below ``root`` at the same time.

        Returns the number of files removed.
        """
        removed = 0

        for directory, _, files in os.walk(root):
            for name in files:
                if not name.startswith("."):
                    continue
                path = Path(directory) / name

                if name.endswith(PARTIAL_SUFFIX):
                    stale = True
                elif name.endswith(PENDING_SUFFIX):
                    destination = path.with_name(name[1:-len(PENDING_SUFFIX)])
                    try:
                        source = Path(os.fsdecode(path.read_bytes()))
                    except OSError as e:
                        logger.warning(f"Unable to read pending marker {path}: {e}")
                        continue
                    stale = not destination.exists() or not os.path.lexists(source)
                else:
                    continue

                if stale:
                    logger.info(f"Removing leftover {path}")
                    FileMover._discard(path)
                    removed += 1

        return removed

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Unable to remove temporary file {path}: {e}")

    @staticmethod
    def _unlink(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"Source {path} already removed")


class DirectoryOrganizer:
    """Helpers for keeping the input tree tidy."""

    @staticmethod
    def get_empty_directories(base_path: Path) -> List[Path]:
        """Find empty sub-directories, deepest first; never includes ``base_path``."""
        empty_dirs = []
        emptied = set()

        for root, dirs, files in os.walk(base_path, topdown=False):
            path = Path(root)
            if path == base_path:
                continue
            if not files and all(path / d in emptied for d in dirs):
                empty_dirs.append(path)
                emptied.add(path)

        return empty_dirs

    @staticmethod
    def remove_empty_directories(base_path: Path, min_age: float = 0.0, now: Optional[float] = None) -> int:
        """Remove empty sub-directories not modified for ``min_age`` seconds.

        Returns the number of directories removed. A directory that gains an
        entry in the meantime is simply kept.
        """
        now = time.time() if now is None else now
        removed = 0

        for directory in DirectoryOrganizer.get_empty_directories(base_path):
            try:
                if min_age and now - directory.stat().st_mtime < min_age:
                    continue
                directory.rmdir()
                removed += 1
                logger.debug(f"Removed empty directory {directory}")
            except OSError as e:
                logger.debug(f"Kept directory {directory}: {e}")

        return removed
