"""Collision-free destination names."""

import filecmp
import logging
import os
from pathlib import Path
from typing import Iterator, Optional, Tuple

from ..exceptions import FileOperationError, UniqueNameExhaustedError
from ..models.sorting import DestinationSpec, ResolvedPath
from ..utils.security import PathValidationError, SecurityUtils
from .mover import pending_marker

logger = logging.getLogger(__name__)


class ConflictResolver:
    """Resolve name collisions by appending ``-1``, ``-2``, ... to the base name.

    The existence check and the later move are separate steps; a foreign
    writer creating the same name in between is not prevented here.
    """

    def __init__(self, limit: int = 1000):
        self.limit = limit

    def resolve(self, root: Path, spec: DestinationSpec, source: Optional[Path] = None) -> ResolvedPath:
        """Return the first free path for ``spec`` under ``root``.

        When ``source`` is given and an occupied candidate carries a pending
        marker naming that source and holds identical bytes, the candidate is
        returned with ``already_present`` set: an earlier move copied it there
        but never removed the source. Identical bytes alone never count.

        Raises:
            UniqueNameExhaustedError: If all ``limit`` suffixed names are taken
            FileOperationError: If the destination would escape ``root``
        """
        first = root / spec.relative_path
        try:
            SecurityUtils.is_valid_path(first, root)
        except PathValidationError as e:
            raise FileOperationError(f"Refusing destination {first}: {e}") from e

        for attempt, candidate in self._candidates(root, spec):
            if not os.path.lexists(candidate):
                if attempt:
                    logger.debug(f"{first.name} taken, using {candidate.name}")
                return ResolvedPath(candidate, suffix_attempts=attempt)

            if source is not None and self._interrupted_move(source, candidate):
                logger.info(f"Finishing interrupted move of {source.name} to {candidate}")
                return ResolvedPath(candidate, suffix_attempts=attempt, already_present=True)

        raise UniqueNameExhaustedError(first, self.limit)

    def _candidates(self, root: Path, spec: DestinationSpec) -> Iterator[Tuple[int, Path]]:
        directory = root / spec.directory
        yield 0, directory / spec.filename
        for i in range(1, self.limit + 1):
            yield i, directory / f"{spec.base_name}-{i}{spec.extension}"

    @staticmethod
    def _interrupted_move(source: Path, candidate: Path) -> bool:
        try:
            if pending_marker(candidate).read_bytes() != os.fsencode(source.absolute()):
                return False
            return candidate.is_file() and filecmp.cmp(source, candidate, shallow=False)
        except OSError:
            return False
