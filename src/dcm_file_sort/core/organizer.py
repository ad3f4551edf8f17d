"""Main sorting loop tying scanner, classifier, path generator and mover together."""

import logging
import threading
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from ..exceptions import DicomSortError, FileOperationError, PathGenerationError
from ..models.config import Config
from ..models.sorting import (
    CycleReport,
    DestinationSpec,
    Disposition,
    FileCandidate,
    FileReport,
    MoveStatus,
    Unclassifiable,
)
from .classifier import DicomClassifier
from .conflict_resolver import ConflictResolver
from .mover import DirectoryOrganizer, FileMover
from .path_generators import PathGenerator, create_path_generator
from .scanner import FileScanner

logger = logging.getLogger(__name__)


class OrchestratorState(Enum):
    """Lifecycle of the sorting loop."""
    IDLE = "idle"
    SCANNING = "scanning"
    PROCESSING_BATCH = "processing_batch"
    DRAINING = "draining"
    STOPPED = "stopped"


class ShutdownSignal:
    """Stop request shared between signal handlers and the main loop."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def request(self, reason: Optional[str] = None) -> None:
        """Ask the loop to stop. Only sets state, so it is safe inside a signal handler."""
        self.reason = reason
        self._event.set()

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; returns True as soon as a stop is requested."""
        return self._event.wait(timeout)


_MOVE_DISPOSITIONS = {
    MoveStatus.TRANSIENT_FAILURE: Disposition.LEFT_IN_PLACE,
    MoveStatus.TERMINAL_FAILURE: Disposition.FAILED,
    MoveStatus.PARTIAL: Disposition.PARTIAL,
}


class DicomFileSorter:
    """Poll the input directory and sort every settled file it finds.

    Each cycle scans one bounded batch and gives every candidate exactly one
    disposition. The shutdown signal is checked between files only, so a file
    that is being moved always finishes its move.
    """

    def __init__(
        self,
        config: Config,
        classifier: Optional[DicomClassifier] = None,
        path_generator: Optional[PathGenerator] = None,
        resolver: Optional[ConflictResolver] = None,
        mover: Optional[FileMover] = None,
        scanner: Optional[FileScanner] = None,
        shutdown: Optional[ShutdownSignal] = None,
    ):
        self.config = config
        other = config.other

        copy_policy, remove_policy = config.retry_policies()
        self.classifier = classifier or DicomClassifier()
        self.path_generator = path_generator or create_path_generator(config.generator_type)
        self.resolver = resolver or ConflictResolver(limit=other.limit_unique_filenames)
        self.mover = mover or FileMover(copy_policy, remove_policy)
        self.scanner = scanner or FileScanner(
            config.paths.input_dir,
            settle_delay=other.mtime_delay_secs,
            max_batch=other.limit_max_processed_files,
            recursive=other.recursive,
        )
        self.shutdown = shutdown or ShutdownSignal()
        self.state = OrchestratorState.IDLE

    @property
    def wait_time(self) -> float:
        return self.config.other.wait_time_millisec / 1000.0

    def run(self, max_cycles: Optional[int] = None) -> int:
        """Run cycles until shutdown is requested (or ``max_cycles`` ran).

        Returns the number of completed cycles.
        """
        logger.info(
            f"Sorting {self.config.paths.input_dir} into {self.config.paths.output_dir} "
            f"using {self.path_generator.generator_type.value}"
        )
        self.clean_leftovers()
        cycles = 0

        while not self.shutdown.requested:
            self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            if self.shutdown.wait(self.wait_time):
                break

        if self.shutdown.requested:
            logger.info(f"Stop requested ({self.shutdown.reason or 'shutdown'}), finishing")
        self._set_state(OrchestratorState.DRAINING)
        self._set_state(OrchestratorState.STOPPED)
        logger.info(f"Stopped after {cycles} cycle(s)")
        return cycles

    def clean_leftovers(self) -> int:
        """Remove temporary files and stale markers of interrupted moves."""
        paths = self.config.paths
        removed = 0
        for root in (paths.output_dir, paths.unknown_dir):
            if root.is_dir():
                removed += FileMover.clean_leftovers(root)
        return removed

    def run_cycle(self) -> CycleReport:
        """Scan one batch and process it."""
        report = CycleReport(started_at=datetime.now())

        self._set_state(OrchestratorState.SCANNING)
        try:
            candidates = self.scanner.scan()
        except DicomSortError as e:
            logger.error(f"Scan failed: {e}")
            candidates = []

        self._set_state(OrchestratorState.PROCESSING_BATCH)
        for index, candidate in enumerate(candidates):
            if self.shutdown.requested:
                report.interrupted = True
                logger.info(
                    f"Shutdown requested, leaving {len(candidates) - index} file(s) for the next run"
                )
                break
            report.files.append(self.process_candidate(candidate))

        if not report.interrupted and self.config.other.remove_empty_dirs:
            DirectoryOrganizer.remove_empty_directories(
                self.config.paths.input_dir,
                min_age=self.config.other.mtime_delay_secs,
            )

        if report.files:
            counts = ", ".join(f"{name}={count}" for name, count in report.summary().items() if count)
            logger.info(f"Cycle finished: {report.processed} file(s) ({counts})")

        self._set_state(OrchestratorState.DRAINING if report.interrupted else OrchestratorState.IDLE)
        return report

    def process_candidate(self, candidate: FileCandidate) -> FileReport:
        """Give one candidate its disposition; never raises."""
        source = candidate.path
        try:
            result = self.classifier.classify(source)

            if isinstance(result, Unclassifiable):
                if result.transient:
                    return FileReport(source, Disposition.LEFT_IN_PLACE, message=result.reason)
                return self._route_unknown(candidate, result.reason)

            try:
                spec = self.path_generator.generate(result)
            except PathGenerationError as e:
                return self._route_unknown(candidate, str(e))

            return self._relocate(candidate, self.config.paths.output_dir, spec, Disposition.ORGANIZED)

        except FileOperationError as e:
            logger.error(f"Cannot place {source}: {e}")
            return FileReport(source, Disposition.FAILED, message=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error while processing {source}")
            return FileReport(source, Disposition.FAILED, message=str(e))

    def _route_unknown(self, candidate: FileCandidate, reason: str) -> FileReport:
        logger.warning(f"Moving {candidate.name} to unknown directory: {reason}")
        spec = DestinationSpec.keep_name(candidate.name)
        report = self._relocate(candidate, self.config.paths.unknown_dir, spec, Disposition.UNKNOWN)
        if not report.message:
            report.message = reason
        return report

    def _relocate(
        self,
        candidate: FileCandidate,
        root: Path,
        spec: DestinationSpec,
        disposition: Disposition,
    ) -> FileReport:
        resolved = self.resolver.resolve(root, spec, source=candidate.path)
        outcome = self.mover.move(candidate.path, resolved)

        if outcome.succeeded:
            if disposition == Disposition.ORGANIZED:
                logger.info(f"Moved {candidate.path} -> {outcome.destination}")
            return FileReport(candidate.path, disposition, destination=outcome.destination)

        return FileReport(
            candidate.path,
            _MOVE_DISPOSITIONS[outcome.status],
            destination=outcome.destination,
            message=outcome.error or "",
        )

    def _set_state(self, state: OrchestratorState) -> None:
        if state != self.state:
            logger.debug(f"State {self.state.value} -> {state.value}")
            self.state = state
