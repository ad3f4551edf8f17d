"""Value objects passed along the scan → classify → resolve → move pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Union

DEFAULT_EXTENSION = ".dcm"


@dataclass(slots=True, frozen=True)
class FileCandidate:
    """A settled file found in the input directory during one cycle."""
    path: Path
    discovered_at: datetime
    modified_at: datetime
    size: int
    created_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def extension(self) -> str:
        return self.path.suffix.lower()


@dataclass(slots=True, frozen=True)
class Identified:
    """Decoded header fields, keyed by logical field name."""
    fields: Mapping[str, str]

    def __post_init__(self):
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def get(self, name: str) -> Optional[str]:
        """Return the value of a logical field, or None when absent or blank."""
        value = self.fields.get(name)
        if value is None:
            return None
        value = value.strip()
        return value or None


@dataclass(slots=True, frozen=True)
class Unclassifiable:
    """The file could not be decoded.

    ``transient`` is set when the file could not even be opened (locked,
    permission denied); such files are retried in a later cycle instead of
    being routed to the unknown directory.
    """
    reason: str = ""
    transient: bool = False


ClassificationResult = Union[Identified, Unclassifiable]


@dataclass(slots=True, frozen=True)
class DestinationSpec:
    """Relative directory and base filename produced by a path generator."""
    directory: Path
    base_name: str
    extension: str = DEFAULT_EXTENSION

    def __post_init__(self):
        if self.directory.is_absolute() or self.directory.anchor:
            raise ValueError(f"Destination directory must be relative: {self.directory}")
        if any(part in ("..", ".") for part in self.directory.parts):
            raise ValueError(f"Destination directory contains traversal segments: {self.directory}")
        if self.base_name in ("", ".", "..") or "/" in self.base_name or "\\" in self.base_name:
            raise ValueError(f"Invalid base filename: {self.base_name!r}")

    @property
    def filename(self) -> str:
        return f"{self.base_name}{self.extension}"

    @property
    def relative_path(self) -> Path:
        return self.directory / self.filename

    @classmethod
    def keep_name(cls, name: str) -> "DestinationSpec":
        """Destination directly under the root, keeping the file's current name.

        Path separators are replaced with ``_``; ``\\`` is a legal character in
        POSIX file names but would split the name elsewhere.
        """
        path = Path(name.replace("/", "_").replace("\\", "_"))
        return cls(directory=Path(), base_name=path.stem, extension=path.suffix)


@dataclass(slots=True, frozen=True)
class ResolvedPath:
    """Collision-free absolute destination.

    ``already_present`` means an earlier move of this very source copied it
    to the path but was interrupted before deleting the source.
    """
    path: Path
    suffix_attempts: int = 0
    already_present: bool = False


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Bounded retry with a fixed delay between attempts."""
    attempts: int
    delay: float

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError("RetryPolicy needs at least one attempt")
        if self.delay < 0:
            raise ValueError("RetryPolicy delay cannot be negative")


class MoveStatus(Enum):
    """Result of relocating one file."""
    MOVED = "moved"
    TRANSIENT_FAILURE = "transient_failure"
    TERMINAL_FAILURE = "terminal_failure"
    PARTIAL = "partial"


@dataclass(slots=True, frozen=True)
class MoveOutcome:
    """What the mover did with a single file."""
    status: MoveStatus
    source: Path
    destination: Optional[Path] = None
    copy_attempts: int = 0
    remove_attempts: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == MoveStatus.MOVED


class Disposition(Enum):
    """Where a candidate ended up after one cycle."""
    ORGANIZED = "organized"
    UNKNOWN = "unknown"
    LEFT_IN_PLACE = "left_in_place"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass(slots=True)
class FileReport:
    """Per-file result of a processing cycle."""
    source: Path
    disposition: Disposition
    destination: Optional[Path] = None
    message: str = ""


@dataclass(slots=True)
class CycleReport:
    """Summary of one scan/process cycle."""
    started_at: datetime
    files: List[FileReport] = field(default_factory=list)
    interrupted: bool = False

    def count(self, disposition: Disposition) -> int:
        return sum(1 for report in self.files if report.disposition == disposition)

    def summary(self) -> Dict[str, int]:
        return {d.value: self.count(d) for d in Disposition}

    @property
    def processed(self) -> int:
        return len(self.files)
