"""Custom exceptions for the DICOM file sorter."""

from pathlib import Path
from typing import Optional


class DicomSortError(Exception):
    """Base exception for DICOM file sorter errors."""
    pass


class ConfigurationError(DicomSortError):
    """Raised when there's an error in configuration."""
    pass


class MetadataError(DicomSortError):
    """Raised when a file's DICOM header cannot be decoded."""
    pass


class PathGenerationError(DicomSortError):
    """Raised when a path generator cannot build a destination for a file."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class MissingRequiredFieldError(PathGenerationError):
    """Raised when a field the path generator depends on is absent or empty."""

    def __init__(self, field: str):
        super().__init__(field, f"Required field '{field}' is missing or empty")


class InvalidFieldValueError(PathGenerationError):
    """Raised when a field is present but cannot be used in a path."""

    def __init__(self, field: str, value: str, reason: str):
        super().__init__(field, f"Field '{field}' has unusable value {value!r}: {reason}")
        self.value = value


class FileOperationError(DicomSortError):
    """Raised when file operations fail."""
    pass


class TransientIOError(FileOperationError):
    """Raised when a file resource stayed busy for the whole retry budget."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class UniqueNameExhaustedError(FileOperationError):
    """Raised when no free destination name is found within the attempt limit."""

    def __init__(self, path: Path, attempts: int):
        super().__init__(
            f"No unique file path found for {path} after {attempts} attempts"
        )
        self.path = path
        self.attempts = attempts


class PartialMoveError(FileOperationError):
    """Raised when the copy succeeded but the source could not be removed."""

    def __init__(self, source: Path, destination: Path, cause: Optional[BaseException] = None):
        super().__init__(
            f"Copied {source} to {destination} but failed to remove the source: {cause}"
        )
        self.source = source
        self.destination = destination
