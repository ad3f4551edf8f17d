"""Data models for the DICOM file sorter."""

from .config import Config, PathGeneratorType
from .sorting import (
    ClassificationResult,
    CycleReport,
    DestinationSpec,
    Disposition,
    FileCandidate,
    FileReport,
    Identified,
    MoveOutcome,
    MoveStatus,
    ResolvedPath,
    RetryPolicy,
    Unclassifiable,
)

__all__ = [
    "Config",
    "PathGeneratorType",
    "ClassificationResult",
    "CycleReport",
    "DestinationSpec",
    "Disposition",
    "FileCandidate",
    "FileReport",
    "Identified",
    "MoveOutcome",
    "MoveStatus",
    "ResolvedPath",
    "RetryPolicy",
    "Unclassifiable",
]
