"""Core DICOM file sorter modules."""

from .classifier import DicomClassifier
from .conflict_resolver import ConflictResolver
from .mover import DirectoryOrganizer, FileMover
from .organizer import DicomFileSorter, OrchestratorState, ShutdownSignal
from .path_generators import (
    DefaultPathGenerator,
    PathGenerator,
    UZGPathGenerator,
    create_path_generator,
)
from .scanner import FileScanner

__all__ = [
    'DicomClassifier',
    'ConflictResolver',
    'DirectoryOrganizer',
    'FileMover',
    'DicomFileSorter',
    'OrchestratorState',
    'ShutdownSignal',
    'DefaultPathGenerator',
    'PathGenerator',
    'UZGPathGenerator',
    'create_path_generator',
    'FileScanner',
]
