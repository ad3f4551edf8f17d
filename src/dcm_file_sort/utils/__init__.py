"""Utility functions for the DICOM file sorter."""

from dcm_file_sort.utils.security import PathValidationError, SecurityUtils

__all__ = [
    "PathValidationError",
    "SecurityUtils",
]
