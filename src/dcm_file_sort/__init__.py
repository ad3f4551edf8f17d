"""DICOM file sorter

A service that moves incoming DICOM files into a directory tree derived from
their header fields.
"""

__version__ = "0.1.0"
