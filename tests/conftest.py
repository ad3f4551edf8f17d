"""Shared fixtures for DICOM file sorter tests."""

import os
import time
from pathlib import Path
from typing import Optional

import pytest
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.uid import CTImageStorage, ExplicitVRLittleEndian

from dcm_file_sort.models.config import Config, OtherConfig, PathsConfig


def write_dicom(
    path: Path,
    patient_id: Optional[str] = "P1",
    birth_date: Optional[str] = "19800101",
    modality: Optional[str] = "CT",
    sop_instance_uid: Optional[str] = "1.2.826.0.1.3680043.8.498.1",
    media_uid: Optional[str] = None,
) -> Path:
    """Write a minimal DICOM file with the given header values (None omits the element)."""
    meta = FileMetaDataset()
    meta.MediaStorageSOPClassUID = CTImageStorage
    meta.MediaStorageSOPInstanceUID = media_uid or sop_instance_uid or "1.2.826.0.1.3680043.8.498.99"
    meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = Dataset()
    ds.file_meta = meta
    ds.SOPClassUID = CTImageStorage
    if sop_instance_uid is not None:
        ds.SOPInstanceUID = sop_instance_uid
    if patient_id is not None:
        ds.PatientID = patient_id
    if birth_date is not None:
        ds.PatientBirthDate = birth_date
    if modality is not None:
        ds.Modality = modality

    path.parent.mkdir(parents=True, exist_ok=True)
    ds.save_as(path, enforce_file_format=True)
    return path


def age_file(path: Path, seconds: float = 3600) -> Path:
    """Push the modification time of ``path`` into the past."""
    past = time.time() - seconds
    os.utime(path, (past, past))
    return path


@pytest.fixture
def dicom_factory(tmp_path):
    """Return a callable writing DICOM files below ``tmp_path``."""
    def factory(relative: str, **kwargs) -> Path:
        return write_dicom(tmp_path / relative, **kwargs)
    return factory


@pytest.fixture
def roots(tmp_path):
    """Create input, output and unknown directories."""
    paths = PathsConfig(
        input_dir=tmp_path / "input",
        output_dir=tmp_path / "output",
        unknown_dir=tmp_path / "unknown",
    )
    for root in (paths.input_dir, paths.output_dir, paths.unknown_dir):
        root.mkdir()
    return paths


@pytest.fixture
def config(roots):
    """Configuration suited for fast tests: no settle time, no waits."""
    return Config(
        paths=roots,
        other=OtherConfig(
            wait_time_millisec=0,
            io_timeout_millisec=0,
            copy_attempts=3,
            remove_attempts=2,
            mtime_delay_secs=0,
        ),
    )
