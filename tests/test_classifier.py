"""Tests for DICOM classification."""

import errno
from pathlib import Path

from dcm_file_sort.core.classifier import DicomClassifier
from dcm_file_sort.exceptions import MetadataError
from dcm_file_sort.models.sorting import Identified, Unclassifiable


class TestDicomClassifier:
    """Test DicomClassifier."""

    def test_identifies_dicom_file(self, dicom_factory):
        path = dicom_factory("in/a.dcm", patient_id="P7")

        result = DicomClassifier().classify(path)

        assert isinstance(result, Identified)
        assert result.get("patient_id") == "P7"

    def test_unclassifiable_file(self, tmp_path):
        path = tmp_path / "junk.bin"
        path.write_bytes(b"\x01\x02\x03")

        result = DicomClassifier().classify(path)

        assert isinstance(result, Unclassifiable)
        assert result.transient is False

    def test_decoder_error_is_unclassifiable(self):
        def decoder(path: Path):
            raise MetadataError("broken header")

        result = DicomClassifier(decoder=decoder).classify(Path("x.dcm"))

        assert result == Unclassifiable(reason="broken header")

    def test_locked_file_is_transient(self):
        def decoder(path: Path):
            raise PermissionError(errno.EACCES, "locked")

        result = DicomClassifier(decoder=decoder).classify(Path("x.dcm"))

        assert isinstance(result, Unclassifiable)
        assert result.transient is True

    def test_no_fields_is_unclassifiable(self):
        result = DicomClassifier(decoder=lambda path: {}).classify(Path("x.dcm"))

        assert isinstance(result, Unclassifiable)
        assert not result.transient


class TestIdentified:
    """Test the Identified field accessor."""

    def test_blank_value_is_absent(self):
        data = Identified({"patient_id": "  ", "modality": " CT "})

        assert data.get("patient_id") is None
        assert data.get("modality") == "CT"
        assert data.get("missing") is None

    def test_fields_are_read_only(self):
        source = {"patient_id": "P1"}
        data = Identified(source)
        source["patient_id"] = "P2"

        assert data.get("patient_id") == "P1"
