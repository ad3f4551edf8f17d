"""DICOM header decoding using pydicom."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import pydicom
from pydicom.errors import InvalidDicomError
from pydicom.multival import MultiValue

from ..exceptions import MetadataError

logger = logging.getLogger(__name__)

# Logical field name -> DICOM keyword
DICOM_FIELDS: Dict[str, str] = {
    "patient_id": "PatientID",
    "date_of_birth": "PatientBirthDate",
    "modality": "Modality",
    "sop_instance_uid": "SOPInstanceUID",
    "study_instance_uid": "StudyInstanceUID",
    "series_instance_uid": "SeriesInstanceUID",
    "patient_name": "PatientName",
}


class MetadataHandler:
    """Read the header fields used for sorting from a DICOM file."""

    @staticmethod
    def read_fields(file_path: Path) -> Dict[str, str]:
        """Decode ``file_path`` and return the non-empty logical fields.

        OSError (missing, locked or unreadable file) is propagated unchanged;
        anything that goes wrong while decoding becomes a MetadataError.
        """
        try:
            dataset = pydicom.dcmread(
                file_path,
                stop_before_pixels=True,
                specific_tags=list(DICOM_FIELDS.values()),
            )
        except OSError:
            raise
        except InvalidDicomError as e:
            raise MetadataError(f"Not a DICOM file: {file_path}: {e}") from e
        except Exception as e:
            raise MetadataError(f"Failed to decode {file_path}: {e}") from e

        fields: Dict[str, str] = {}
        try:
            for name, keyword in DICOM_FIELDS.items():
                value = MetadataHandler._clean(dataset.get(keyword))
                if value:
                    fields[name] = value

            if "sop_instance_uid" not in fields:
                file_meta = getattr(dataset, "file_meta", None)
                if file_meta is not None:
                    value = MetadataHandler._clean(file_meta.get("MediaStorageSOPInstanceUID"))
                    if value:
                        fields["sop_instance_uid"] = value
        except Exception as e:
            raise MetadataError(f"Failed to read header values from {file_path}: {e}") from e

        logger.debug(f"Decoded {file_path}: {fields}")
        return fields

    @staticmethod
    def _clean(value: Any) -> Optional[str]:
        """Convert a DICOM value to text without NUL padding or surrounding blanks."""
        if value is None:
            return None
        if isinstance(value, MultiValue):
            text = "\\".join(str(v) for v in value)
        elif isinstance(value, bytes):
            text = value.decode("ascii", errors="replace")
        else:
            text = str(value)
        text = text.replace("\x00", "").strip()
        return text or None
