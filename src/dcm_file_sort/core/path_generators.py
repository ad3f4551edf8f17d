"""Naming schemes mapping decoded DICOM fields to a destination.

Each scheme is one handler class registered under its PathGeneratorType.
Adding a scheme means adding an enum member and a class here.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import ClassVar, Dict, Optional, Type

from ..exceptions import InvalidFieldValueError, MissingRequiredFieldError
from ..models.config import PathGeneratorType
from ..models.sorting import DestinationSpec, Identified
from ..utils.security import SecurityUtils

logger = logging.getLogger(__name__)

_DATE_FORMATS = ("%Y%m%d", "%Y-%m-%d", "%Y.%m.%d")


def parse_dicom_date(value: Optional[str]) -> Optional[date]:
    """Parse a DICOM DA value (``YYYYMMDD``; ISO and legacy dotted forms accepted)."""
    if not value:
        return None
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


class PathGenerator(ABC):
    """Base class for destination naming schemes."""

    generator_type: ClassVar[PathGeneratorType]

    @abstractmethod
    def generate(self, data: Identified) -> DestinationSpec:
        """Build the destination for an identified file.

        Raises:
            MissingRequiredFieldError: A field the scheme needs is absent or empty
            InvalidFieldValueError: A field cannot be used in a path
        """

    @staticmethod
    def _require(data: Identified, name: str) -> str:
        value = data.get(name)
        if value is None:
            raise MissingRequiredFieldError(name)
        return value

    @classmethod
    def _component(cls, data: Identified, name: str) -> str:
        return SecurityUtils.sanitize_component(name, cls._require(data, name))


class DefaultPathGenerator(PathGenerator):
    """``<patient id>/<YYYY-MM-DD>/<MODALITY>_<SOP instance UID>.dcm``"""

    generator_type = PathGeneratorType.DEFAULT

    def generate(self, data: Identified) -> DestinationSpec:
        patient_id = self._component(data, "patient_id")
        raw_dob = self._require(data, "date_of_birth")
        dob = parse_dicom_date(raw_dob)
        if dob is None:
            raise InvalidFieldValueError("date_of_birth", raw_dob, "not a valid DICOM date")
        modality = self._component(data, "modality")
        uid = self._component(data, "sop_instance_uid")

        return DestinationSpec(
            directory=Path(patient_id) / dob.isoformat(),
            base_name=f"{modality}_{uid}",
        )


class UZGPathGenerator(PathGenerator):
    """``<MMDD>/<patient id>/<MODALITY>.<SOP instance UID>.dcm``

    Without a usable date of birth the month and day are taken from the
    patient id when it starts with ``YYMMDD``. When that fails too the
    directory becomes ``patient_id/<patient id>``.
    """

    generator_type = PathGeneratorType.UZG

    def generate(self, data: Identified) -> DestinationSpec:
        patient_id = self._component(data, "patient_id")
        modality = self._component(data, "modality")
        uid = self._component(data, "sop_instance_uid")

        month_day = self._month_day(data)
        if month_day is None:
            logger.debug(f"No date of birth for patient {patient_id}, using patient_id directory")
            directory = Path("patient_id") / patient_id
        else:
            directory = Path(month_day) / patient_id

        return DestinationSpec(directory=directory, base_name=f"{modality}.{uid}")

    @staticmethod
    def _month_day(data: Identified) -> Optional[str]:
        dob = parse_dicom_date(data.get("date_of_birth"))
        if dob is not None:
            return f"{dob.month:02d}{dob.day:02d}"

        # Patient ids of the form YYMMDD... carry the birth date
        pid = data.get("patient_id") or ""
        head = pid[:6]
        if len(head) < 6 or not head.isdigit():
            return None
        month, day = int(head[2:4]), int(head[4:6])
        try:
            date(2000, month, day)  # leap year, so 0229 is accepted
        except ValueError:
            return None
        return f"{month:02d}{day:02d}"


PATH_GENERATORS: Dict[PathGeneratorType, Type[PathGenerator]] = {
    PathGeneratorType.DEFAULT: DefaultPathGenerator,
    PathGeneratorType.UZG: UZGPathGenerator,
}


def create_path_generator(generator_type: PathGeneratorType) -> PathGenerator:
    """Instantiate the handler registered for ``generator_type``."""
    return PATH_GENERATORS[generator_type]()
