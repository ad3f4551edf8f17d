"""Turn a file path into an Identified field set or an Unclassifiable verdict."""

import logging
from pathlib import Path
from typing import Callable, Dict

from ..exceptions import MetadataError
from ..models.sorting import ClassificationResult, Identified, Unclassifiable
from .metadata import MetadataHandler

logger = logging.getLogger(__name__)

Decoder = Callable[[Path], Dict[str, str]]


class DicomClassifier:
    """Classify files by decoding their DICOM header.

    Decoding failures are a normal outcome and never raise. A file that
    cannot be opened at all is reported as a transient Unclassifiable so the
    caller can leave it in place for a later cycle.
    """

    def __init__(self, decoder: Decoder = MetadataHandler.read_fields):
        self.decoder = decoder

    def classify(self, file_path: Path) -> ClassificationResult:
        try:
            fields = self.decoder(file_path)
        except MetadataError as e:
            logger.debug(f"Unclassifiable file {file_path}: {e}")
            return Unclassifiable(reason=str(e))
        except OSError as e:
            logger.warning(f"Unable to open {file_path}, will retry later: {e}")
            return Unclassifiable(reason=str(e), transient=True)

        if not fields:
            return Unclassifiable(reason="no sortable header fields")
        return Identified(fields)
