"""Error families raised by the ingestion pipeline and its services."""

from __future__ import annotations


class IngestError(ValueError):
    """Raised when an ingestion operation fails."""

    status_code = 400


class BatchRejected(IngestError):
    """Submission violated batch limits (file count, size, type)."""


class BatchNotFound(IngestError):
    status_code = 404


class StagedRecordNotFound(IngestError):
    status_code = 404


class ValidationLogNotFound(IngestError):
    status_code = 404


class SalesRecordNotFound(IngestError):
    status_code = 404


class InvalidStatusTransition(IngestError):
    status_code = 409


class DetectionAmbiguous(IngestError):
    """No vendor profile matched confidently and ambiguity is not tolerated."""

    def __init__(self, file_name: str, confidence: int):
        super().__init__(
            f"Could not confidently detect the POS format of {file_name} "
            f"(confidence {confidence}); choose a format explicitly"
        )
        self.file_name = file_name
        self.confidence = confidence


class ExtractionError(IngestError):
    """A document could not be turned into a canonical record."""

    MISSING_REQUIRED_FIELD = "missing_required_field"
    UNREADABLE_DOCUMENT = "unreadable_document"
    UNSUPPORTED_FORMAT = "unsupported_format"
    UNSUPPORTED_LAYOUT = "unsupported_layout"

    def __init__(self, message: str, *, kind: str = UNREADABLE_DOCUMENT):
        super().__init__(message)
        self.kind = kind


class MissingRequiredField(ExtractionError):
    def __init__(self, field: str, message: str | None = None):
        super().__init__(
            message or f"Required field '{field}' could not be located",
            kind=ExtractionError.MISSING_REQUIRED_FIELD,
        )
        self.field = field


class CorrectionError(IngestError):
    """A correction patch names an unknown path or carries a bad value."""


class CorrectionConflict(IngestError):
    """The staged record changed since the editor loaded it."""

    status_code = 409
