"""
Exception taxonomy for the CV ingestion pipeline.

Every error carries a stable ``code`` so the orchestrator and the HTTP layer can
report failures as structured data instead of free text.
"""

from typing import Any, Optional


class CVIngestionError(Exception):
    """Base class for all pipeline failures."""

    code = "CV_INGESTION_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class UnsupportedFileType(CVIngestionError):
    code = "UNSUPPORTED_FILE_TYPE"


class ExtractionFailure(CVIngestionError):
    """Raised when a decoder (pdfplumber, pdfminer, python-docx) fails on a file."""

    code = "EXTRACTION_FAILED"


class MissingCredential(CVIngestionError):
    code = "MISSING_CREDENTIAL"


class ProviderError(CVIngestionError):
    """Non-2xx response (or transport failure) from an LLM provider."""

    code = "PROVIDER_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.status_code = status_code


class MalformedResponse(CVIngestionError):
    code = "MALFORMED_RESPONSE"


class InsertionFailure(CVIngestionError):
    """
    A single catalog insert that failed.

    Collected into EntityCreationResult.failed by label; the creator never raises it.
    """

    code = "INSERTION_FAILED"

    def __init__(self, kind: str, name: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.name = name

    @property
    def label(self) -> str:
        return f"{self.kind}: {self.name}"


class MissingOtherCategory(CVIngestionError):
    code = "MISSING_OTHER_CATEGORY"


class IngestionError(CVIngestionError):
    """Catch-all wrapper used by the orchestrator for unexpected failures."""

    code = "INGESTION_ERROR"
