"""Error taxonomy for the ingestion pipeline.

Every error carries a machine-readable ``code`` and the HTTP status the API
answers with. Batch runs record ``str(error)`` per item and keep going.
"""
from __future__ import annotations


class ContentError(Exception):
    code = "CONTENT_ERROR"
    status_code = 500

    def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class ContentValidationError(ContentError):
    code = "VALIDATION_ERROR"
    status_code = 422


class ContentRejectedError(ContentValidationError):
    """Payload has no usable identity; batch runs skip it without counting an error."""

    code = "REJECTED"


class DuplicateContentError(ContentError):
    code = "DUPLICATE_CONTENT"
    status_code = 409


class ContentNotFoundError(ContentError):
    code = "CONTENT_NOT_FOUND"
    status_code = 404


class StorageError(ContentError):
    code = "STORAGE_ERROR"
    status_code = 500
