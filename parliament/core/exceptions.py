"""
Exception hierarchy for the signing service.

Every error carries an HTTP status, a stable error code and optional
details; the API layer renders them as ``{"ok": false, "error", "details"}``.
"""

from typing import Any


class SignatureServiceError(Exception):
    """Base exception for all signing service errors."""

    status_code: int = 500
    error: str = "Unexpected server error"

    def __init__(
        self,
        error: str | None = None,
        details: Any = None,
        status_code: int | None = None,
    ):
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(self.error)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": False, "error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


# --- 400 ---


class InvalidRequestError(SignatureServiceError):
    """Raised when the request body is malformed or incomplete."""

    status_code = 400
    error = "Invalid request"


class MissingSourcePointersError(InvalidRequestError):
    """Raised when a document to certify has no signed source."""

    error = "MISSING_SOURCE_POINTERS"


# --- 401 / 403 ---


class TokenRequiredError(SignatureServiceError):
    """Raised when a party holds a capability token but none was sent."""

    status_code = 401
    error = "SIGNING_TOKEN_REQUIRED"


class TokenInvalidError(SignatureServiceError):
    """Raised when the provided capability token does not match."""

    status_code = 403
    error = "SIGNING_TOKEN_INVALID"


class UnauthorizedError(SignatureServiceError):
    status_code = 401
    error = "UNAUTHORIZED"


class ForbiddenError(SignatureServiceError):
    status_code = 403
    error = "FORBIDDEN"


# --- 404 ---


class NotFoundError(SignatureServiceError):
    status_code = 404
    error = "Not found"


class EnvelopeNotFoundError(NotFoundError):
    error = "Envelope not found"


class PartyNotFoundError(NotFoundError):
    error = "Signature party not found"


class RecordNotFoundError(NotFoundError):
    error = "Governance record not found"


class EntityNotFoundError(NotFoundError):
    error = "Entity not found"


# --- 409 ---


class LaneMismatchError(SignatureServiceError):
    """Raised when a record and request disagree on the is_test lane."""

    status_code = 409
    error = "LANE_MISMATCH"


# --- 500 ---


class EnvelopeUpdateError(SignatureServiceError):
    """Raised when a guarded envelope/party update fails at the database."""

    error = "ENVELOPE_UPDATE_FAILED"


class CertificateRenderError(SignatureServiceError):
    """Raised when the certificate page cannot be produced."""

    error = "CERTIFICATE_QR_GENERATION_FAILED"


class StorageError(SignatureServiceError):
    """Base class for object storage failures."""

    error = "STORAGE_ERROR"


class ObjectNotFoundError(StorageError):
    status_code = 404
    error = "OBJECT_NOT_FOUND"


class ObjectExistsError(StorageError):
    status_code = 409
    error = "OBJECT_EXISTS"


class InvalidObjectPathError(StorageError):
    status_code = 400
    error = "INVALID_OBJECT_PATH"
