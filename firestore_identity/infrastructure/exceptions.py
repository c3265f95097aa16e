"""Infrastructure exceptions for document store operations.

Store errors extend IdentityStoreException so callers can handle every
failure of this library through one hierarchy.
"""

from __future__ import annotations

import httpx

from firestore_identity.domain.exceptions import IdentityStoreException


class DocumentStoreException(IdentityStoreException):
    """Firestore request failed (transport error or non-success status)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
        error_code: str = "DOCUMENT_STORE_ERROR",
    ) -> None:
        details: dict[str, object] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if reason:
            details["reason"] = reason
        self.status_code = status_code
        super().__init__(message, error_code, details)

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "DocumentStoreException":
        """Build from a Firestore error response ({"error": {"status", "message"}})."""
        status, message = _error_status(resp)
        return cls(
            message or f"Firestore request failed with HTTP {resp.status_code}",
            status_code=resp.status_code,
            reason=status,
        )


class DocumentExistsError(DocumentStoreException):
    """Raised when a create targets a document id that already exists (HTTP 409)."""

    def __init__(self, document_path: str) -> None:
        super().__init__(
            f"Document already exists: {document_path}",
            status_code=409,
            reason="ALREADY_EXISTS",
            error_code="DOCUMENT_EXISTS",
        )
        self.details["document_path"] = document_path


def _error_status(resp: httpx.Response) -> tuple[str | None, str | None]:
    """Return (status, message) from a Firestore error body, if it has one."""
    try:
        body = resp.json()
    except ValueError:
        return None, None
    if isinstance(body, list):
        body = body[0] if body else {}
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return None, None
    return error.get("status"), error.get("message")
