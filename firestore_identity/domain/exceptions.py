"""Domain exceptions for the identity stores.

Every failure an operation can report is one of these. Callers that sit in
front of an HTTP layer map them to responses using message, error_code and
details (see firestore_identity.integrations.fastapi).
"""

from typing import Any


class IdentityStoreException(Exception):
    """Base exception for all identity store errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON error body used by the HTTP integration."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidArgumentException(IdentityStoreException):
    """Raised when a required input is missing or empty."""

    def __init__(self, argument: str, message: str | None = None) -> None:
        """Initialize with the offending argument name.

        Args:
            argument: Parameter or field name (e.g. 'user', 'role_name').
            message: Optional override for the default message.
        """
        super().__init__(
            message or f"Argument is required: {argument}",
            "INVALID_ARGUMENT",
            {"argument": argument},
        )


class ResourceNotFoundException(IdentityStoreException):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        *,
        message: str | None = None,
        error_code: str = "RESOURCE_NOT_FOUND",
    ) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Type of resource (e.g. 'user', 'role').
            resource_id: The ID or lookup key that was not found.
            message: Optional override for the default message.
            error_code: Subclasses narrow the code.
        """
        super().__init__(
            message or f"{resource_type} not found: {resource_id}",
            error_code,
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class RoleNotFoundException(ResourceNotFoundException):
    """Raised when a role name does not resolve to a stored role."""

    def __init__(self, role_name: str) -> None:
        super().__init__(
            "role",
            role_name,
            message=f"Role not found: {role_name}",
            error_code="ROLE_NOT_FOUND",
        )


class PreconditionFailedException(ResourceNotFoundException):
    """Raised when a delete or commit targets a document that no longer exists."""

    def __init__(self, document_path: str) -> None:
        """Initialize with the document path whose existence check failed.

        Args:
            document_path: Collection-relative path (e.g. 'users/abc').
        """
        super().__init__(
            "document",
            document_path,
            message=f"Document does not exist: {document_path}",
            error_code="PRECONDITION_FAILED",
        )


class OperationCancelledException(IdentityStoreException):
    """Raised when cooperative cancellation is observed."""

    def __init__(self, operation: str | None = None) -> None:
        details = {"operation": operation} if operation else {}
        super().__init__("Operation was cancelled", "CANCELLED", details)


class UnimplementedException(IdentityStoreException):
    """Raised by a store that does not support the requested operation.

    Callers must treat this as a hard failure, never as an empty result.
    """

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Operation not supported by this store: {operation}",
            "UNIMPLEMENTED",
            {"operation": operation},
        )


class StoreClosedException(IdentityStoreException):
    """Raised when a store or client is used after close()."""

    def __init__(self, store: str) -> None:
        super().__init__(
            f"{store} is closed",
            "STORE_CLOSED",
            {"store": store},
        )
