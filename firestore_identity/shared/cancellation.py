"""Cooperative cancellation for store operations.

A token is created by the caller, passed as the last argument of a store
operation, and checked by the operation at entry and between its major
steps. Cancelling never undoes writes that were already issued.
"""

from __future__ import annotations

from firestore_identity.domain.exceptions import OperationCancelledException


class CancellationToken:
    """Cancellation flag shared between a caller and running operations."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._cancelled = True

    def raise_if_cancelled(self, operation: str | None = None) -> None:
        """Raise OperationCancelledException if cancel() was called."""
        if self._cancelled:
            raise OperationCancelledException(operation)


def check_cancelled(
    token: CancellationToken | None, operation: str | None = None
) -> None:
    """Raise OperationCancelledException when token is set and cancelled."""
    if token is not None:
        token.raise_if_cancelled(operation)
