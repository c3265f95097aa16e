"""Lifecycle-scoped stores.

Stores own their state for the duration of a scope (``async with`` or an
explicit ``close()``). The ``store_operation`` decorator rejects calls on a
closed store and honours the operation's cancellation token at entry, so
individual methods carry no guard code of their own.
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from firestore_identity.domain.exceptions import StoreClosedException
from firestore_identity.shared.cancellation import check_cancelled

_F = TypeVar("_F", bound=Callable[..., Awaitable[Any]])


class ClosableStore:
    """Base for stores that reject calls after close()."""

    _closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedException(type(self).__name__)

    async def close(self) -> None:
        """Mark the store closed. Later operations raise StoreClosedException."""
        self._closed = True

    async def __aenter__(self):
        self._ensure_open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def store_operation(func: _F) -> _F:
    """Guard an async store method: closed check, then cancellation check.

    The wrapped method must accept a ``cancellation`` parameter (positional
    or keyword).
    """
    signature = inspect.signature(func)
    if "cancellation" not in signature.parameters:
        raise TypeError(f"{func.__qualname__} has no 'cancellation' parameter")

    @functools.wraps(func)
    async def wrapper(self: ClosableStore, *args: Any, **kwargs: Any) -> Any:
        self._ensure_open()
        bound = signature.bind_partial(self, *args, **kwargs)
        check_cancelled(bound.arguments.get("cancellation"), func.__name__)
        return await func(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]
