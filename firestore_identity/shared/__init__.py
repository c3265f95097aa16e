"""Shared helpers: cancellation, store lifecycle, logging, ids and time.

Used by domain, application, and infrastructure. No business logic.
"""

from firestore_identity.shared.cancellation import CancellationToken, check_cancelled
from firestore_identity.shared.lifecycle import ClosableStore, store_operation
from firestore_identity.shared.utils import ensure_utc, generate_cuid, utc_now

__all__ = [
    "CancellationToken",
    "ClosableStore",
    "check_cancelled",
    "ensure_utc",
    "generate_cuid",
    "store_operation",
    "utc_now",
]
