"""Shared utilities: ids and UTC time."""

from firestore_identity.shared.utils.datetime import ensure_utc, utc_now
from firestore_identity.shared.utils.generators import generate_cuid

__all__ = [
    "ensure_utc",
    "generate_cuid",
    "utc_now",
]
