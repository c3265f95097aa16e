"""Firestore-backed identity stores."""

from firestore_identity.infrastructure.firebase.repositories.base_firestore import (
    FirestoreRecordStore,
)
from firestore_identity.infrastructure.firebase.repositories.membership_firestore import (
    FirestoreMembershipManager,
)
from firestore_identity.infrastructure.firebase.repositories.role_store_firestore import (
    FirestoreRoleStore,
)
from firestore_identity.infrastructure.firebase.repositories.user_store_firestore import (
    FirestoreUserStore,
)

__all__ = [
    "FirestoreMembershipManager",
    "FirestoreRecordStore",
    "FirestoreRoleStore",
    "FirestoreUserStore",
]
