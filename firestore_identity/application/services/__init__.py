"""Application services: the identity facade."""

from firestore_identity.application.services.identity_service import (
    IdentityService,
    IdentityStores,
    build_identity_stores,
)

__all__ = [
    "IdentityService",
    "IdentityStores",
    "build_identity_stores",
]
