"""Application layer: store interfaces and the identity facade.

Infrastructure implements the interfaces; the facade wires the Firestore
implementations together for callers.
"""

from firestore_identity.application.interfaces import (
    IMembershipManager,
    IRoleStore,
    IUserRoleStore,
    IUserStore,
)
from firestore_identity.application.services import (
    IdentityService,
    IdentityStores,
    build_identity_stores,
)

__all__ = [
    "IMembershipManager",
    "IRoleStore",
    "IUserRoleStore",
    "IUserStore",
    "IdentityService",
    "IdentityStores",
    "build_identity_stores",
]
