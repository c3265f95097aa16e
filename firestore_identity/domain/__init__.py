"""Domain layer: identity records and exceptions.

No dependencies on infrastructure. Used by application and infrastructure
layers.
"""

from firestore_identity.domain.entities import MembershipLink, Role, User
from firestore_identity.domain.exceptions import (
    IdentityStoreException,
    InvalidArgumentException,
    OperationCancelledException,
    PreconditionFailedException,
    ResourceNotFoundException,
    RoleNotFoundException,
    StoreClosedException,
    UnimplementedException,
)

__all__ = [
    # Entities
    "MembershipLink",
    "Role",
    "User",
    # Exceptions
    "IdentityStoreException",
    "InvalidArgumentException",
    "OperationCancelledException",
    "PreconditionFailedException",
    "ResourceNotFoundException",
    "RoleNotFoundException",
    "StoreClosedException",
    "UnimplementedException",
]
