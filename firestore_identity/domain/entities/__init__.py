"""Identity records.

Pure domain models; no persistence concerns.
"""

from firestore_identity.domain.entities.membership import MembershipLink
from firestore_identity.domain.entities.role import Role
from firestore_identity.domain.entities.user import User

__all__ = [
    "MembershipLink",
    "Role",
    "User",
]
