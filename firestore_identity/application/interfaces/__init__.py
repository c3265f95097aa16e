"""Application interfaces (ports): store protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from firestore_identity.infrastructure.
"""

from firestore_identity.application.interfaces.repositories import (
    IMembershipManager,
    IRoleStore,
    IUserRoleStore,
    IUserStore,
)

__all__ = [
    "IMembershipManager",
    "IRoleStore",
    "IUserRoleStore",
    "IUserStore",
]
