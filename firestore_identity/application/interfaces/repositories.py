"""Store interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
Every operation takes an optional cancellation token as its last parameter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from firestore_identity.domain.entities import MembershipLink, Role, User
    from firestore_identity.shared.cancellation import CancellationToken


class IUserStore(Protocol):
    """Protocol for user record persistence (DIP)."""

    async def create(self, user: User, cancellation: CancellationToken | None = None) -> User:
        """Persist a new user; assigns an id when missing."""

    async def update(self, user: User, cancellation: CancellationToken | None = None) -> User:
        """Merge-write the user."""

    async def delete(self, user: User, cancellation: CancellationToken | None = None) -> None:
        """Delete the user (must exist)."""

    async def find_by_id(
        self, user_id: str, cancellation: CancellationToken | None = None
    ) -> User | None:
        """Return user by id, or None."""

    async def find_by_name(
        self, normalized_user_name: str, cancellation: CancellationToken | None = None
    ) -> User | None:
        """Return user by normalized user name, or None."""

    async def find_by_email(
        self, normalized_email: str, cancellation: CancellationToken | None = None
    ) -> User | None:
        """Return user by normalized email, or None."""

    async def close(self) -> None:
        """Release the store; later calls raise StoreClosedException."""


class IRoleStore(Protocol):
    """Protocol for role record persistence (DIP)."""

    async def create(self, role: Role, cancellation: CancellationToken | None = None) -> Role:
        """Persist a new role; assigns an id when missing."""

    async def update(self, role: Role, cancellation: CancellationToken | None = None) -> Role:
        """Merge-write the role."""

    async def delete(self, role: Role, cancellation: CancellationToken | None = None) -> None:
        """Delete the role (must exist)."""

    async def find_by_id(
        self, role_id: str, cancellation: CancellationToken | None = None
    ) -> Role | None:
        """Return role by id, or None."""

    async def find_by_name(
        self, normalized_role_name: str, cancellation: CancellationToken | None = None
    ) -> Role | None:
        """Return role by normalized name, or None."""

    async def close(self) -> None:
        """Release the store; later calls raise StoreClosedException."""


class IMembershipManager(Protocol):
    """Protocol for the user<->role membership relation (DIP)."""

    async def add_to_role(
        self, user: User, role_name: str, cancellation: CancellationToken | None = None
    ) -> MembershipLink:
        """Link user to the named role; RoleNotFoundException when it does not exist."""

    async def remove_from_role(
        self, user: User, role_name: str, cancellation: CancellationToken | None = None
    ) -> int:
        """Remove every link between user and the named role; return documents deleted."""

    async def get_roles_for_user(
        self, user: User, cancellation: CancellationToken | None = None
    ) -> list[str]:
        """Return the user's role names (empty list when none)."""

    async def is_in_role(
        self, user: User, role_name: str, cancellation: CancellationToken | None = None
    ) -> bool:
        """Return whether user is linked to the named role."""

    async def get_users_in_role(
        self, role_name: str, cancellation: CancellationToken | None = None
    ) -> list[User]:
        """Return users linked to the named role (empty list when none)."""

    async def close(self) -> None:
        """Release the manager; later calls raise StoreClosedException."""


class IUserRoleStore(IUserStore, Protocol):
    """User store that also answers membership questions for its users."""

    async def add_to_role(
        self, user: User, role_name: str, cancellation: CancellationToken | None = None
    ) -> None:
        """Link user to the named role."""

    async def remove_from_role(
        self, user: User, role_name: str, cancellation: CancellationToken | None = None
    ) -> None:
        """Unlink user from the named role."""

    async def get_roles_for_user(
        self, user: User, cancellation: CancellationToken | None = None
    ) -> list[str]:
        """Return the user's role names."""

    async def is_in_role(
        self, user: User, role_name: str, cancellation: CancellationToken | None = None
    ) -> bool:
        """Return whether user is in the named role."""

    async def get_users_in_role(
        self, role_name: str, cancellation: CancellationToken | None = None
    ) -> list[User]:
        """Return users in the named role."""
