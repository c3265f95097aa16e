"""Identity service facade: one Firestore client, the stores built on it.

Replaces reflection-based registration with an explicit builder that is
parametrized by the application's user and role record types:

    async with IdentityService.from_settings(user_type=AppUser) as identity:
        user = await identity.users.find_by_name("ALICE")
        await identity.users.add_to_role(user, "ADMIN")
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from firestore_identity.core.config import Settings, get_settings
from firestore_identity.domain.entities import Role, User
from firestore_identity.infrastructure.firebase._rest_client import FirestoreRESTClient
from firestore_identity.infrastructure.firebase.client import create_firestore_client
from firestore_identity.infrastructure.firebase.collections import CollectionLayout
from firestore_identity.infrastructure.firebase.repositories import (
    FirestoreMembershipManager,
    FirestoreRoleStore,
    FirestoreUserStore,
)
from firestore_identity.infrastructure.firebase.services import MembershipReconciler
from firestore_identity.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class IdentityStores[UserT: User, RoleT: Role]:
    """The stores sharing one client and one collection layout."""

    users: FirestoreUserStore[UserT]
    roles: FirestoreRoleStore[RoleT]
    membership: FirestoreMembershipManager[UserT, RoleT]
    reconciler: MembershipReconciler


def build_identity_stores[UserT: User, RoleT: Role](
    client: FirestoreRESTClient,
    user_type: type[UserT] = User,
    role_type: type[RoleT] = Role,
    *,
    layout: CollectionLayout | None = None,
    atomic: bool = True,
) -> IdentityStores[UserT, RoleT]:
    """Wire user store, role store and membership manager over one client.

    Both record stores get the membership manager so deleting a user or a
    role also removes its links.
    """
    layout = layout or CollectionLayout()
    membership = FirestoreMembershipManager(
        client, user_type=user_type, role_type=role_type, layout=layout, atomic=atomic
    )
    return IdentityStores(
        users=FirestoreUserStore(
            client, user_type=user_type, membership=membership, collection_id=layout.users
        ),
        roles=FirestoreRoleStore(
            client, role_type=role_type, membership=membership, collection_id=layout.roles
        ),
        membership=membership,
        reconciler=MembershipReconciler(client, layout=layout),
    )


class IdentityService[UserT: User, RoleT: Role]:
    """Owns a Firestore client and the identity stores built on it.

    Closing the service closes every store, then the client's HTTP pool.
    """

    def __init__(
        self,
        client: FirestoreRESTClient,
        user_type: type[UserT] = User,
        role_type: type[RoleT] = Role,
        *,
        layout: CollectionLayout | None = None,
        atomic: bool = True,
    ) -> None:
        self._client = client
        self._stores = build_identity_stores(
            client, user_type, role_type, layout=layout, atomic=atomic
        )
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        user_type: type[UserT] = User,
        role_type: type[RoleT] = Role,
        http_client: httpx.AsyncClient | None = None,
    ) -> "IdentityService[UserT, RoleT]":
        """Build client and stores from configuration (defaults to get_settings())."""
        settings = settings or get_settings()
        client = create_firestore_client(settings, http_client=http_client)
        return cls(
            client,
            user_type,
            role_type,
            layout=CollectionLayout.from_settings(settings),
            atomic=settings.membership_atomic_writes,
        )

    @property
    def client(self) -> FirestoreRESTClient:
        return self._client

    @property
    def users(self) -> FirestoreUserStore[UserT]:
        return self._stores.users

    @property
    def roles(self) -> FirestoreRoleStore[RoleT]:
        return self._stores.roles

    @property
    def membership(self) -> FirestoreMembershipManager[UserT, RoleT]:
        return self._stores.membership

    @property
    def reconciler(self) -> MembershipReconciler:
        return self._stores.reconciler

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Close stores and client. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self._stores.users.close()
        await self._stores.roles.close()
        await self._stores.membership.close()
        await self._client.aclose()
        logger.info("Identity service closed (project %s)", self._client.project_id)

    async def __aenter__(self) -> "IdentityService[UserT, RoleT]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
