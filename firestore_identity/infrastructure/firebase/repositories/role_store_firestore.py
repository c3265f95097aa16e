"""Firestore-backed role store (implements IRoleStore)."""

from __future__ import annotations

from firestore_identity.domain.entities import Role
from firestore_identity.infrastructure.firebase._rest_client import (
    DocumentReference,
    FirestoreRESTClient,
)
from firestore_identity.infrastructure.firebase.collections import (
    COLLECTION_ROLES,
    FIELD_NORMALIZED_NAME,
)
from firestore_identity.infrastructure.firebase.repositories._guards import (
    require_record,
    require_text,
)
from firestore_identity.infrastructure.firebase.repositories.base_firestore import (
    FirestoreRecordStore,
)
from firestore_identity.infrastructure.firebase.repositories.membership_firestore import (
    FirestoreMembershipManager,
)
from firestore_identity.shared.cancellation import CancellationToken
from firestore_identity.shared.lifecycle import store_operation


class FirestoreRoleStore[RoleT: Role](FirestoreRecordStore[RoleT]):
    """Role records in Firestore. With a membership manager, delete also drops the role's links."""

    _argument = "role"

    def __init__(
        self,
        client: FirestoreRESTClient,
        *,
        role_type: type[RoleT] = Role,
        membership: FirestoreMembershipManager | None = None,
        collection_id: str = COLLECTION_ROLES,
    ) -> None:
        super().__init__(client, collection_id, role_type, membership)

    async def _link_refs(
        self, membership: FirestoreMembershipManager, record_id: str
    ) -> list[DocumentReference]:
        return await membership.role_link_refs(record_id)

    @store_operation
    async def find_by_name(
        self, normalized_role_name: str, cancellation: CancellationToken | None = None
    ) -> RoleT | None:
        """Return the role with this normalized name, or None."""
        require_text(normalized_role_name, "normalized_role_name")
        return await self._find_one(FIELD_NORMALIZED_NAME, normalized_role_name)

    @store_operation
    async def get_role_id(
        self, role: RoleT, cancellation: CancellationToken | None = None
    ) -> str | None:
        return require_record(role, "role").id

    @store_operation
    async def get_role_name(
        self, role: RoleT, cancellation: CancellationToken | None = None
    ) -> str | None:
        return require_record(role, "role").name

    @store_operation
    async def set_role_name(
        self, role: RoleT, role_name: str, cancellation: CancellationToken | None = None
    ) -> None:
        require_record(role, "role")
        role.name = require_text(role_name, "role_name")

    @store_operation
    async def get_normalized_role_name(
        self, role: RoleT, cancellation: CancellationToken | None = None
    ) -> str | None:
        """Return the stored normalized name (re-read from the store, see user store)."""
        require_record(role, "role")
        return await self._stored_field(role, FIELD_NORMALIZED_NAME)

    @store_operation
    async def set_normalized_role_name(
        self,
        role: RoleT,
        normalized_name: str,
        cancellation: CancellationToken | None = None,
    ) -> None:
        require_record(role, "role")
        role.normalized_name = require_text(normalized_name, "normalized_name")
