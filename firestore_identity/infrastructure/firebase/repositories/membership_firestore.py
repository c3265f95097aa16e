"""Firestore-backed membership manager (implements IMembershipManager).

A membership fact (user_id, role_id) is stored twice:

    users/{user_id}/user-roles/{link_id}    queried by role_id
    roles/{role_id}/users/{link_id}         queried by user_id

Both copies carry the same payload. In atomic mode (default) the two copies
are written and removed by a single documents:commit, so a fact is either
fully present or fully absent. In two-phase mode the user side is always
written first and removed first; a failure in between leaves a one-sided
link that MembershipReconciler repairs.

Links are not deduplicated: adding the same pair twice stores two links on
each side, and removal deletes all of them.
"""

from __future__ import annotations

from collections.abc import Iterable

from firestore_identity.domain.entities import MembershipLink, Role, User
from firestore_identity.domain.exceptions import RoleNotFoundException
from firestore_identity.infrastructure.firebase._rest_client import (
    MAX_COMMIT_WRITES,
    MAX_IN_VALUES,
    CollectionReference,
    DocumentReference,
    DocumentSnapshot,
    FirestoreRESTClient,
)
from firestore_identity.infrastructure.firebase.codec import RecordCodec
from firestore_identity.infrastructure.firebase.collections import (
    FIELD_ID,
    FIELD_NAME,
    FIELD_ROLE_ID,
    FIELD_USER_ID,
    CollectionLayout,
)
from firestore_identity.infrastructure.firebase.repositories._guards import (
    require_id,
    require_text,
)
from firestore_identity.shared.cancellation import CancellationToken, check_cancelled
from firestore_identity.shared.lifecycle import ClosableStore, store_operation
from firestore_identity.shared.utils.datetime import utc_now


def _unique(values: Iterable[str]) -> list[str]:
    """Drop duplicates and empty values, keeping first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return list(seen)


def _chunks(items: list, size: int) -> Iterable[list]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class FirestoreMembershipManager[UserT: User, RoleT: Role](ClosableStore):
    """User<->role membership over two mirrored link sub-collections."""

    def __init__(
        self,
        client: FirestoreRESTClient,
        *,
        user_type: type[UserT] = User,
        role_type: type[RoleT] = Role,
        layout: CollectionLayout | None = None,
        atomic: bool = True,
    ) -> None:
        self._client = client
        self._layout = layout or CollectionLayout()
        self._users = client.collection(self._layout.users)
        self._roles = client.collection(self._layout.roles)
        self._user_codec = RecordCodec(user_type)
        self._role_codec = RecordCodec(role_type)
        self._link_codec = RecordCodec(MembershipLink)
        self._atomic = atomic

    @property
    def atomic(self) -> bool:
        return self._atomic

    def user_links(self, user_id: str) -> CollectionReference:
        """User-side link sub-collection of a user."""
        return self._users.document(user_id).collection(self._layout.user_links)

    def role_links(self, role_id: str) -> CollectionReference:
        """Role-side link sub-collection of a role."""
        return self._roles.document(role_id).collection(self._layout.role_links)

    def link_from_snapshot(self, snapshot: DocumentSnapshot) -> MembershipLink:
        return self._link_codec.from_snapshot(snapshot)

    async def _resolve_role_id(self, role_name: str) -> str:
        """Return the id of the role named role_name, or raise RoleNotFoundException."""
        async for snapshot in self._roles.where(FIELD_NAME, "==", role_name).limit(1).stream():
            return snapshot.id
        raise RoleNotFoundException(role_name)

    async def _fetch_by_ids(
        self, collection: CollectionReference, ids: list[str]
    ) -> list[DocumentSnapshot]:
        """Bulk read by stored id field, one "in" query per MAX_IN_VALUES ids."""
        snapshots: list[DocumentSnapshot] = []
        for chunk in _chunks(ids, MAX_IN_VALUES):
            snapshots.extend(await collection.where(FIELD_ID, "in", chunk).get())
        return snapshots

    async def _delete_all(self, refs: list[DocumentReference]) -> None:
        """Delete refs (each must exist); one commit per MAX_COMMIT_WRITES refs in atomic mode."""
        if self._atomic:
            for chunk in _chunks(refs, MAX_COMMIT_WRITES):
                batch = self._client.batch()
                for ref in chunk:
                    batch.delete(ref, must_exist=True)
                await batch.commit()
            return
        for ref in refs:
            await ref.delete(must_exist=True)

    @store_operation
    async def add_to_role(
        self,
        user: UserT,
        role_name: str,
        cancellation: CancellationToken | None = None,
    ) -> MembershipLink:
        """Link user to the role named role_name (user side first, then role side).

        Raises:
            InvalidArgumentException: user is missing or was never created, or role_name is empty.
            RoleNotFoundException: No role has that name; nothing is written.
        """
        user_id = require_id(user, "user")
        require_text(role_name, "role_name")
        role_id = await self._resolve_role_id(role_name)
        check_cancelled(cancellation, "add_to_role")

        link = MembershipLink(user_id=user_id, role_id=role_id, created_at=utc_now())
        data = self._link_codec.to_document(link)
        user_ref = self.user_links(user_id).document()
        role_ref = self.role_links(role_id).document()
        if self._atomic:
            batch = self._client.batch()
            batch.create(user_ref, data)
            batch.create(role_ref, data)
            await batch.commit()
        else:
            await self.user_links(user_id).create(user_ref.id, data)
            await self.role_links(role_id).create(role_ref.id, data)
        return link

    @store_operation
    async def remove_from_role(
        self,
        user: UserT,
        role_name: str,
        cancellation: CancellationToken | None = None,
    ) -> int:
        """Remove every link between user and the role named role_name, on both sides.

        Returns:
            Number of link documents deleted (both sides together).

        Raises:
            RoleNotFoundException: No role has that name; nothing is deleted.
            PreconditionFailedException: A link vanished between query and delete.
        """
        user_id = require_id(user, "user")
        require_text(role_name, "role_name")
        role_id = await self._resolve_role_id(role_name)
        check_cancelled(cancellation, "remove_from_role")

        user_side = self.user_links(user_id)
        role_side = self.role_links(role_id)
        user_refs = [
            user_side.document(s.id)
            for s in await user_side.where(FIELD_ROLE_ID, "==", role_id).get()
        ]
        role_refs = [
            role_side.document(s.id)
            for s in await role_side.where(FIELD_USER_ID, "==", user_id).get()
        ]
        check_cancelled(cancellation, "remove_from_role")

        await self._delete_all(user_refs + role_refs)
        return len(user_refs) + len(role_refs)

    @store_operation
    async def get_roles_for_user(
        self,
        user: UserT,
        cancellation: CancellationToken | None = None,
    ) -> list[str]:
        """Return the names of the user's roles (empty list when none).

        Order follows the store's query order and is not stable across calls.
        """
        user_id = require_id(user, "user")
        links = await self.user_links(user_id).get()
        role_ids = _unique(self.link_from_snapshot(s).role_id for s in links)
        if not role_ids:
            return []
        check_cancelled(cancellation, "get_roles_for_user")
        roles = await self._fetch_by_ids(self._roles, role_ids)
        return [self._role_codec.from_snapshot(s).name for s in roles]

    @store_operation
    async def is_in_role(
        self,
        user: UserT,
        role_name: str,
        cancellation: CancellationToken | None = None,
    ) -> bool:
        """Return whether at least one user-side link to the named role exists.

        Raises:
            RoleNotFoundException: No role has that name.
        """
        user_id = require_id(user, "user")
        require_text(role_name, "role_name")
        role_id = await self._resolve_role_id(role_name)
        check_cancelled(cancellation, "is_in_role")
        query = self.user_links(user_id).where(FIELD_ROLE_ID, "==", role_id).limit(1)
        async for _ in query.stream():
            return True
        return False

    @store_operation
    async def get_users_in_role(
        self,
        role_name: str,
        cancellation: CancellationToken | None = None,
    ) -> list[UserT]:
        """Return the users linked to the named role (empty list when none).

        Raises:
            RoleNotFoundException: No role has that name.
        """
        require_text(role_name, "role_name")
        role_id = await self._resolve_role_id(role_name)
        check_cancelled(cancellation, "get_users_in_role")
        links = await self.role_links(role_id).get()
        user_ids = _unique(self.link_from_snapshot(s).user_id for s in links)
        if not user_ids:
            return []
        check_cancelled(cancellation, "get_users_in_role")
        users = await self._fetch_by_ids(self._users, user_ids)
        return [self._user_codec.from_snapshot(s) for s in users]

    async def user_link_refs(self, user_id: str) -> list[DocumentReference]:
        """Every link document of a user: its own side plus the mirrored role-side copies."""
        user_side = self.user_links(user_id)
        snapshots = await user_side.get()
        refs = [user_side.document(s.id) for s in snapshots]
        for role_id in _unique(self.link_from_snapshot(s).role_id for s in snapshots):
            role_side = self.role_links(role_id)
            refs.extend(
                role_side.document(s.id)
                for s in await role_side.where(FIELD_USER_ID, "==", user_id).get()
            )
        return refs

    async def role_link_refs(self, role_id: str) -> list[DocumentReference]:
        """Every link document of a role: its own side plus the mirrored user-side copies."""
        role_side = self.role_links(role_id)
        snapshots = await role_side.get()
        refs = [role_side.document(s.id) for s in snapshots]
        for user_id in _unique(self.link_from_snapshot(s).user_id for s in snapshots):
            user_side = self.user_links(user_id)
            refs.extend(
                user_side.document(s.id)
                for s in await user_side.where(FIELD_ROLE_ID, "==", role_id).get()
            )
        return refs

    async def delete_with_links(
        self, record_ref: DocumentReference, link_refs: list[DocumentReference]
    ) -> None:
        """Delete a user or role document (must exist) together with its links.

        One atomic commit when everything fits; otherwise the links are
        removed first in chunks and the record last.
        """
        if len(link_refs) < MAX_COMMIT_WRITES:
            batch = self._client.batch()
            batch.delete(record_ref, must_exist=True)
            for ref in link_refs:
                batch.delete(ref)
            await batch.commit()
            return
        for chunk in _chunks(link_refs, MAX_COMMIT_WRITES):
            batch = self._client.batch()
            for ref in chunk:
                batch.delete(ref)
            await batch.commit()
        await record_ref.delete(must_exist=True)
