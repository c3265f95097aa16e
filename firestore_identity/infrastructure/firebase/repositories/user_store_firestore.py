"""Firestore-backed user store (implements IUserStore and IUserRoleStore)."""

from __future__ import annotations

from firestore_identity.domain.entities import User
from firestore_identity.domain.exceptions import UnimplementedException
from firestore_identity.infrastructure.firebase._rest_client import (
    DocumentReference,
    FirestoreRESTClient,
)
from firestore_identity.infrastructure.firebase.collections import (
    COLLECTION_USERS,
    FIELD_NORMALIZED_EMAIL,
    FIELD_NORMALIZED_USER_NAME,
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


class FirestoreUserStore[UserT: User](FirestoreRecordStore[UserT]):
    """User records in Firestore, plus role membership through a membership manager.

    Built without a manager, the membership operations raise
    UnimplementedException instead of reporting "no roles".
    """

    _argument = "user"

    def __init__(
        self,
        client: FirestoreRESTClient,
        *,
        user_type: type[UserT] = User,
        membership: FirestoreMembershipManager | None = None,
        collection_id: str = COLLECTION_USERS,
    ) -> None:
        super().__init__(client, collection_id, user_type, membership)

    async def _link_refs(
        self, membership: FirestoreMembershipManager, record_id: str
    ) -> list[DocumentReference]:
        return await membership.user_link_refs(record_id)

    # ---- lookups ----

    @store_operation
    async def find_by_name(
        self, normalized_user_name: str, cancellation: CancellationToken | None = None
    ) -> UserT | None:
        """Return the user with this normalized user name, or None."""
        require_text(normalized_user_name, "normalized_user_name")
        return await self._find_one(FIELD_NORMALIZED_USER_NAME, normalized_user_name)

    @store_operation
    async def find_by_email(
        self, normalized_email: str, cancellation: CancellationToken | None = None
    ) -> UserT | None:
        """Return the user with this normalized email, or None."""
        require_text(normalized_email, "normalized_email")
        return await self._find_one(FIELD_NORMALIZED_EMAIL, normalized_email)

    # ---- user name ----

    @store_operation
    async def get_user_id(
        self, user: UserT, cancellation: CancellationToken | None = None
    ) -> str | None:
        return require_record(user, "user").id

    @store_operation
    async def get_user_name(
        self, user: UserT, cancellation: CancellationToken | None = None
    ) -> str | None:
        return require_record(user, "user").user_name

    @store_operation
    async def set_user_name(
        self, user: UserT, user_name: str, cancellation: CancellationToken | None = None
    ) -> None:
        require_record(user, "user")
        user.user_name = require_text(user_name, "user_name")

    @store_operation
    async def get_normalized_user_name(
        self, user: UserT, cancellation: CancellationToken | None = None
    ) -> str | None:
        """Return the stored normalized user name.

        Reads the document again instead of trusting the in-memory record,
        which a caller may have changed without saving.
        """
        require_record(user, "user")
        return await self._stored_field(user, FIELD_NORMALIZED_USER_NAME)

    @store_operation
    async def set_normalized_user_name(
        self,
        user: UserT,
        normalized_name: str,
        cancellation: CancellationToken | None = None,
    ) -> None:
        require_record(user, "user")
        user.normalized_user_name = require_text(normalized_name, "normalized_name")

    # ---- password ----

    @store_operation
    async def set_password_hash(
        self, user: UserT, password_hash: str, cancellation: CancellationToken | None = None
    ) -> None:
        require_record(user, "user")
        user.password_hash = require_text(password_hash, "password_hash")

    @store_operation
    async def get_password_hash(
        self, user: UserT, cancellation: CancellationToken | None = None
    ) -> str | None:
        return require_record(user, "user").password_hash

    @store_operation
    async def has_password(
        self, user: UserT, cancellation: CancellationToken | None = None
    ) -> bool:
        return bool(require_record(user, "user").password_hash)

    # ---- email ----

    @store_operation
    async def set_email(
        self, user: UserT, email: str, cancellation: CancellationToken | None = None
    ) -> None:
        require_record(user, "user")
        user.email = require_text(email, "email")

    @store_operation
    async def get_email(
        self, user: UserT, cancellation: CancellationToken | None = None
    ) -> str | None:
        return require_record(user, "user").email

    @store_operation
    async def get_email_confirmed(
        self, user: UserT, cancellation: CancellationToken | None = None
    ) -> bool:
        return require_record(user, "user").email_confirmed

    @store_operation
    async def set_email_confirmed(
        self, user: UserT, confirmed: bool, cancellation: CancellationToken | None = None
    ) -> None:
        require_record(user, "user").email_confirmed = confirmed

    @store_operation
    async def get_normalized_email(
        self, user: UserT, cancellation: CancellationToken | None = None
    ) -> str | None:
        return require_record(user, "user").normalized_email

    @store_operation
    async def set_normalized_email(
        self,
        user: UserT,
        normalized_email: str | None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        require_record(user, "user").normalized_email = normalized_email

    # ---- roles ----

    def _require_membership(self, operation: str) -> FirestoreMembershipManager:
        if self._membership is None:
            raise UnimplementedException(operation)
        return self._membership

    @store_operation
    async def add_to_role(
        self, user: UserT, role_name: str, cancellation: CancellationToken | None = None
    ) -> None:
        await self._require_membership("add_to_role").add_to_role(
            user, role_name, cancellation
        )

    @store_operation
    async def remove_from_role(
        self, user: UserT, role_name: str, cancellation: CancellationToken | None = None
    ) -> None:
        await self._require_membership("remove_from_role").remove_from_role(
            user, role_name, cancellation
        )

    @store_operation
    async def get_roles_for_user(
        self, user: UserT, cancellation: CancellationToken | None = None
    ) -> list[str]:
        return await self._require_membership("get_roles_for_user").get_roles_for_user(
            user, cancellation
        )

    @store_operation
    async def is_in_role(
        self, user: UserT, role_name: str, cancellation: CancellationToken | None = None
    ) -> bool:
        return await self._require_membership("is_in_role").is_in_role(
            user, role_name, cancellation
        )

    @store_operation
    async def get_users_in_role(
        self, role_name: str, cancellation: CancellationToken | None = None
    ) -> list[UserT]:
        return await self._require_membership("get_users_in_role").get_users_in_role(
            role_name, cancellation
        )
