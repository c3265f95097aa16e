"""Firestore collection and field names (schema-in-code).

Firestore has no DDL or migrations. Collections are created automatically
when the first document is written. Use these constants so collection and
field names stay consistent and act as the single source of truth for the
"schema".

Layout:
    users/{user_id}                          user record
    users/{user_id}/user-roles/{link_id}     user-side membership link
    roles/{role_id}                          role record
    roles/{role_id}/users/{link_id}          role-side membership link
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from firestore_identity.core.config import Settings

COLLECTION_USERS = "users"
COLLECTION_ROLES = "roles"

# Membership link sub-collections
SUBCOLLECTION_USER_LINKS = "user-roles"
SUBCOLLECTION_ROLE_LINKS = "users"

# Fields
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_NORMALIZED_NAME = "normalized_name"
FIELD_NORMALIZED_USER_NAME = "normalized_user_name"
FIELD_NORMALIZED_EMAIL = "normalized_email"
FIELD_USER_ID = "user_id"
FIELD_ROLE_ID = "role_id"
FIELD_CREATED_AT = "created_at"


@dataclass(frozen=True)
class CollectionLayout:
    """Collection names used by one set of stores."""

    users: str = COLLECTION_USERS
    roles: str = COLLECTION_ROLES
    user_links: str = SUBCOLLECTION_USER_LINKS
    role_links: str = SUBCOLLECTION_ROLE_LINKS

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CollectionLayout":
        return cls(
            users=settings.users_collection,
            roles=settings.roles_collection,
            user_links=settings.user_links_collection,
            role_links=settings.role_links_collection,
        )
