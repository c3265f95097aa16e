"""Membership link: one user-in-role fact.

Each link is stored twice, once under the user and once under the role.
Both copies carry the same (user_id, role_id) pair; nothing ties the two
documents together except that pair.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class MembershipLink:
    """Payload of a link document (identical on both sides)."""

    user_id: str
    role_id: str
    created_at: datetime | None = None

    def pair(self) -> tuple[str, str]:
        """Return the (user_id, role_id) pair that identifies the fact."""
        return (self.user_id, self.role_id)
