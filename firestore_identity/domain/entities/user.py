"""User identity record.

Represents a stored user independent of the document layout. Normalized
forms (user name, email) are computed by the caller and stored as given.
"""

from dataclasses import dataclass


@dataclass
class User:
    """Identity user.

    Subclass with extra dataclass fields to persist application data next to
    the identity fields; the codec stores every dataclass field.
    """

    user_name: str | None = None
    email: str | None = None
    id: str | None = None
    normalized_user_name: str | None = None
    password_hash: str | None = None
    email_confirmed: bool = False
    normalized_email: str | None = None
