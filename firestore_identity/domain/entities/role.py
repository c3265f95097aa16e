"""Role identity record."""

from dataclasses import dataclass


@dataclass
class Role:
    """Identity role. Looked up by name for membership operations."""

    name: str | None = None
    id: str | None = None
    normalized_name: str | None = None
