"""Create roles that do not exist yet.

Usage:
    python -m scripts.seed_roles <role_name> [<role_name> ...]
The normalized name is the upper-cased role name. Reads Firestore settings
from the environment / .env (GOOGLE_PROJECT_ID or FIRESTORE_EMULATOR_HOST).
"""

import asyncio
import sys

from firestore_identity.application.services.identity_service import IdentityService
from firestore_identity.domain.entities import Role
from firestore_identity.shared.telemetry.logging import setup_logging


async def main() -> None:
    """Create each named role unless a role with that normalized name exists."""
    if len(sys.argv) < 2:
        print(
            "Usage: python -m scripts.seed_roles <role_name> [<role_name> ...]",
            file=sys.stderr,
        )
        sys.exit(1)
    setup_logging()

    async with IdentityService.from_settings() as identity:
        for name in sys.argv[1:]:
            normalized = name.upper()
            existing = await identity.roles.find_by_name(normalized)
            if existing:
                print(f"Role exists: {name} ({existing.id})")
                continue
            role = await identity.roles.create(Role(name=name, normalized_name=normalized))
            print(f"Created role: {name} ({role.id})")


if __name__ == "__main__":
    asyncio.run(main())
