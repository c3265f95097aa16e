"""Repair one-sided membership links.

Usage:
    python -m scripts.reconcile_memberships [--dry-run] [--user <user_id> | --role <role_id>]
Without --user/--role every user and role is scanned. With --dry-run the
repairs are reported but nothing is written.
"""

import asyncio
import sys

from firestore_identity.application.services.identity_service import IdentityService
from firestore_identity.shared.telemetry.logging import setup_logging

_USAGE = (
    "Usage: python -m scripts.reconcile_memberships "
    "[--dry-run] [--user <user_id> | --role <role_id>]"
)


def _parse_args(argv: list[str]) -> tuple[bool, str | None, str | None]:
    """Return (dry_run, user_id, role_id); exits with usage on bad input."""
    dry_run = False
    user_id: str | None = None
    role_id: str | None = None
    args = iter(argv)
    for arg in args:
        if arg == "--dry-run":
            dry_run = True
        elif arg in ("--user", "--role"):
            value = next(args, None)
            if not value:
                print(_USAGE, file=sys.stderr)
                sys.exit(1)
            if arg == "--user":
                user_id = value
            else:
                role_id = value
        else:
            print(_USAGE, file=sys.stderr)
            sys.exit(1)
    if user_id and role_id:
        print(_USAGE, file=sys.stderr)
        sys.exit(1)
    return dry_run, user_id, role_id


async def main() -> None:
    """Run the reconciliation and print the report."""
    dry_run, user_id, role_id = _parse_args(sys.argv[1:])
    setup_logging()

    async with IdentityService.from_settings() as identity:
        if user_id:
            report = await identity.reconciler.reconcile_user(user_id, dry_run=dry_run)
        elif role_id:
            report = await identity.reconciler.reconcile_role(role_id, dry_run=dry_run)
        else:
            report = await identity.reconciler.reconcile_all(dry_run=dry_run)

    prefix = "Would repair" if dry_run else "Repaired"
    print(
        f"{prefix} {report.repaired} link(s): mirrored={report.mirrored} "
        f"pruned={report.pruned} orphaned={report.orphaned} (scanned {report.scanned})"
    )


if __name__ == "__main__":
    asyncio.run(main())
