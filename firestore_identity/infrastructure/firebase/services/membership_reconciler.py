"""Membership reconciliation: find and repair one-sided links.

Two-phase membership writes (or data written by older clients) can leave a
link on one side only. For every (user_id, role_id) pair this pass compares
how many link documents exist on each side and repairs the difference in
the direction the two-phase operations would have finished:

- more user-side copies than role-side copies: an add stopped after the
  user side, so the missing role-side copies are written;
- more role-side copies than user-side copies: a remove stopped after the
  user side, so the extra role-side copies are deleted;
- the user or the role document is gone: every link of the pair is deleted.

Finding role-side copies of a user (and user-side copies of a role) uses
collection-group queries, which need single-field collection-group indexes
on users.user_id and user-roles.role_id.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from firestore_identity.infrastructure.firebase._rest_client import (
    MAX_COMMIT_WRITES,
    DocumentSnapshot,
    FirestoreRESTClient,
    WriteBatch,
)
from firestore_identity.domain.entities import MembershipLink
from firestore_identity.infrastructure.firebase.codec import RecordCodec
from firestore_identity.infrastructure.firebase.collections import (
    FIELD_ROLE_ID,
    FIELD_USER_ID,
    CollectionLayout,
)
from firestore_identity.shared.cancellation import CancellationToken, check_cancelled
from firestore_identity.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ReconciliationReport:
    """Counts of link documents examined and repaired."""

    scanned: int = 0
    mirrored: int = 0
    pruned: int = 0
    orphaned: int = 0
    dry_run: bool = False

    @property
    def repaired(self) -> int:
        return self.mirrored + self.pruned + self.orphaned

    def merge(self, other: "ReconciliationReport") -> "ReconciliationReport":
        self.scanned += other.scanned
        self.mirrored += other.mirrored
        self.pruned += other.pruned
        self.orphaned += other.orphaned
        return self


class MembershipReconciler:
    """Repairs membership links so both sides agree for every pair."""

    def __init__(
        self,
        client: FirestoreRESTClient,
        *,
        layout: CollectionLayout | None = None,
    ) -> None:
        self._client = client
        self._layout = layout or CollectionLayout()
        self._users = client.collection(self._layout.users)
        self._roles = client.collection(self._layout.roles)
        self._link_codec = RecordCodec(MembershipLink)

    def _link_side(self, snapshot: DocumentSnapshot) -> tuple[str, str] | None:
        """Return ("user"|"role", owner_id) for a link snapshot path, None if not a link."""
        if not snapshot.path:
            return None
        parts = self._client.relative_path(snapshot.path).split("/")
        if len(parts) != 4:
            return None
        if parts[0] == self._layout.users and parts[2] == self._layout.user_links:
            return ("user", parts[1])
        if parts[0] == self._layout.roles and parts[2] == self._layout.role_links:
            return ("role", parts[1])
        return None

    async def _exists(self, collection_id: str, record_id: str, cache: dict[str, bool]) -> bool:
        key = f"{collection_id}/{record_id}"
        if key not in cache:
            cache[key] = await self._client.collection(collection_id).document(record_id).get() is not None
        return cache[key]

    def _reconcile_pair(
        self,
        user_id: str,
        role_id: str,
        user_side: list[DocumentSnapshot],
        role_side: list[DocumentSnapshot],
        *,
        user_exists: bool,
        role_exists: bool,
        batch: WriteBatch,
        report: ReconciliationReport,
    ) -> None:
        report.scanned += len(user_side) + len(role_side)
        user_links = self._users.document(user_id).collection(self._layout.user_links)
        role_links = self._roles.document(role_id).collection(self._layout.role_links)

        if not (user_exists and role_exists):
            for snapshot in user_side:
                batch.delete(user_links.document(snapshot.id))
            for snapshot in role_side:
                batch.delete(role_links.document(snapshot.id))
            count = len(user_side) + len(role_side)
            report.orphaned += count
            logger.info(
                "Orphaned links user=%s role=%s (user_exists=%s role_exists=%s): deleting %d",
                user_id, role_id, user_exists, role_exists, count,
            )
            return

        missing = len(user_side) - len(role_side)
        if missing > 0:
            for snapshot in user_side[:missing]:
                link = self._link_codec.from_snapshot(snapshot)
                batch.create(role_links.document(), self._link_codec.to_document(link))
            report.mirrored += missing
            logger.info(
                "User-side only links user=%s role=%s: writing %d role-side copies",
                user_id, role_id, missing,
            )
        elif missing < 0:
            extra = -missing
            for snapshot in role_side[:extra]:
                batch.delete(role_links.document(snapshot.id))
            report.pruned += extra
            logger.info(
                "Role-side only links user=%s role=%s: deleting %d role-side copies",
                user_id, role_id, extra,
            )

    async def _apply(self, batch: WriteBatch, report: ReconciliationReport) -> None:
        if report.dry_run:
            return
        # Repairs are independent, so chunks may commit separately.
        for part in batch.split(MAX_COMMIT_WRITES):
            await part.commit()

    async def reconcile_user(
        self,
        user_id: str,
        *,
        dry_run: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> ReconciliationReport:
        """Balance every link pair of one user."""
        return await self._reconcile_user(user_id, dry_run, cancellation, set())

    async def _reconcile_user(
        self,
        user_id: str,
        dry_run: bool,
        cancellation: CancellationToken | None,
        seen: set[tuple[str, str]],
    ) -> ReconciliationReport:
        check_cancelled(cancellation, "reconcile_user")
        report = ReconciliationReport(dry_run=dry_run)
        by_role_user_side: dict[str, list[DocumentSnapshot]] = defaultdict(list)
        by_role_role_side: dict[str, list[DocumentSnapshot]] = defaultdict(list)

        user_links = self._users.document(user_id).collection(self._layout.user_links)
        for snapshot in await user_links.get():
            by_role_user_side[self._link_codec.from_snapshot(snapshot).role_id].append(snapshot)
        group = self._client.collection_group(
            self._layout.role_links, FIELD_USER_ID, "==", user_id
        )
        for snapshot in await group.get():
            side = self._link_side(snapshot)
            if side and side[0] == "role":
                by_role_role_side[side[1]].append(snapshot)
        check_cancelled(cancellation, "reconcile_user")

        exists: dict[str, bool] = {}
        user_exists = await self._exists(self._layout.users, user_id, exists)
        batch = self._client.batch()
        for role_id in {*by_role_user_side, *by_role_role_side}:
            if (user_id, role_id) in seen:
                continue
            seen.add((user_id, role_id))
            self._reconcile_pair(
                user_id,
                role_id,
                by_role_user_side.get(role_id, []),
                by_role_role_side.get(role_id, []),
                user_exists=user_exists,
                role_exists=await self._exists(self._layout.roles, role_id, exists),
                batch=batch,
                report=report,
            )
        check_cancelled(cancellation, "reconcile_user")
        await self._apply(batch, report)
        return report

    async def reconcile_role(
        self,
        role_id: str,
        *,
        dry_run: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> ReconciliationReport:
        """Balance every link pair of one role."""
        return await self._reconcile_role(role_id, dry_run, cancellation, set())

    async def _reconcile_role(
        self,
        role_id: str,
        dry_run: bool,
        cancellation: CancellationToken | None,
        seen: set[tuple[str, str]],
    ) -> ReconciliationReport:
        check_cancelled(cancellation, "reconcile_role")
        report = ReconciliationReport(dry_run=dry_run)
        by_user_role_side: dict[str, list[DocumentSnapshot]] = defaultdict(list)
        by_user_user_side: dict[str, list[DocumentSnapshot]] = defaultdict(list)

        role_links = self._roles.document(role_id).collection(self._layout.role_links)
        for snapshot in await role_links.get():
            by_user_role_side[self._link_codec.from_snapshot(snapshot).user_id].append(snapshot)
        group = self._client.collection_group(
            self._layout.user_links, FIELD_ROLE_ID, "==", role_id
        )
        for snapshot in await group.get():
            side = self._link_side(snapshot)
            if side and side[0] == "user":
                by_user_user_side[side[1]].append(snapshot)
        check_cancelled(cancellation, "reconcile_role")

        exists: dict[str, bool] = {}
        role_exists = await self._exists(self._layout.roles, role_id, exists)
        batch = self._client.batch()
        for user_id in {*by_user_role_side, *by_user_user_side}:
            if (user_id, role_id) in seen:
                continue
            seen.add((user_id, role_id))
            self._reconcile_pair(
                user_id,
                role_id,
                by_user_user_side.get(user_id, []),
                by_user_role_side.get(user_id, []),
                user_exists=await self._exists(self._layout.users, user_id, exists),
                role_exists=role_exists,
                batch=batch,
                report=report,
            )
        check_cancelled(cancellation, "reconcile_role")
        await self._apply(batch, report)
        return report

    async def reconcile_all(
        self,
        *,
        dry_run: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> ReconciliationReport:
        """Reconcile every user, then every role (catches links of deleted users).

        Each (user_id, role_id) pair is balanced once: pairs the user pass
        covered are skipped by the role pass, so a dry run counts the same
        repairs a real run makes.
        """
        report = ReconciliationReport(dry_run=dry_run)
        seen: set[tuple[str, str]] = set()
        async for snapshot in self._users.stream():
            report.merge(
                await self._reconcile_user(snapshot.id, dry_run, cancellation, seen)
            )
        async for snapshot in self._roles.stream():
            report.merge(
                await self._reconcile_role(snapshot.id, dry_run, cancellation, seen)
            )
        logger.info(
            "Membership reconciliation finished: scanned=%d mirrored=%d pruned=%d orphaned=%d dry_run=%s",
            report.scanned, report.mirrored, report.pruned, report.orphaned, dry_run,
        )
        return report
