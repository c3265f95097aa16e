"""Base Firestore record store: create, update, delete, point and name lookups.

One document per record at ``<collection>/<record.id>``. Writes use merge
semantics and no concurrency token (last writer wins). Lookups return None
when nothing matches and raise only when the store call itself fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from firestore_identity.infrastructure.firebase._rest_client import (
    DocumentReference,
    FirestoreRESTClient,
)
from firestore_identity.infrastructure.firebase.codec import RecordCodec
from firestore_identity.infrastructure.firebase.repositories._guards import (
    require_id,
    require_record,
    require_text,
)
from firestore_identity.infrastructure.firebase.repositories.membership_firestore import (
    FirestoreMembershipManager,
)
from firestore_identity.shared.cancellation import CancellationToken, check_cancelled
from firestore_identity.shared.lifecycle import ClosableStore, store_operation
from firestore_identity.shared.utils.generators import generate_cuid


class FirestoreRecordStore[RecordT](ClosableStore, ABC):
    """CRUD over one record type in one collection.

    Subclasses set ``_argument`` (name used in InvalidArgument errors) and
    implement ``_link_refs`` so delete can purge membership links.
    """

    _argument = "record"

    def __init__(
        self,
        client: FirestoreRESTClient,
        collection_id: str,
        record_type: type[RecordT],
        membership: FirestoreMembershipManager | None = None,
    ) -> None:
        self._client = client
        self._coll = client.collection(collection_id)
        self._codec = RecordCodec(record_type)
        self._membership = membership

    @property
    def record_type(self) -> type[RecordT]:
        return self._codec.record_type

    @store_operation
    async def create(
        self, record: RecordT, cancellation: CancellationToken | None = None
    ) -> RecordT:
        """Persist a new record; assigns a fresh id when the record has none."""
        require_record(record, self._argument)
        if not record.id:
            record.id = generate_cuid()
        await self._coll.document(record.id).set(
            self._codec.to_document(record), merge=True
        )
        return record

    @store_operation
    async def update(
        self, record: RecordT, cancellation: CancellationToken | None = None
    ) -> RecordT:
        """Merge-write the record under its id (no concurrency check)."""
        record_id = require_id(record, self._argument)
        await self._coll.document(record_id).set(
            self._codec.to_document(record), merge=True
        )
        return record

    @store_operation
    async def delete(
        self, record: RecordT, cancellation: CancellationToken | None = None
    ) -> None:
        """Delete the record (must exist) and, when membership is wired, its links.

        Raises:
            PreconditionFailedException: The document was already absent.
        """
        record_id = require_id(record, self._argument)
        ref = self._coll.document(record_id)
        if self._membership is None:
            await ref.delete(must_exist=True)
            return
        link_refs = await self._link_refs(self._membership, record_id)
        check_cancelled(cancellation, "delete")
        await self._membership.delete_with_links(ref, link_refs)

    @store_operation
    async def find_by_id(
        self, record_id: str, cancellation: CancellationToken | None = None
    ) -> RecordT | None:
        """Return the record with this id, or None."""
        require_text(record_id, f"{self._argument}_id")
        snapshot = await self._coll.document(record_id).get()
        if snapshot is None:
            return None
        return self._codec.from_snapshot(snapshot)

    async def _find_one(self, field: str, value: str) -> RecordT | None:
        """First record whose field equals value, or None."""
        async for snapshot in self._coll.where(field, "==", value).limit(1).stream():
            return self._codec.from_snapshot(snapshot)
        return None

    async def _stored_field(self, record: RecordT, field: str) -> Any:
        """Value of field as stored; the in-memory value when the record is not persisted."""
        if record.id:
            snapshot = await self._coll.document(record.id).get()
            if snapshot is not None and field in snapshot.to_dict():
                return snapshot.to_dict()[field]
        return getattr(record, field)

    @abstractmethod
    async def _link_refs(
        self, membership: FirestoreMembershipManager, record_id: str
    ) -> list[DocumentReference]:
        """Every membership link of the record, on both sides."""
