"""Record codec: dataclass records <-> Firestore document data.

One codec per concrete record type (User, Role, MembershipLink or an
application subclass). Every dataclass field maps to a document field of
the same name. On read, the document id is written back onto the record's
``id`` field, so the id stored inside the document never wins over the
document's actual name.
"""

from __future__ import annotations

import dataclasses
from typing import Any

from firestore_identity.infrastructure.firebase._rest_client import DocumentSnapshot
from firestore_identity.infrastructure.firebase.collections import FIELD_ID


class RecordCodec[T]:
    """Maps one dataclass record type to and from document data."""

    def __init__(self, record_type: type[T]) -> None:
        if not (isinstance(record_type, type) and dataclasses.is_dataclass(record_type)):
            raise TypeError(f"RecordCodec needs a dataclass type, got {record_type!r}")
        self._record_type = record_type
        self._fields = tuple(f.name for f in dataclasses.fields(record_type) if f.init)
        self._has_id = FIELD_ID in self._fields

    @property
    def record_type(self) -> type[T]:
        return self._record_type

    @property
    def field_names(self) -> tuple[str, ...]:
        return self._fields

    def to_document(self, record: T) -> dict[str, Any]:
        """Return the document data for a record (all fields, id included)."""
        if not isinstance(record, self._record_type):
            raise TypeError(
                f"Expected {self._record_type.__name__}, got {type(record).__name__}"
            )
        return {name: getattr(record, name) for name in self._fields}

    def from_data(self, data: dict[str, Any], document_id: str | None = None) -> T:
        """Build a record from document data; unknown stored fields are ignored."""
        kwargs = {name: data[name] for name in self._fields if name in data}
        if self._has_id and document_id is not None:
            kwargs[FIELD_ID] = document_id
        return self._record_type(**kwargs)

    def from_snapshot(self, snapshot: DocumentSnapshot) -> T:
        """Build a record from a snapshot, assigning the document id to ``id``."""
        return self.from_data(snapshot.to_dict(), snapshot.id)
