"""Argument checks shared by the Firestore stores."""

from typing import Any

from firestore_identity.domain.exceptions import InvalidArgumentException


def require_record(record: Any, argument: str) -> Any:
    if record is None:
        raise InvalidArgumentException(argument)
    return record


def require_id(record: Any, argument: str) -> str:
    """Return the record's id; the record must exist and have been created."""
    require_record(record, argument)
    record_id = getattr(record, "id", None)
    if not record_id:
        raise InvalidArgumentException(
            f"{argument}.id", f"{argument} has no id; create it first"
        )
    return record_id


def require_text(value: str | None, argument: str) -> str:
    if value is None or not value.strip():
        raise InvalidArgumentException(argument)
    return value
