"""Thin Firestore REST API client (no firebase-admin).

Uses google-auth for service account / default credentials and Firestore
REST v1. All HTTP calls use httpx.AsyncClient so they do not block the event
loop. Supports the operations the identity stores need: point reads, merge
writes, deletes with an existence precondition, single-filter queries
(==, in, ...), paginated listing, sub-collections and atomic commits.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote

import httpx

from firestore_identity.domain.exceptions import (
    PreconditionFailedException,
    StoreClosedException,
)
from firestore_identity.infrastructure.exceptions import (
    DocumentExistsError,
    DocumentStoreException,
    _error_status,
)
from firestore_identity.infrastructure.firebase._rest_encoding import (
    _encode_value,
    decode_document,
    encode_document,
)
from firestore_identity.shared.utils.generators import generate_cuid

logger = logging.getLogger(__name__)

_FIRESTORE_SCOPE = "https://www.googleapis.com/auth/datastore"
_BASE = "https://firestore.googleapis.com/v1"
_EMULATOR_TOKEN = "owner"
_LIST_PAGE_SIZE = 300

# Firestore limits: writes per commit, values per "in" filter.
MAX_COMMIT_WRITES = 500
MAX_IN_VALUES = 30


def _get_credentials(key_dict: dict):
    """Return google.oauth2.service_account.Credentials for Firestore."""
    from google.oauth2 import service_account

    return service_account.Credentials.from_service_account_info(
        key_dict, scopes=[_FIRESTORE_SCOPE]
    )


def _get_default_credentials():
    """Return (credentials, project_id) from Application Default Credentials."""
    import google.auth

    return google.auth.default(scopes=[_FIRESTORE_SCOPE])


def _get_access_token(credentials) -> str:
    from google.auth.transport.requests import Request

    if not credentials.valid:
        credentials.refresh(Request())
    return credentials.token


async def _request_async(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    body: dict | None = None,
    access_token: str | None = None,
    params: list[tuple[str, str]] | None = None,
    path: str | None = None,
) -> dict | list | None:
    """Perform async HTTP request to Firestore REST API. 404 returns None.

    409 raises DocumentExistsError. FAILED_PRECONDITION on a delete or a
    commit raises PreconditionFailedException (the target is gone); on any
    other request, as on any other failure, DocumentStoreException carries
    Firestore's own message (e.g. a missing-index hint on runQuery).
    ``path`` is only used for error messages.
    """
    headers = {"Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    logger.debug("Firestore %s %s", method, url)
    try:
        if method == "GET":
            resp = await client.get(url, headers=headers, params=params)
        elif method == "PATCH":
            resp = await client.patch(url, headers=headers, json=body, params=params)
        elif method == "POST":
            resp = await client.post(url, headers=headers, json=body, params=params)
        elif method == "DELETE":
            resp = await client.delete(url, headers=headers, params=params)
        else:
            raise ValueError(f"Unsupported method: {method!r}")
    except httpx.HTTPError as exc:
        raise DocumentStoreException(
            f"Firestore request failed: {method} {path or url}", reason=str(exc)
        ) from exc
    if resp.status_code == 404:
        return None
    if resp.status_code == 409:
        raise DocumentExistsError(path or url)
    if resp.status_code not in (200, 204):
        status, _ = _error_status(resp)
        if status == "FAILED_PRECONDITION" and path and (
            method == "DELETE" or url.endswith(":commit")
        ):
            raise PreconditionFailedException(path)
        raise DocumentStoreException.from_response(resp)
    if method == "DELETE":
        return {}
    raw = resp.content
    return json.loads(raw.decode()) if raw else {}


class DocumentReference:
    """Reference to a single document; matches firestore API style."""

    def __init__(self, client: "FirestoreRESTClient", path: str):
        self._client = client
        self._path = path

    @property
    def id(self) -> str:
        return self._path.rsplit("/", 1)[-1]

    @property
    def path(self) -> str:
        """Full resource name (projects/.../documents/<collection>/<id>)."""
        return self._path

    @property
    def relative_path(self) -> str:
        """Path below the database root, e.g. 'users/abc/user-roles/xyz'."""
        return self._client.relative_path(self._path)

    def collection(self, collection_id: str) -> "CollectionReference":
        """Sub-collection under this document."""
        return CollectionReference(self._client, f"{self._path}/{collection_id}")

    async def set(self, data: dict[str, Any], *, merge: bool = False) -> None:
        """Create or write the document.

        merge=False replaces the whole document. merge=True only overwrites
        the top-level fields present in ``data`` (update mask) and creates the
        document when absent.
        """
        params = (
            [("updateMask.fieldPaths", key) for key in data] if merge else None
        )
        await _request_async(
            self._client._http,
            self._client.url(self._path),
            method="PATCH",
            body=encode_document(data),
            access_token=await self._client.get_token(),
            params=params,
            path=self.relative_path,
        )

    async def get(self) -> DocumentSnapshot | None:
        """Fetch the document; returns None if not found."""
        out = await _request_async(
            self._client._http,
            self._client.url(self._path),
            access_token=await self._client.get_token(),
            path=self.relative_path,
        )
        if not out:
            return None
        return DocumentSnapshot(self.id, decode_document(out), path=self._path)

    async def delete(self, *, must_exist: bool = False) -> None:
        """Delete the document.

        Without ``must_exist`` this is idempotent (a missing document is not an
        error). With it, a missing document raises PreconditionFailedException.
        """
        params = [("currentDocument.exists", "true")] if must_exist else None
        out = await _request_async(
            self._client._http,
            self._client.url(self._path),
            method="DELETE",
            access_token=await self._client.get_token(),
            params=params,
            path=self.relative_path,
        )
        if out is None and must_exist:
            raise PreconditionFailedException(self.relative_path)


class DocumentSnapshot:
    """Snapshot of a document (id + data)."""

    def __init__(self, id_: str, data: dict, *, path: str | None = None):
        self.id = id_
        self._data = data
        self.path = path

    def to_dict(self) -> dict:
        return self._data


_OP_MAP: dict[str, str] = {
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "in": "IN",
    "not-in": "NOT_IN",
    "array_contains": "ARRAY_CONTAINS",
    "array-contains": "ARRAY_CONTAINS",
    "array_contains_any": "ARRAY_CONTAINS_ANY",
    "array-contains-any": "ARRAY_CONTAINS_ANY",
}


class _Query:
    """Fluent query builder for collection; runs via runQuery (filter/order/offset/limit on server)."""

    def __init__(
        self,
        client: "FirestoreRESTClient",
        parent: str,
        collection_id: str,
        *,
        where_field: str | None = None,
        where_op: str = "EQUAL",
        where_value: Any = None,
        all_descendants: bool = False,
    ):
        self._client = client
        self._parent = parent
        self._collection_id = collection_id
        self._where_field = where_field
        self._where_op = _OP_MAP.get(where_op, where_op)
        self._where_value = where_value
        self._all_descendants = all_descendants
        self._order_by_field: str | None = None
        self._order_direction: str = "ASCENDING"
        self._offset: int = 0
        self._limit: int | None = None

    def order_by(self, field: str, direction: str = "ASCENDING") -> "_Query":
        self._order_by_field = field
        self._order_direction = direction
        return self

    def offset(self, n: int) -> "_Query":
        self._offset = n
        return self

    def limit(self, n: int) -> "_Query":
        self._limit = n
        return self

    def _structured_query(self) -> dict[str, Any]:
        selector: dict[str, Any] = {"collectionId": self._collection_id}
        if self._all_descendants:
            selector["allDescendants"] = True
        structured: dict[str, Any] = {"from": [selector]}
        if self._where_field is not None:
            structured["where"] = {
                "fieldFilter": {
                    "field": {"fieldPath": self._where_field},
                    "op": self._where_op,
                    "value": _encode_value(self._where_value),
                }
            }
        if self._order_by_field is not None:
            structured["orderBy"] = [
                {
                    "field": {"fieldPath": self._order_by_field},
                    "direction": self._order_direction,
                }
            ]
        if self._offset:
            structured["offset"] = self._offset
        if self._limit:
            structured["limit"] = self._limit
        return structured

    async def stream(self) -> AsyncIterator[DocumentSnapshot]:
        """Execute the query and yield document snapshots."""
        body = {"structuredQuery": self._structured_query()}
        resp = await _request_async(
            self._client._http,
            f"{self._client.url(self._parent)}:runQuery",
            method="POST",
            body=body,
            access_token=await self._client.get_token(),
            path=self._client.relative_path(f"{self._parent}/{self._collection_id}"),
        )
        items = resp if isinstance(resp, list) else ([resp] if resp else [])
        for item in items:
            if "document" not in item:
                continue
            doc = item["document"]
            name = doc.get("name", "")
            doc_id = name.split("/")[-1] if name else ""
            yield DocumentSnapshot(doc_id, decode_document(doc), path=name or None)

    async def get(self) -> list[DocumentSnapshot]:
        """Execute the query and return all snapshots as a list."""
        return [snapshot async for snapshot in self.stream()]


class CollectionReference:
    """Reference to a collection (top-level or sub-collection); matches firestore API style."""

    def __init__(self, client: "FirestoreRESTClient", path: str):
        self._client = client
        self._path = path.rstrip("/")

    @property
    def id(self) -> str:
        return self._path.rsplit("/", 1)[-1]

    @property
    def path(self) -> str:
        return self._path

    def document(self, document_id: str | None = None) -> DocumentReference:
        """Reference a document by id; a fresh CUID is used when id is omitted."""
        return DocumentReference(
            self._client, f"{self._path}/{document_id or generate_cuid()}"
        )

    async def create(self, document_id: str, data: dict[str, Any]) -> DocumentReference:
        """Create a document with the given ID (fail with DocumentExistsError if it exists)."""
        ref = self.document(document_id)
        await _request_async(
            self._client._http,
            f"{self._client.url(self._path)}?documentId={quote(document_id, safe='')}",
            method="POST",
            body=encode_document(data),
            access_token=await self._client.get_token(),
            path=ref.relative_path,
        )
        return ref

    async def add(self, data: dict[str, Any]) -> DocumentReference:
        """Create a document under a freshly generated id and return its reference."""
        return await self.create(generate_cuid(), data)

    def where(
        self, field: str, op: str, value: Any
    ) -> _Query:
        """Start a query with a filter. Use .order_by(), .offset(), .limit(), then .stream()."""
        parent, _, collection_id = self._path.rpartition("/")
        return _Query(
            self._client,
            parent,
            collection_id,
            where_field=field,
            where_op=op,
            where_value=value,
        )

    async def stream(self) -> AsyncIterator[DocumentSnapshot]:
        """List documents in the collection (shallow), following page tokens."""
        page_token: str | None = None
        while True:
            params = [("pageSize", str(_LIST_PAGE_SIZE))]
            if page_token:
                params.append(("pageToken", page_token))
            out = await _request_async(
                self._client._http,
                self._client.url(self._path),
                access_token=await self._client.get_token(),
                params=params,
                path=self._client.relative_path(self._path),
            )
            if not out:
                return
            for doc in out.get("documents", []):
                name = doc.get("name", "")
                doc_id = name.split("/")[-1] if name else ""
                yield DocumentSnapshot(doc_id, decode_document(doc), path=name or None)
            page_token = out.get("nextPageToken")
            if not page_token:
                return

    async def get(self) -> list[DocumentSnapshot]:
        """Return every document in the collection as a list."""
        return [snapshot async for snapshot in self.stream()]


class WriteBatch:
    """Writes applied together by one documents:commit call (all or nothing)."""

    def __init__(self, client: "FirestoreRESTClient") -> None:
        self._client = client
        self._writes: list[dict[str, Any]] = []
        self._paths: list[str] = []

    def __len__(self) -> int:
        return len(self._writes)

    def create(self, ref: DocumentReference, data: dict[str, Any]) -> "WriteBatch":
        """Insert a document that must not exist yet."""
        return self._append(
            {
                "update": {"name": ref.path, **encode_document(data)},
                "currentDocument": {"exists": False},
            },
            ref,
        )

    def set(
        self, ref: DocumentReference, data: dict[str, Any], *, merge: bool = False
    ) -> "WriteBatch":
        """Write a document (full replace, or merge of the given top-level fields)."""
        write: dict[str, Any] = {"update": {"name": ref.path, **encode_document(data)}}
        if merge:
            write["updateMask"] = {"fieldPaths": list(data)}
        return self._append(write, ref)

    def delete(self, ref: DocumentReference, *, must_exist: bool = False) -> "WriteBatch":
        """Delete a document; with must_exist the whole commit fails if it is absent."""
        write: dict[str, Any] = {"delete": ref.path}
        if must_exist:
            write["currentDocument"] = {"exists": True}
        return self._append(write, ref)

    def extend(self, other: "WriteBatch") -> "WriteBatch":
        """Append every write of another batch (same client)."""
        self._writes.extend(other._writes)
        self._paths.extend(other._paths)
        return self

    def split(self, size: int = MAX_COMMIT_WRITES) -> list["WriteBatch"]:
        """Break into batches of at most ``size`` writes (each commits independently)."""
        parts: list[WriteBatch] = []
        for start in range(0, len(self._writes), size):
            part = WriteBatch(self._client)
            part._writes = self._writes[start:start + size]
            part._paths = self._paths[start:start + size]
            parts.append(part)
        return parts

    def _append(self, write: dict[str, Any], ref: DocumentReference) -> "WriteBatch":
        self._writes.append(write)
        self._paths.append(ref.relative_path)
        return self

    async def commit(self) -> None:
        """Apply every write atomically. No-op for an empty batch."""
        if not self._writes:
            return
        if len(self._writes) > MAX_COMMIT_WRITES:
            raise ValueError(
                f"A commit accepts at most {MAX_COMMIT_WRITES} writes, got {len(self._writes)}"
            )
        paths = ", ".join(self._paths)
        out = await _request_async(
            self._client._http,
            f"{self._client.url(self._client.root)}:commit",
            method="POST",
            body={"writes": self._writes},
            access_token=await self._client.get_token(),
            path=paths,
        )
        if out is None:
            # NOT_FOUND on commit means an existence precondition failed.
            raise PreconditionFailedException(paths)


class FirestoreRESTClient:
    """Lightweight Firestore client using REST API (no firebase-admin).

    Owns its HTTP connection pool unless one is injected. After aclose(),
    every request raises StoreClosedException.
    """

    def __init__(
        self,
        project_id: str,
        credentials,
        *,
        database: str = "(default)",
        base_url: str = _BASE,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._project_id = project_id
        self._credentials = credentials
        self._base_url = base_url.rstrip("/")
        self._prefix = f"projects/{project_id}/databases/{database}/documents"
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None
        self._closed = False

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def root(self) -> str:
        """Resource name of the database's document root."""
        return self._prefix

    @property
    def closed(self) -> bool:
        return self._closed

    def url(self, resource_path: str) -> str:
        return f"{self._base_url}/{resource_path}"

    def relative_path(self, resource_path: str) -> str:
        if resource_path.startswith(self._prefix):
            return resource_path[len(self._prefix):].lstrip("/")
        return resource_path

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it (do not close injected client)."""
        if self._closed:
            return
        self._closed = True
        if self._owns_http:
            await self._http.aclose()

    async def get_token(self) -> str:
        """Return a valid access token; refreshes in thread pool to avoid blocking."""
        if self._closed:
            raise StoreClosedException(type(self).__name__)
        if self._credentials is None:
            return _EMULATOR_TOKEN
        return await asyncio.to_thread(_get_access_token, self._credentials)

    def collection(self, collection_id: str) -> CollectionReference:
        return CollectionReference(self, f"{self._prefix}/{collection_id}")

    def collection_group(
        self, collection_id: str, field: str, op: str, value: Any
    ) -> _Query:
        """Filtered query over every collection named collection_id, at any depth."""
        return _Query(
            self,
            self._prefix,
            collection_id,
            where_field=field,
            where_op=op,
            where_value=value,
            all_descendants=True,
        )

    def document(self, document_path: str) -> DocumentReference:
        """Reference a document by slash path below the root (e.g. 'users/abc')."""
        return DocumentReference(self, f"{self._prefix}/{document_path.strip('/')}")

    def batch(self) -> WriteBatch:
        return WriteBatch(self)
