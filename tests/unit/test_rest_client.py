"""Tests for the Firestore REST adapter against the in-memory fake."""

import httpx
import pytest
from fake_firestore import ROOT, FakeFirestore

from firestore_identity.domain.exceptions import (
    PreconditionFailedException,
    StoreClosedException,
)
from firestore_identity.infrastructure.exceptions import (
    DocumentExistsError,
    DocumentStoreException,
)
from firestore_identity.infrastructure.firebase._rest_client import (
    MAX_COMMIT_WRITES,
    FirestoreRESTClient,
)


async def test_get_missing_document_returns_none(firestore_client: FirestoreRESTClient) -> None:
    assert await firestore_client.collection("users").document("nope").get() is None


async def test_set_then_get(firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore) -> None:
    ref = firestore_client.collection("users").document("u1")
    await ref.set({"id": "u1", "user_name": "alice"})
    snapshot = await ref.get()
    assert snapshot is not None
    assert snapshot.id == "u1"
    assert snapshot.path == f"{ROOT}/users/u1"
    assert snapshot.to_dict() == {"id": "u1", "user_name": "alice"}
    assert fake_firestore.get("users/u1") == {"id": "u1", "user_name": "alice"}


async def test_set_merge_keeps_other_fields(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    """merge=True overwrites only the given fields."""
    fake_firestore.put("users/u1", {"id": "u1", "user_name": "alice", "extra": "kept"})
    await firestore_client.collection("users").document("u1").set({"user_name": "alicia"}, merge=True)
    assert fake_firestore.get("users/u1") == {"id": "u1", "user_name": "alicia", "extra": "kept"}


async def test_set_without_merge_replaces(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.put("users/u1", {"id": "u1", "extra": "dropped"})
    await firestore_client.collection("users").document("u1").set({"id": "u1"})
    assert fake_firestore.get("users/u1") == {"id": "u1"}


async def test_delete_must_exist(firestore_client: FirestoreRESTClient) -> None:
    """A missing target raises PreconditionFailedException only with must_exist."""
    ref = firestore_client.collection("users").document("ghost")
    await ref.delete()
    with pytest.raises(PreconditionFailedException) as exc_info:
        await ref.delete(must_exist=True)
    assert exc_info.value.details["resource_id"] == "users/ghost"


async def test_create_existing_document_raises(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    links = firestore_client.collection("users").document("u1").collection("user-roles")
    ref = await links.create("l1", {"user_id": "u1", "role_id": "r1"})
    assert ref.relative_path == "users/u1/user-roles/l1"
    with pytest.raises(DocumentExistsError):
        await links.create("l1", {"user_id": "u1", "role_id": "r1"})
    assert fake_firestore.paths("users/u1/user-roles") == ["users/u1/user-roles/l1"]


async def test_add_generates_id(firestore_client: FirestoreRESTClient) -> None:
    ref = await firestore_client.collection("roles").add({"name": "ADMIN"})
    assert ref.id
    assert (await ref.get()).to_dict() == {"name": "ADMIN"}


async def test_stream_follows_page_tokens(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        "firestore_identity.infrastructure.firebase._rest_client._LIST_PAGE_SIZE", 2
    )
    for i in range(5):
        fake_firestore.put(f"roles/r{i}", {"id": f"r{i}"})
    fake_firestore.put("roles/r0/users/l1", {"user_id": "u1"})
    ids = [s.id for s in await firestore_client.collection("roles").get()]
    assert ids == ["r0", "r1", "r2", "r3", "r4"]


async def test_stream_empty_collection(firestore_client: FirestoreRESTClient) -> None:
    assert await firestore_client.collection("roles").get() == []


async def test_where_equal_and_limit(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.put("roles/r1", {"id": "r1", "name": "ADMIN"})
    fake_firestore.put("roles/r2", {"id": "r2", "name": "ADMIN"})
    fake_firestore.put("roles/r3", {"id": "r3", "name": "USER"})
    found = await firestore_client.collection("roles").where("name", "==", "ADMIN").limit(1).get()
    assert [s.id for s in found] == ["r1"]
    assert await firestore_client.collection("roles").where("name", "==", "NONE").get() == []


async def test_where_in(firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore) -> None:
    for rid in ("r1", "r2", "r3"):
        fake_firestore.put(f"roles/{rid}", {"id": rid})
    found = await firestore_client.collection("roles").where("id", "in", ["r1", "r3"]).get()
    assert sorted(s.id for s in found) == ["r1", "r3"]


async def test_subcollection_query_is_scoped_to_parent(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.put("users/u1/user-roles/l1", {"user_id": "u1", "role_id": "r1"})
    fake_firestore.put("users/u2/user-roles/l2", {"user_id": "u2", "role_id": "r1"})
    links = firestore_client.collection("users").document("u1").collection("user-roles")
    assert [s.id for s in await links.where("role_id", "==", "r1").get()] == ["l1"]


async def test_collection_group_spans_parents(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.put("users/u1/user-roles/l1", {"user_id": "u1", "role_id": "r1"})
    fake_firestore.put("users/u2/user-roles/l2", {"user_id": "u2", "role_id": "r1"})
    fake_firestore.put("users/u2/user-roles/l3", {"user_id": "u2", "role_id": "r2"})
    found = await firestore_client.collection_group("user-roles", "role_id", "==", "r1").get()
    assert sorted(s.id for s in found) == ["l1", "l2"]


async def test_batch_commit_is_atomic(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    """A failed precondition rejects the whole commit."""
    fake_firestore.put("users/u1", {"id": "u1"})
    users = firestore_client.collection("users")
    batch = firestore_client.batch()
    batch.set(users.document("u2"), {"id": "u2"})
    batch.delete(users.document("ghost"), must_exist=True)
    assert len(batch) == 2
    with pytest.raises(PreconditionFailedException):
        await batch.commit()
    assert fake_firestore.get("users/u2") is None


async def test_batch_create_existing_raises(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.put("users/u1", {"id": "u1"})
    batch = firestore_client.batch()
    batch.create(firestore_client.collection("users").document("u1"), {"id": "u1"})
    with pytest.raises(DocumentExistsError):
        await batch.commit()


async def test_batch_merge_and_delete(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.put("users/u1", {"id": "u1", "user_name": "alice"})
    fake_firestore.put("users/u2", {"id": "u2"})
    users = firestore_client.collection("users")
    batch = firestore_client.batch()
    batch.set(users.document("u1"), {"email": "a@example.com"}, merge=True)
    batch.delete(users.document("u2"))
    await batch.commit()
    assert fake_firestore.get("users/u1") == {"id": "u1", "user_name": "alice", "email": "a@example.com"}
    assert fake_firestore.get("users/u2") is None


async def test_empty_batch_sends_nothing(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    await firestore_client.batch().commit()
    assert fake_firestore.requests == []


async def test_batch_over_limit_raises(firestore_client: FirestoreRESTClient) -> None:
    users = firestore_client.collection("users")
    batch = firestore_client.batch()
    for i in range(MAX_COMMIT_WRITES + 1):
        batch.delete(users.document(f"u{i}"))
    with pytest.raises(ValueError):
        await batch.commit()


def test_batch_split(firestore_client: FirestoreRESTClient) -> None:
    users = firestore_client.collection("users")
    batch = firestore_client.batch()
    for i in range(5):
        batch.delete(users.document(f"u{i}"))
    assert [len(part) for part in batch.split(2)] == [2, 2, 1]


async def test_server_error_raises_document_store_exception(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.fail("GET", "users/u1", status_code=500, status="INTERNAL")
    with pytest.raises(DocumentStoreException) as exc_info:
        await firestore_client.collection("users").document("u1").get()
    assert exc_info.value.status_code == 500
    assert exc_info.value.details["reason"] == "INTERNAL"


async def test_failed_precondition_on_delete_maps_to_precondition_failed(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.fail("DELETE", "users/u1", status_code=400, status="FAILED_PRECONDITION")
    with pytest.raises(PreconditionFailedException):
        await firestore_client.collection("users").document("u1").delete(must_exist=True)


async def test_failed_precondition_on_commit_maps_to_precondition_failed(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.fail("POST", ":commit", status_code=400, status="FAILED_PRECONDITION")
    batch = firestore_client.batch()
    batch.delete(firestore_client.collection("users").document("u1"), must_exist=True)
    with pytest.raises(PreconditionFailedException):
        await batch.commit()


async def test_failed_precondition_on_query_keeps_index_hint(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    """A query that needs a missing index is a store error, not a vanished document."""
    hint = "The query requires a COLLECTION_GROUP_ASC index for collection users"
    fake_firestore.fail(
        "POST", ":runQuery", status_code=400, status="FAILED_PRECONDITION", message=hint
    )
    with pytest.raises(DocumentStoreException) as exc_info:
        await firestore_client.collection_group("users", "user_id", "==", "u1").get()
    assert not isinstance(exc_info.value, PreconditionFailedException)
    assert exc_info.value.message == hint
    assert exc_info.value.details == {"status_code": 400, "reason": "FAILED_PRECONDITION"}


async def test_failed_precondition_on_write_is_store_error(
    firestore_client: FirestoreRESTClient, fake_firestore: FakeFirestore
) -> None:
    fake_firestore.fail("PATCH", "users/u1", status_code=400, status="FAILED_PRECONDITION")
    with pytest.raises(DocumentStoreException) as exc_info:
        await firestore_client.collection("users").document("u1").set({"id": "u1"})
    assert exc_info.value.error_code == "DOCUMENT_STORE_ERROR"


async def test_transport_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        client = FirestoreRESTClient("p", None, base_url="http://firestore.test/v1", http_client=http)
        with pytest.raises(DocumentStoreException) as exc_info:
            await client.collection("users").document("u1").get()
    assert "connection refused" in exc_info.value.details["reason"]


async def test_requests_send_emulator_token(fake_firestore: FakeFirestore) -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["Authorization"])
        return fake_firestore.handler(request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        client = FirestoreRESTClient(
            "test-project", None, base_url="http://firestore.test/v1", http_client=http
        )
        await client.collection("users").document("u1").get()
    assert seen == ["Bearer owner"]


async def test_closed_client_rejects_requests(firestore_client: FirestoreRESTClient) -> None:
    await firestore_client.aclose()
    assert firestore_client.closed
    with pytest.raises(StoreClosedException):
        await firestore_client.collection("users").document("u1").get()


async def test_aclose_does_not_close_injected_http_client(fake_firestore: FakeFirestore) -> None:
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_firestore.handler))
    client = FirestoreRESTClient("test-project", None, http_client=http)
    await client.aclose()
    assert not http.is_closed
    await http.aclose()


def test_paths(firestore_client: FirestoreRESTClient) -> None:
    ref = firestore_client.document("/users/u1/")
    assert ref.path == f"{ROOT}/users/u1"
    assert ref.relative_path == "users/u1"
    assert firestore_client.url(ref.path) == f"http://firestore.test/v1/{ROOT}/users/u1"
    assert firestore_client.root == ROOT
