"""FastAPI wiring: lifespan, dependency providers and exception handlers."""

import pytest
from fake_firestore import FakeFirestore
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from firestore_identity.application.services.identity_service import IdentityService
from firestore_identity.domain.entities import Role, User
from firestore_identity.domain.exceptions import ResourceNotFoundException
from firestore_identity.infrastructure.firebase.repositories import (
    FirestoreRoleStore,
    FirestoreUserStore,
)
from firestore_identity.integrations import fastapi as integration
from firestore_identity.integrations.fastapi import (
    get_role_store,
    get_user_store,
    identity_lifespan,
    register_exception_handlers,
)


def _create_app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/users/{user_id}")
    async def read_user(user_id: str, users: FirestoreUserStore = Depends(get_user_store)):
        user = await users.find_by_id(user_id)
        if user is None:
            raise ResourceNotFoundException("user", user_id)
        return {"id": user.id, "user_name": user.user_name}

    @app.get("/users/{user_id}/roles")
    async def user_roles(user_id: str, users: FirestoreUserStore = Depends(get_user_store)):
        return await users.get_roles_for_user(await users.find_by_id(user_id))

    @app.post("/users/{user_id}/roles/{role_name}")
    async def add_role(
        user_id: str, role_name: str, users: FirestoreUserStore = Depends(get_user_store)
    ):
        user = await users.find_by_id(user_id)
        await users.add_to_role(user, role_name)
        return await users.get_roles_for_user(user)

    @app.delete("/roles/{role_id}", status_code=204)
    async def delete_role(role_id: str, roles: FirestoreRoleStore = Depends(get_role_store)):
        await roles.delete(Role(id=role_id))

    return app


@pytest.fixture
async def identity(fake_firestore: FakeFirestore) -> IdentityService:
    service = IdentityService(fake_firestore.client())
    yield service
    await service.close()
    await service.client._http.aclose()


@pytest.fixture
async def api(identity: IdentityService) -> AsyncClient:
    app = _create_app()
    app.state.identity = identity
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def test_read_user(api: AsyncClient, identity: IdentityService) -> None:
    user = await identity.users.create(User(user_name="alice"))
    resp = await api.get(f"/users/{user.id}")
    assert resp.status_code == 200
    assert resp.json() == {"id": user.id, "user_name": "alice"}


async def test_missing_user_is_404(api: AsyncClient) -> None:
    resp = await api.get("/users/nope")
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "RESOURCE_NOT_FOUND"


async def test_add_role_and_list(api: AsyncClient, identity: IdentityService) -> None:
    user = await identity.users.create(User(user_name="alice"))
    await identity.roles.create(Role(name="ADMIN", normalized_name="ADMIN"))
    resp = await api.post(f"/users/{user.id}/roles/ADMIN")
    assert resp.status_code == 200
    assert resp.json() == ["ADMIN"]


async def test_unknown_role_is_404_with_role_not_found(api: AsyncClient, identity: IdentityService) -> None:
    user = await identity.users.create(User(user_name="alice"))
    resp = await api.post(f"/users/{user.id}/roles/GHOST")
    assert resp.status_code == 404
    body = resp.json()
    assert body["error_code"] == "ROLE_NOT_FOUND"
    assert body["details"]["resource_id"] == "GHOST"


async def test_missing_argument_is_400(api: AsyncClient) -> None:
    """A user that does not exist reaches the store as None."""
    resp = await api.get("/users/nope/roles")
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_ARGUMENT"


async def test_deleting_missing_role_is_412(api: AsyncClient) -> None:
    resp = await api.delete("/roles/ghost")
    assert resp.status_code == 412
    assert resp.json()["error_code"] == "PRECONDITION_FAILED"


async def test_store_failure_is_502(api: AsyncClient, fake_firestore: FakeFirestore) -> None:
    fake_firestore.fail("GET", "users/u1", status_code=500, status="INTERNAL")
    resp = await api.get("/users/u1")
    assert resp.status_code == 502
    assert resp.json()["error_code"] == "DOCUMENT_STORE_ERROR"


async def test_closed_service_is_503(api: AsyncClient, identity: IdentityService) -> None:
    await identity.close()
    resp = await api.get("/users/u1")
    assert resp.status_code == 503


async def test_missing_service_is_503() -> None:
    app = _create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/users/u1")
    assert resp.status_code == 503
    assert "not configured" in resp.json()["detail"]


async def test_lifespan_creates_and_closes_service(
    fake_firestore: FakeFirestore, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = IdentityService(fake_firestore.client())
    monkeypatch.setattr(integration.IdentityService, "from_settings", classmethod(lambda cls: service))
    app = FastAPI()
    async with identity_lifespan(app):
        assert app.state.identity is service
    assert service.closed
    assert app.state.identity is None
    await service.client._http.aclose()
