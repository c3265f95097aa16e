"""Pytest configuration and fixtures for firestore-identity.

Store tests run the real REST adapter against FakeFirestore (an in-memory
Firestore REST server behind httpx.MockTransport). Tests marked
requires_firestore talk to an emulator and skip unless
FIRESTORE_EMULATOR_HOST is set.
"""

import os

import pytest
from fake_firestore import FakeFirestore

from firestore_identity.application.services.identity_service import (
    IdentityStores,
    build_identity_stores,
)
from firestore_identity.core.config import get_settings
from firestore_identity.domain.entities import Role, User
from firestore_identity.infrastructure.firebase._rest_client import FirestoreRESTClient


@pytest.fixture(autouse=True)
def _settings_env(monkeypatch: pytest.MonkeyPatch):
    """Give every test a valid project id and fresh settings."""
    monkeypatch.setenv("GOOGLE_PROJECT_ID", os.environ.get("GOOGLE_PROJECT_ID", "test-project"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_firestore() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
async def firestore_client(fake_firestore: FakeFirestore) -> FirestoreRESTClient:
    """Adapter against the fake; its injected HTTP client is closed after the test."""
    client = fake_firestore.client()
    yield client
    await client.aclose()
    await client._http.aclose()


@pytest.fixture
def stores(firestore_client: FirestoreRESTClient) -> IdentityStores:
    """User store, role store, membership manager and reconciler (atomic writes)."""
    return build_identity_stores(firestore_client)


@pytest.fixture
def two_phase_stores(firestore_client: FirestoreRESTClient) -> IdentityStores:
    """Same as stores, but membership writes are issued one after the other."""
    return build_identity_stores(firestore_client, atomic=False)


@pytest.fixture
async def alice(stores: IdentityStores) -> User:
    """Persisted user 'alice'."""
    return await stores.users.create(
        User(
            user_name="alice",
            normalized_user_name="ALICE",
            email="alice@example.com",
            normalized_email="ALICE@EXAMPLE.COM",
        )
    )


@pytest.fixture
async def admin_role(stores: IdentityStores) -> Role:
    """Persisted role 'ADMIN'."""
    return await stores.roles.create(Role(name="ADMIN", normalized_name="ADMIN"))


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip requires_firestore tests when no emulator is configured."""
    if os.environ.get("FIRESTORE_EMULATOR_HOST"):
        return
    skip = pytest.mark.skip(reason="FIRESTORE_EMULATOR_HOST not set")
    for item in items:
        if "requires_firestore" in item.keywords:
            item.add_marker(skip)
