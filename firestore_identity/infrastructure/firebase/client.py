"""Firestore client factory (REST-based, no firebase-admin).

Credentials come from FIREBASE_SERVICE_ACCOUNT_KEY (JSON string),
FIREBASE_SERVICE_ACCOUNT_PATH (file path) or, when neither is set, Google
Application Default Credentials. FIRESTORE_EMULATOR_HOST switches to the
local emulator and skips credentials entirely.
"""

import json
import logging
from pathlib import Path

import httpx

from firestore_identity.core.config import Settings, get_settings
from firestore_identity.infrastructure.firebase._rest_client import (
    FirestoreRESTClient,
    _get_credentials,
    _get_default_credentials,
)

logger = logging.getLogger(__name__)

_EMULATOR_DEFAULT_PROJECT = "demo-firestore-identity"


def _load_key_dict(settings: Settings) -> dict | None:
    """Return service account dict from env key or file path (None when neither is set)."""
    key_json = settings.firebase_service_account_key.get_secret_value() if settings.firebase_service_account_key else None
    if key_json:
        try:
            return json.loads(key_json)
        except json.JSONDecodeError as e:
            raise ValueError("FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON") from e
    path = settings.firebase_service_account_path
    if path:
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_file():
            raise ValueError(
                f"FIREBASE_SERVICE_ACCOUNT_PATH set but file not found: {path} (resolved: {resolved})"
            )
        with open(resolved, encoding="utf-8") as f:
            return json.load(f)
    return None


def create_firestore_client(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> FirestoreRESTClient:
    """Create a Firestore client for the configured project.

    The caller owns the returned client and must ``await client.aclose()``
    (IdentityService does this on close).

    Args:
        settings: Settings to use; defaults to get_settings().
        http_client: Optional injected httpx client (not closed by the client).

    Returns:
        A ready FirestoreRESTClient.

    Raises:
        ValueError: If credentials are malformed or no project can be determined.
    """
    settings = settings or get_settings()

    if settings.firestore_emulator_host:
        project_id = settings.google_project_id or _EMULATOR_DEFAULT_PROJECT
        logger.info(
            "Using Firestore emulator at %s (project %s)",
            settings.firestore_emulator_host,
            project_id,
        )
        return FirestoreRESTClient(
            project_id,
            None,
            database=settings.firestore_database,
            base_url=f"http://{settings.firestore_emulator_host}/v1",
            timeout=settings.firestore_timeout_seconds,
            http_client=http_client,
        )

    key_dict = _load_key_dict(settings)
    if key_dict:
        credentials = _get_credentials(key_dict)
        project_id = settings.google_project_id or key_dict.get("project_id")
    else:
        credentials, default_project = _get_default_credentials()
        project_id = settings.google_project_id or default_project
    if not project_id:
        raise ValueError(
            "Could not determine the Firestore project: set GOOGLE_PROJECT_ID"
        )

    logger.info(
        "Firestore client created for project %s (database %s)",
        project_id,
        settings.firestore_database,
    )
    return FirestoreRESTClient(
        project_id,
        credentials,
        database=settings.firestore_database,
        timeout=settings.firestore_timeout_seconds,
        http_client=http_client,
    )
