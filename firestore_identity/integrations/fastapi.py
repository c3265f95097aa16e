"""FastAPI wiring for the identity stores.

    app = FastAPI(lifespan=identity_lifespan)
    register_exception_handlers(app)

    @app.get("/users/{user_id}")
    async def read_user(user_id: str, users: FirestoreUserStore = Depends(get_user_store)):
        ...

The lifespan builds one IdentityService from settings and keeps it on
app.state.identity; dependencies raise 503 when it is missing.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from firestore_identity.application.services.identity_service import IdentityService
from firestore_identity.domain.exceptions import IdentityStoreException
from firestore_identity.infrastructure.firebase.repositories import (
    FirestoreMembershipManager,
    FirestoreRoleStore,
    FirestoreUserStore,
)

logger = logging.getLogger(__name__)

# Map error_code to HTTP status (unknown codes fall back to 500)
_ERROR_CODE_STATUS: dict[str, int] = {
    "INVALID_ARGUMENT": 400,
    "RESOURCE_NOT_FOUND": 404,
    "ROLE_NOT_FOUND": 404,
    "PRECONDITION_FAILED": 412,
    "CANCELLED": 499,
    "UNIMPLEMENTED": 501,
    "DOCUMENT_STORE_ERROR": 502,
    "DOCUMENT_EXISTS": 409,
    "STORE_CLOSED": 503,
}


@asynccontextmanager
async def identity_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the identity service on startup; close it on shutdown."""
    app.state.identity = IdentityService.from_settings()
    logger.info("Identity service started")
    try:
        yield
    finally:
        identity = getattr(app.state, "identity", None)
        if identity is not None:
            await identity.close()
            app.state.identity = None


def get_identity_service(request: Request) -> IdentityService:
    """Return the app's identity service or raise HTTPException 503."""
    identity = getattr(request.app.state, "identity", None)
    if identity is None or identity.closed:
        raise HTTPException(
            status_code=503,
            detail="Identity store not configured (set GOOGLE_PROJECT_ID or FIRESTORE_EMULATOR_HOST)",
        )
    return identity


def get_user_store(request: Request) -> FirestoreUserStore:
    return get_identity_service(request).users


def get_role_store(request: Request) -> FirestoreRoleStore:
    return get_identity_service(request).roles


def get_membership_manager(request: Request) -> FirestoreMembershipManager:
    return get_identity_service(request).membership


def _identity_exception_handler(
    request: Request, exc: IdentityStoreException
) -> JSONResponse:
    """Return JSON from IdentityStoreException.to_dict() with the mapped status code."""
    status = _ERROR_CODE_STATUS.get(exc.error_code, 500)
    if status >= 500:
        logger.warning("Identity store error on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Register the IdentityStoreException handler (covers every subclass)."""
    app.add_exception_handler(IdentityStoreException, _identity_exception_handler)
