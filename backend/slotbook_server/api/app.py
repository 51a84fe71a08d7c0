"""
FastAPI application factory for the Slotbook server.

This module creates the FastAPI app with:
- Document store lifecycle management
- Ledgers, coordinator and identity verifier on ``app.state``
- CORS configuration
- Error mapping to ``{"message": ...}`` bodies
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import Settings
from ..errors import AuthenticationError, ForbiddenError, NotFoundError, SlotbookError
from ..ledger import AvailabilityLedger, MutationCoordinator, NotificationLedger
from ..store import DocumentStore, create_document_store
from .auth import IdentityVerifier, JwtIdentityVerifier
from .routes import router

logger = logging.getLogger(__name__)


def status_for(error: SlotbookError) -> int:
    """HTTP status code for a domain error."""
    if isinstance(error, AuthenticationError):
        return 401
    if isinstance(error, ForbiddenError):
        return 403
    if isinstance(error, NotFoundError):
        return 404
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage document store lifecycle."""
    store: DocumentStore = app.state.store
    if not store.is_connected:
        await store.connect()
    logger.info("Slotbook API started", extra={"version": __version__})

    yield

    await store.close()
    logger.info("Slotbook API stopped")


def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    identity: IdentityVerifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Server settings (loaded from the environment if omitted)
        store: Document store (built from settings if omitted)
        identity: Token verifier (a JwtIdentityVerifier from settings if omitted)
    """
    settings = settings or Settings.load()
    store = store or create_document_store(settings)
    identity = identity or JwtIdentityVerifier(settings.jwt_secret, settings.jwt_algorithm)

    availability = AvailabilityLedger(
        store,
        write_mode=settings.write_mode,
        max_write_retries=settings.max_write_retries,
    )
    notifications = NotificationLedger(store)

    app = FastAPI(
        title="Slotbook",
        description="Per-date availability lists with a change notification feed.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.identity = identity
    app.state.availability = availability
    app.state.notifications = notifications
    app.state.coordinator = MutationCoordinator(availability, notifications)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(SlotbookError)
    async def slotbook_error_handler(request: Request, exc: SlotbookError) -> JSONResponse:
        status = status_for(exc)
        if status == 400:
            logger.warning(
                f"Request failed: {exc.message}",
                extra={"path": request.url.path, "code": exc.code},
            )
        return JSONResponse(status_code=status, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        messages = [
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"message": "; ".join(messages)})

    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health():
        healthy = store.is_connected
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "unavailable",
                "service": "slotbook",
                "store_backend": settings.store_backend.value,
                "write_mode": settings.write_mode.value,
                "notifications": app.state.coordinator.stats,
            },
        )

    return app
