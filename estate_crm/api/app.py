"""
FastAPI application for the estate CRM.

Run with:  uvicorn estate_crm.api.app:app   (or the `estate-crm` script)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from estate_crm import __version__
from estate_crm.api import files, reports, users
from estate_crm.api.cors import AllowListCORSMiddleware
from estate_crm.api.errors import register_error_handlers
from estate_crm.api.gateway import ResourceGateway
from estate_crm.api.resources import (
    CALENDAR_EVENTS,
    CLIENT_INTERACTIONS,
    CLIENTS,
    DEALS,
    NOTES,
    PROPERTIES,
)
from estate_crm.auth.accounts import bootstrap_superuser
from estate_crm.auth.routes import router as auth_router
from estate_crm.auth.store import CredentialStore
from estate_crm.config import Settings, get_settings
from estate_crm.integrations.sentry import init_sentry
from estate_crm.storage import create_local_storage

logger = logging.getLogger(__name__)


# =============================================================================
# Routers
# =============================================================================


def resource_routers() -> list[APIRouter]:
    """One router per REST resource."""
    gateways: list[ResourceGateway] = [
        ResourceGateway(PROPERTIES),
        ResourceGateway(CLIENTS),
        ResourceGateway(DEALS),
        ResourceGateway(NOTES),
        ResourceGateway(CALENDAR_EVENTS),
        ResourceGateway(CLIENT_INTERACTIONS),
        files.documents,
        reports.reports,
        users.gateway,
    ]
    return [gateway.build_router() for gateway in gateways]


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup app resources."""
    settings: Settings = app.state.settings

    init_sentry(settings)

    storage = create_local_storage(settings.database_url, settings.content_dir)
    app.state.storage = storage
    await bootstrap_superuser(CredentialStore(storage.metadata), settings)

    logger.info(f"Estate CRM API starting in {settings.environment} mode")

    yield

    await storage.metadata.close()
    logger.info("Estate CRM API shutting down")


# =============================================================================
# App Setup
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Estate CRM API",
        description="Accounts, roles and CRUD for a real-estate agency",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(AllowListCORSMiddleware, allow_origins=settings.cors_origins_list)
    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(files.router)
    for router in resource_routers():
        app.include_router(router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "estate-crm-api"}

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("estate_crm.api.app:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
