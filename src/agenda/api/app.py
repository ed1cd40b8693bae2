"""Agenda API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (configurable origins)
- Optional trusted-header actor middleware
- Lifespan handler for startup/shutdown of the database pool
- Health endpoint at GET /api/health
- The calendar router at /calendar and /api/v1/calendar
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agenda.api.auth import TrustedHeaderActorMiddleware
from agenda.api.deps import (
    init_calendar_store,
    init_config,
    shutdown_calendar_store,
    wire_dependencies,
)
from agenda.api.middleware import register_error_handlers
from agenda.api.routers.calendar import router as calendar_router
from agenda.config import AgendaConfig, load_config_or_default
from agenda.core.metrics import init_metrics
from agenda.core.telemetry import init_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle for the database pool.

    A database that cannot be reached at startup does not prevent the app
    from serving; calendar endpoints then fail with a 500 until restart.
    """
    config: AgendaConfig = app.state.config
    init_config(config)
    init_telemetry(config.name)
    init_metrics(config.name)

    try:
        await init_calendar_store(config)
        logger.info("Calendar store initialized for database %s", config.db_name)
    except Exception:
        logger.warning(
            "Failed to initialize the calendar store; calendar endpoints will be unavailable",
            exc_info=True,
        )
    wire_dependencies(app)

    yield

    await shutdown_calendar_store()


def create_app(
    config: AgendaConfig | None = None,
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Service configuration. Defaults to the file named by ``AGENDA_CONFIG``
        (``agenda.toml``), or built-in defaults when that file is absent.
    cors_origins:
        Allowed CORS origins. Defaults to ``config.cors_origins``.
    """
    if config is None:
        config = load_config_or_default()
    if cors_origins is None:
        cors_origins = config.cors_origins

    app = FastAPI(
        title="Agenda API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.router.redirect_slashes = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    if config.auth.trusted_headers:
        app.add_middleware(TrustedHeaderActorMiddleware)
        logger.info("Trusted gateway headers enabled for actor resolution")

    app.include_router(calendar_router)
    app.include_router(calendar_router, prefix="/api/v1")

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app
