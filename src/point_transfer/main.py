"""FastAPI application entry point for the Point Transfer service.

Lifecycle:
    1. Startup: Initialize logging, then build the container (database,
       balance client, Redis, notifier, transfer service).
    2. Running: Serve the REST API on a single Uvicorn process.
    3. Shutdown: Drain in-flight notifications, close connections.

Run with:
    uvicorn point_transfer.main:app --reload --host 0.0.0.0 --port 8002
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from point_transfer.config import Settings, get_settings
from point_transfer.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings: Settings = app.state.settings

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
    )

    # 2. Build components, unless a test already installed a container
    from point_transfer.container import build_container, close_container

    owns_container = getattr(app.state, "container", None) is None
    if owns_container:
        app.state.container = await build_container(settings)

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    if owns_container:
        await close_container(app.state.container)
    logger.info("app.stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Point Transfer",
        description=(
            "Two-phase point transfers: offer now, debit the sender "
            "only when the receiver claims."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.settings = settings

    # --- Middleware ---
    from point_transfer.api.middleware import setup_middleware

    setup_middleware(app, settings)

    # --- REST API Routes ---
    from point_transfer.api.routes.health import router as health_router
    from point_transfer.api.routes.transfers import router as transfers_router

    app.include_router(health_router)
    app.include_router(transfers_router)

    return app


# The app instance used by Uvicorn
app = create_app()
