"""FastAPI application for PulseDeck.

This module provides the main application setup and router configuration.
All route handlers are organized in the api/routers/ directory.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from config import AppConfig, ConfigManager
from storage import Database
from api.routers.system import VERSION
from api.routers import (
    campaigns_router,
    metrics_router,
    system_router,
    templates_router,
    uploads_router,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    config: Optional[AppConfig] = getattr(app.state, "config", None)
    if config is None:
        config = ConfigManager().load()
        app.state.config = config

    logging.basicConfig(level=config.log_level.upper())

    db = Database(config.database_path, timeout=config.database.busy_timeout_seconds)
    await db.initialize()
    config.upload_dir.mkdir(parents=True, exist_ok=True)
    app.state.db = db

    logger.info(f"PulseDeck API started (uploads in {config.upload_dir})")

    yield

    # Cleanup on shutdown
    logger.info("PulseDeck API shutting down")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Configuration to use; loaded from the YAML file on startup
            when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="PulseDeck",
        description="Advertising performance uploads and metrics rollups",
        version=VERSION,
        lifespan=lifespan,
    )
    application.state.config = config

    # =========================================================================
    # Router Registration
    # =========================================================================

    # System routes (health), served at the root
    application.include_router(system_router)

    # Data import
    application.include_router(uploads_router, prefix=API_PREFIX)
    application.include_router(templates_router, prefix=API_PREFIX)

    # Rollups
    application.include_router(campaigns_router, prefix=API_PREFIX)
    application.include_router(metrics_router, prefix=API_PREFIX)

    return application


app = create_app()
