"""FastAPI application factory.

Main entry point for the tracker Web API.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cptracker import __version__
from cptracker.config.app_config import AppConfig, load_app_config
from cptracker.core.factory import build_orchestrator
from cptracker.core.sync_orchestrator import SyncOrchestrator
from cptracker.db.database import init_db
from cptracker.web.routes import (
    cron_router,
    health_router,
    settings_router,
    students_router,
    sync_router,
)

logger = structlog.get_logger(__name__)


def create_app(
    config: AppConfig | None = None,
    *,
    orchestrator: SyncOrchestrator | None = None,
    cron_secret: str | None = None,
    db_path: Path | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application config, loaded from disk when omitted
        orchestrator: Pre-built orchestrator (tests); built from config otherwise
        cron_secret: Trigger secret; defaults to the configured environment variable
        db_path: Database file; defaults to the configured path

    Returns:
        Configured FastAPI app instance
    """
    config = config or load_app_config()
    init_db(db_path or config.database.get_path())

    app = FastAPI(
        title="CP Progress Tracker API",
        description="Codeforces sync, inactivity reminders and student records",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.config = config
    app.state.orchestrator = orchestrator or build_orchestrator(config)
    app.state.cron_secret = cron_secret if cron_secret is not None else config.sync.get_cron_secret()

    if not app.state.cron_secret:
        logger.warning("api.cron_secret_missing", hint="cron trigger accepts any caller")

    # CORS middleware for the dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(students_router)
    app.include_router(sync_router)
    app.include_router(cron_router)
    app.include_router(settings_router)

    logger.info("api.created", version=__version__)
    return app
