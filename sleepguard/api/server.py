# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""FastAPI application factory for SleepGuard."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sleepguard import __version__
from sleepguard.api.routes import (
    health,
    notifications,
    recordings,
    sessions,
    settings_routes,
    status,
    tracking,
)
from sleepguard.config import get_settings
from sleepguard.persistence.database import Database
from sleepguard.scheduler import AutoScheduler
from sleepguard.tracking import TrackingController, build_controller

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown.

    When the app was created without a controller, the components are
    built here from the global settings and torn down on shutdown.
    """
    if app.state.controller is not None:
        # Components are owned by whoever created the app
        yield
        return

    # Startup
    logger.info("SleepGuard service starting...")
    settings = get_settings()
    settings.ensure_directories()

    database = Database(str(settings.database_path), str(settings.recordings_dir))
    await database.initialize()

    controller = build_controller(settings, database)
    retention = controller.user_settings.settings.data_retention_days
    await database.cleanup_old_data(sessions_days=retention)

    app.state.controller = controller
    app.state.database = database

    if await controller.resume():
        logger.info("Resumed interrupted tracking session")

    scheduler = AutoScheduler(
        controller,
        controller.user_settings,
        check_interval_seconds=settings.tracking.schedule_check_seconds,
    )
    scheduler_task = asyncio.create_task(scheduler.run())

    logger.info(f"SleepGuard service ready on {settings.server.host}:{settings.server.port}")

    yield

    # Shutdown
    logger.info("SleepGuard service shutting down...")
    scheduler.stop()
    await scheduler_task
    await controller.shutdown()
    await database.close()
    app.state.controller = None
    app.state.database = None
    logger.info("SleepGuard service stopped")


def create_app(
    controller: Optional[TrackingController] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        controller: Tracking controller to serve (default: built at startup)
        database: History database (default: built at startup)

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="SleepGuard",
        description=(
            "Breathing audio monitoring that flags sleep apnea-like events. "
            "NOT FOR MEDICAL USE - proof of concept only."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.controller = controller
    app.state.database = database

    # CORS middleware for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(status.router, tags=["Status"])
    app.include_router(tracking.router, prefix="/tracking", tags=["Tracking"])
    app.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
    app.include_router(recordings.router, prefix="/recordings", tags=["Recordings"])
    app.include_router(settings_routes.router, prefix="/settings", tags=["Settings"])
    app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

    return app
