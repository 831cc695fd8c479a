"""AumOS Change Tracker service entry point.

Initializes the FastAPI application with:
- structlog JSON logging
- The change log database (SQL store) serving the read API
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from aumos_change_tracker.adapters.sql_store import close_change_log_db, init_change_log_db
from aumos_change_tracker.api.router import router
from aumos_change_tracker.observability import get_logger, setup_logging
from aumos_change_tracker.settings import Settings

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the change tracker API application.

    Args:
        settings: Service settings. Loaded from the environment if omitted.

    Returns:
        The FastAPI application with the change log router under /api/v1.
    """
    settings = settings or Settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Open the change log database on startup and dispose it on shutdown."""
        logger.info(
            "Initializing change log database",
            service=settings.service_name,
            pool_size=settings.db_pool_size,
        )
        init_change_log_db(
            database_url=settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
        )
        app.state.settings = settings
        logger.info("Change tracker startup complete")

        yield

        logger.info("Shutting down change tracker")
        close_change_log_db()
        logger.info("Change tracker shutdown complete")

    app = FastAPI(title=settings.service_name, version="0.1.0", lifespan=lifespan)
    app.include_router(router, prefix="/api/v1")
    return app
