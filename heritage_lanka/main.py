"""
FastAPI application setup.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from contextlib import asynccontextmanager

from heritage_lanka.config.settings import get_settings
from heritage_lanka.core.error_handlers import setup_error_handlers
from heritage_lanka.core.logging import configure_logging
from heritage_lanka.middleware import RequestContextMiddleware
from heritage_lanka.api import (
    admin_router,
    auth_router,
    event_router,
    guider_router,
    health_router,
    payment_router,
    review_router,
    traveler_router,
)
from heritage_lanka.services.reminder_job import ReminderScheduler

# Get application settings
settings = get_settings()

configure_logging(settings.log_level.value)

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Start the reminder scheduler when enabled and stop it on shutdown.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    scheduler = None
    if settings.reminders.enabled:
        scheduler = ReminderScheduler()
        scheduler.start()
    app.state.reminder_scheduler = scheduler

    logger.info("Application startup complete")
    try:
        yield
    finally:
        logger.info("Shutting down application")
        if scheduler is not None:
            scheduler.shutdown()
        logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan
    )

    # Add CORS middleware with configuration
    app.add_middleware(
        CORSMiddleware,
        **settings.get_cors_config()
    )

    # Request id and access log
    app.add_middleware(RequestContextMiddleware)

    # Map service exceptions onto the error envelope
    setup_error_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(traveler_router, prefix=API_PREFIX)
    app.include_router(guider_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)
    app.include_router(event_router, prefix=API_PREFIX)
    app.include_router(review_router, prefix=API_PREFIX)
    app.include_router(payment_router, prefix=API_PREFIX)

    return app


# Create application instance
app = create_app()


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
