"""
Health check endpoint: application status and database reachability.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
import time

from heritage_lanka.config.settings import get_settings
from heritage_lanka.core.db import get_db
from heritage_lanka.core.error_handlers import error_handler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Application start time for uptime calculation
_app_start_time = time.time()


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    settings = get_settings()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "version": settings.app_version,
        "environment": settings.environment.value,
        "database": database,
        "uptime_seconds": round(time.time() - _app_start_time, 2),
        "errors": error_handler.get_error_statistics(),
    }
