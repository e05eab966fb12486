"""Health check endpoints for the API and the status board history."""
from datetime import timedelta
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from bumpdispatch.core.config import settings
from bumpdispatch.core.database import get_db
from bumpdispatch.services.health_service import HealthService
from bumpdispatch.utils.time import ensure_utc, utc_now
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "bumpdispatch-api"}


@router.get("/health/status")
async def get_site_status(db: AsyncSession = Depends(get_db)):
    """
    Latest status board snapshot and uptime over the configured window.

    Example response:
    {
        "status": "healthy",
        "healthy_count": 3,
        "total_count": 3,
        "checked_at": "2024-05-01T12:00:00+00:00",
        "uptime_percentage": 99.5,
        "uptime_window_hours": 24
    }
    """
    snapshot = await HealthService.get_latest_snapshot(db)
    if snapshot is None:
        logger.debug("No status snapshot recorded yet")
        return {"status": "unknown", "uptime_percentage": None}

    uptime = await HealthService.calculate_uptime(
        db, utc_now(), timedelta(hours=settings.status_uptime_window_hours)
    )
    return {
        "status": snapshot.overall,
        "healthy_count": snapshot.healthy_count,
        "total_count": snapshot.total_count,
        "checked_at": ensure_utc(snapshot.checked_at).isoformat(),
        "uptime_percentage": uptime,
        "uptime_window_hours": settings.status_uptime_window_hours
    }
