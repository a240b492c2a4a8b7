"""
Health Check Routes
Service health monitoring endpoints
"""

from typing import Any

from fastapi import APIRouter, Depends

from src.api.deps import get_settings
from src.core.config import GymSettings
from src.db.connection import check_db_connection
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "gym-compliance-engine",
    }


@router.get("/health/detailed")
async def detailed_health_check(
    settings: GymSettings = Depends(get_settings),
) -> dict[str, Any]:
    """Health check including the database in live mode."""
    if settings.is_demo_mode:
        return {
            "status": "healthy",
            "service": "gym-compliance-engine",
            "mode": settings.INTEGRATION_MODE.value,
            "checks": {"database": "not used"},
        }

    db_healthy = await check_db_connection()
    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "service": "gym-compliance-engine",
        "mode": settings.INTEGRATION_MODE.value,
        "checks": {"database": "healthy" if db_healthy else "unhealthy"},
    }
