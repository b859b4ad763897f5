"""
Health check endpoint with database and tracking status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse
from core.config import tracking_config
from models.base import FlowStatus, utcnow
from models.flow import Flow
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Number of flows currently running
    - Whether tracking is enabled
    """

    # Check database connectivity
    db_connected = False
    running_flows = 0

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True

        result = await db.execute(
            select(func.count()).select_from(Flow).where(Flow.status == FlowStatus.RUNNING)
        )
        running_flows = result.scalar() or 0
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    return HealthCheckResponse(
        status="healthy" if db_connected else "unhealthy",
        timestamp=utcnow(),
        database_connected=db_connected,
        running_flows=running_flows,
        tracking_enabled=tracking_config.get().enabled
    )
