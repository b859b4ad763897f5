"""
Manual retention sweep
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db
from schemas.api import CleanupResponse
from tracking.facade import FlowTracker
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Maintenance"])


@router.post("/cleanup", response_model=CleanupResponse)
async def run_cleanup(
    days: Optional[int] = Query(None, ge=0, description="Delete flows older than this many days"),
    db: AsyncSession = Depends(get_db)
):
    """Delete flows (and their logs) created more than `days` days ago"""
    flow_tracker = FlowTracker(db)
    if days is None:
        days = flow_tracker.configuration.retention_days

    deleted = await flow_tracker.cleanup(days)
    return CleanupResponse(
        deleted=deleted,
        days=days,
        message=f"Deleted {deleted} flows older than {days} days"
    )
