"""
Tracking statistics endpoint
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db
from schemas.api import StatsResponse
from tracking.facade import FlowTracker
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Get counts across every process.

    Returns:
    - Process totals (all and active)
    - Flow totals by status, today and overall
    - Process count per category
    - Average duration of completed flows
    """
    request_id = getattr(request.state, "request_id", None)
    logger.info(f"[{request_id}] GET /stats")

    stats = await FlowTracker(db).stats()

    logger.info(
        f"[{request_id}] Stats: {stats['processes_count']} processes, "
        f"{stats['total_flows']} flows"
    )
    return StatsResponse(**stats)
