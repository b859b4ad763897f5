"""
Flow endpoints: detail with logs and delete
"""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from api.dependencies import get_db
from schemas.api import FlowDetailResponse, FlowSummary, LogEntryResponse, ProcessResponse
from models.flow import Flow
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/flows", tags=["Flows"])


async def _get_flow_or_404(db: AsyncSession, flow_id: int) -> Flow:
    result = await db.execute(
        select(Flow)
        .options(selectinload(Flow.process))
        .where(Flow.id == flow_id)
        .execution_options(populate_existing=True)
    )
    flow = result.scalar_one_or_none()
    if flow is None:
        raise HTTPException(status_code=404, detail="Flow not found")
    return flow


@router.get("/{flow_id}", response_model=FlowDetailResponse)
async def get_flow(flow_id: int, db: AsyncSession = Depends(get_db)):
    """Flow with its process and chronological log entries"""
    flow = await _get_flow_or_404(db, flow_id)
    logs = await flow.logs(db)

    return FlowDetailResponse(
        **FlowSummary.model_validate(flow).model_dump(),
        error_backtrace=flow.error_backtrace,
        process=ProcessResponse.model_validate(flow.process),
        logs=[LogEntryResponse.model_validate(entry) for entry in logs]
    )


@router.delete("/{flow_id}", status_code=204)
async def delete_flow(flow_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a flow and its logs"""
    flow = await _get_flow_or_404(db, flow_id)

    await db.delete(flow)
    await db.commit()

    logger.info(f"Deleted flow {flow_id}")
    return Response(status_code=204)
