"""
Process endpoints: list, detail with flows, stats and delete
"""

from datetime import date, datetime, time, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from api.dependencies import get_db
from schemas.api import (
    FlowSummary,
    ProcessDetailResponse,
    ProcessResponse,
    ProcessStatsResponse
)
from models.base import Category, FlowStatus
from models.flow import Flow
from models.process import Process
from tracking.facade import FlowTracker
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/processes", tags=["Processes"])

# Flows listed on a process page
PROCESS_FLOWS_LIMIT = 100


def _parse_enum(enum_cls, value: Optional[str], field: str):
    if value is None or value == "":
        return None
    try:
        return enum_cls.parse(int(value) if value.isdigit() else value)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid {field}: {value}. Allowed: {', '.join(enum_cls.labels())}"
        )


async def _get_process_or_404(db: AsyncSession, process_id: int) -> Process:
    process = await db.get(Process, process_id)
    if process is None:
        raise HTTPException(status_code=404, detail="Process not found")
    return process


async def _process_stats(db: AsyncSession, process: Process) -> ProcessStatsResponse:
    stats = await process.stats(db)
    return ProcessStatsResponse(**stats, success_rate=await process.success_rate(db))


@router.get("", response_model=List[ProcessResponse])
async def list_processes(
    name: Optional[str] = Query(None, description="Substring of the process name"),
    category: Optional[str] = Query(None, description="Category label or number"),
    db: AsyncSession = Depends(get_db)
):
    """List process definitions ordered by name"""
    parsed_category = _parse_enum(Category, category, "category")
    processes = await FlowTracker(db).processes(name=name, category=parsed_category)
    return [ProcessResponse.model_validate(process) for process in processes]


@router.get("/{process_id}", response_model=ProcessDetailResponse)
async def get_process(
    request: Request,
    process_id: int,
    status: Optional[str] = Query(None, description="Flow status label or number"),
    date: Optional[date] = Query(None, description="Only flows started on this day (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db)
):
    """
    Process definition with its stats and most recent flows.

    Flows are newest first, at most 100, optionally filtered by status
    and by start day.
    """
    request_id = getattr(request.state, "request_id", None)
    logger.info(f"[{request_id}] GET /processes/{process_id} - status={status}, date={date}")

    process = await _get_process_or_404(db, process_id)
    parsed_status = _parse_enum(FlowStatus, status, "status")

    query = select(Flow).where(Flow.process_id == process.id)
    if parsed_status is not None:
        query = query.where(Flow.status == parsed_status)
    if date is not None:
        day_start = datetime.combine(date, time.min)
        query = query.where(
            Flow.started_at >= day_start,
            Flow.started_at < day_start + timedelta(days=1)
        )
    query = query.order_by(Flow.started_at.desc(), Flow.id.desc()).limit(PROCESS_FLOWS_LIMIT)

    result = await db.execute(query)
    flows = result.scalars().all()

    return ProcessDetailResponse(
        process=ProcessResponse.model_validate(process),
        stats=await _process_stats(db, process),
        flows=[FlowSummary.model_validate(flow) for flow in flows]
    )


@router.get("/{process_id}/stats", response_model=ProcessStatsResponse)
async def get_process_stats(process_id: int, db: AsyncSession = Depends(get_db)):
    process = await _get_process_or_404(db, process_id)
    return await _process_stats(db, process)


@router.delete("/{process_id}", status_code=204)
async def delete_process(process_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a process with all its flows and their logs"""
    process = await _get_process_or_404(db, process_id)
    identifier = process.identifier

    await db.delete(process)
    await db.commit()

    logger.info(f"Deleted process {process_id} ({identifier})")
    return Response(status_code=204)
