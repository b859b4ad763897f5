"""
FlowTracker - entry point for tracking a unit of work.

Orchestrates one tracked execution:
1. Find or create the Process for the identifier
2. Start a running Flow
3. Hand a Tracker to the caller's work
4. Complete the Flow on return, fail it (and re-raise) on error
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
import logging

from core.config import ConfigurationStore, TrackingConfiguration, tracking_config
from core.logging import MIRROR_LOGGER_NAME
from core.exceptions import InvalidStateError
from models.base import Category, FlowStatus, utcnow
from models.flow import Flow
from models.process import Process
from tracking.base import BaseTracker, StepWork, run_work
from tracking.null_tracker import NullTracker
from tracking.retention import delete_flows_older_than
from tracking.tracker import Tracker

logger = logging.getLogger(__name__)


class FlowTracker:
    """
    Tracking facade bound to one database session.

    Example:
        flow_tracker = FlowTracker(session)
        outcome = await flow_tracker.track(
            "billing.jobs.InvoiceJob#perform",
            send_invoices,
            metadata={"batch": 12}
        )
        outcome["success"], outcome["flow_id"], outcome["result"]
    """

    def __init__(
        self,
        db: AsyncSession,
        config_store: Optional[ConfigurationStore] = None,
        external_logger: Optional[logging.Logger] = None
    ):
        self.db = db
        self.config_store = config_store or tracking_config
        self.external_logger = external_logger or logging.getLogger(MIRROR_LOGGER_NAME)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def configuration(self) -> TrackingConfiguration:
        return self.config_store.get()

    def configure(
        self,
        block: Optional[Callable[[TrackingConfiguration], None]] = None,
        **options
    ) -> TrackingConfiguration:
        return self.config_store.configure(block, **options)

    def reset_configuration(self) -> TrackingConfiguration:
        return self.config_store.reset()

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def start(
        self,
        identifier: str,
        *,
        name: Optional[str] = None,
        category=None,
        metadata: Optional[Dict[str, Any]] = None,
        triggered_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> BaseTracker:
        """
        Start a Flow and return its Tracker without running any work.

        The caller owns the lifecycle: it must call complete() or fail() on
        the returned tracker. Returns a NullTracker when tracking is disabled.
        """
        configuration = self.configuration
        if not configuration.enabled:
            return NullTracker()

        process = await Process.find_or_create(
            self.db,
            identifier,
            name=name,
            category=category if category is not None else configuration.default_category
        )
        flow = await Flow.start(
            self.db,
            process,
            metadata=metadata,
            triggered_by=triggered_by,
            correlation_id=correlation_id
        )

        logger.debug(
            f"Started flow {flow.id} for {identifier}",
            extra={"flow_id": flow.id, "correlation_id": flow.correlation_id}
        )
        return Tracker(
            self.db,
            flow,
            process,
            configuration,
            external_logger=self.external_logger
        )

    async def track(
        self,
        identifier: str,
        work: StepWork,
        *,
        name: Optional[str] = None,
        category=None,
        metadata: Optional[Dict[str, Any]] = None,
        triggered_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Run work(tracker) as one tracked execution.

        Returns:
            Dictionary with:
            - success: True
            - flow_id / process_id: ids of the rows (None when disabled)
            - duration_ms: Flow duration (None when disabled)
            - result: whatever work returned

        Raises:
            Whatever work raised, unchanged, after the Flow is marked failed
        """
        if not self.configuration.enabled:
            result = await run_work(work, NullTracker())
            return {
                "success": True,
                "flow_id": None,
                "process_id": None,
                "duration_ms": None,
                "result": result
            }

        tracker = await self.start(
            identifier,
            name=name,
            category=category,
            metadata=metadata,
            triggered_by=triggered_by,
            correlation_id=correlation_id
        )

        try:
            result = await run_work(work, tracker)
        except Exception as e:
            await self._record_failure(tracker, e)
            raise

        await self._complete_if_running(tracker)

        return {
            "success": True,
            "flow_id": tracker.flow_id,
            "process_id": tracker.process_id,
            "duration_ms": tracker.flow_record.duration_ms,
            "result": result
        }

    @asynccontextmanager
    async def tracking(
        self,
        identifier: str,
        *,
        name: Optional[str] = None,
        category=None,
        metadata: Optional[Dict[str, Any]] = None,
        triggered_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ):
        """
        Scope guard around a tracked block.

        async with flow_tracker.tracking("reports.Nightly#perform") as tracker:
            await tracker.info("Building report")
        """
        tracker = await self.start(
            identifier,
            name=name,
            category=category,
            metadata=metadata,
            triggered_by=triggered_by,
            correlation_id=correlation_id
        )
        if isinstance(tracker, NullTracker):
            yield tracker
            return

        try:
            yield tracker
        except Exception as e:
            await self._record_failure(tracker, e)
            raise

        await self._complete_if_running(tracker)

    async def _complete_if_running(self, tracker: Tracker) -> None:
        # Reload so a terminal state set by the work itself is seen
        await self.db.refresh(tracker.flow_record)
        if tracker.flow_record.is_running:
            await tracker.complete()

    async def _record_failure(self, tracker: Tracker, error: BaseException) -> None:
        """Mark the Flow failed; the caller re-raises error afterwards"""
        flow = tracker.flow_record
        try:
            if self.db.in_transaction():
                await self.db.rollback()
            await self.db.refresh(flow)
            if flow.is_running:
                await tracker.fail(error)
        except (SQLAlchemyError, InvalidStateError) as db_error:
            logger.error(
                f"Could not record failure of flow {tracker.flow_id}: {str(db_error)}",
                extra={"flow_id": tracker.flow_id}
            )
            return

        try:
            logger.error(
                f"Flow {tracker.flow_id} failed: {type(error).__name__}: {error}",
                extra={"flow_id": tracker.flow_id, "correlation_id": tracker.correlation_id}
            )
        except Exception:
            # Side logging must not replace the work's exception
            pass

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def cleanup(self, days: Optional[int] = None) -> int:
        """Delete flows older than days (default retention_days), return the count"""
        if days is None:
            days = self.configuration.retention_days
        return await delete_flows_older_than(self.db, days)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def processes(
        self,
        name: Optional[str] = None,
        category=None,
        active: Optional[bool] = None
    ) -> List[Process]:
        query = select(Process).order_by(Process.name, Process.id)
        if name:
            query = query.where(Process.name.ilike(f"%{name}%"))
        if category is not None:
            query = query.where(Process.category == Category.parse(category))
        if active is not None:
            query = query.where(Process.active.is_(active))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def recent_flows(self, limit: int = 50) -> List[Flow]:
        result = await self.db.execute(
            select(Flow)
            .options(selectinload(Flow.process))
            .order_by(Flow.started_at.desc(), Flow.id.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def stats(self) -> Dict[str, Any]:
        """Counts across every process, as shown on the dashboard"""
        day_start = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        day_end = day_start + timedelta(days=1)
        today = (Flow.started_at >= day_start) & (Flow.started_at < day_end)

        processes_count = await self._scalar(select(func.count()).select_from(Process))
        active_processes = await self._scalar(
            select(func.count()).select_from(Process).where(Process.active.is_(True))
        )

        status_result = await self.db.execute(
            select(Flow.status, func.count()).group_by(Flow.status)
        )
        by_status = {status: count for status, count in status_result.all()}

        flows_today = await self._scalar(select(func.count()).select_from(Flow).where(today))
        failed_today = await self._scalar(
            select(func.count()).select_from(Flow).where(today, Flow.status == FlowStatus.FAILED)
        )
        avg_duration = await self._scalar(
            select(func.avg(Flow.duration_ms)).where(
                Flow.status == FlowStatus.COMPLETED,
                Flow.duration_ms.isnot(None)
            )
        )

        category_result = await self.db.execute(
            select(Process.category, func.count()).group_by(Process.category)
        )

        return {
            "processes_count": processes_count or 0,
            "active_processes": active_processes or 0,
            "total_flows": sum(by_status.values()),
            "flows_today": flows_today or 0,
            "running": by_status.get(FlowStatus.RUNNING, 0),
            "completed": by_status.get(FlowStatus.COMPLETED, 0),
            "failed": by_status.get(FlowStatus.FAILED, 0),
            "skipped": by_status.get(FlowStatus.SKIPPED, 0),
            "failed_today": failed_today or 0,
            "by_category": {category.label: count for category, count in category_result.all()},
            "avg_duration_ms": int(round(avg_duration)) if avg_duration is not None else None
        }

    async def _scalar(self, query):
        result = await self.db.execute(query)
        return result.scalar()
