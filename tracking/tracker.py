"""
Tracker: the handle tracked work uses to log and report on its Flow
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import asyncio
import logging

from core.config import TrackingConfiguration
from core.exceptions import ValidationError
from models.base import LogLevel
from models.flow import Flow
from models.log_entry import LogEntry, coerce_level
from models.process import Process
from tracking.base import BaseTracker, StepWork, run_work

logger = logging.getLogger(__name__)

_LOGGING_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class Tracker(BaseTracker):
    """
    Bound to one Flow execution.

    A tracker may carry a dotted step prefix ("extract.download") naming its
    position among logical steps. Steps only prefix log messages; the whole
    execution is still one Flow row.

    Example:
        async def work(tracker):
            await tracker.info("Loading invoices")
            async with tracker.step("render") as step:
                await step.info("Rendering")   # "[render] Rendering"
                await step.ok()

    All database calls of a tracker and its step trackers go through one
    lock, so steps running concurrently can share the session.
    """

    def __init__(
        self,
        db: AsyncSession,
        flow_record: Flow,
        process: Process,
        configuration: TrackingConfiguration,
        external_logger: Optional[logging.Logger] = None,
        step_prefix: Optional[str] = None,
        lock: Optional[asyncio.Lock] = None
    ):
        self.db = db
        self._flow_record = flow_record
        self._process = process
        self.configuration = configuration
        self.external_logger = external_logger
        self._step_prefix = step_prefix
        self._lock = lock or asyncio.Lock()

        # Cached so accessors keep working after a rollback expires the rows
        self._flow_id = flow_record.id
        self._process_id = process.id
        self._process_name = process.name
        self._correlation_id = flow_record.correlation_id

    @property
    def flow_record(self) -> Flow:
        return self._flow_record

    @property
    def process(self) -> Process:
        return self._process

    @property
    def step_prefix(self) -> Optional[str]:
        return self._step_prefix

    @property
    def flow_id(self) -> int:
        return self._flow_id

    @property
    def process_id(self) -> int:
        return self._process_id

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    async def log(
        self,
        message: str,
        level: LogLevel = LogLevel.INFO,
        context: Optional[Dict[str, Any]] = None
    ) -> Optional[LogEntry]:
        """
        Persist a log line on the flow and mirror it to the external logger.

        Returns the LogEntry, or None when the database write failed; a failed
        write is reported on this module's logger and never raised.
        """
        if message is None or not str(message).strip():
            raise ValidationError(
                "Log message is required",
                context={"field_name": "content", "flow_id": self._flow_id}
            )
        level = coerce_level(level)
        full_message = f"[{self._step_prefix}] {message}" if self._step_prefix else str(message)

        entry = None
        async with self._lock:
            try:
                entry = await LogEntry.create(
                    self.db,
                    self._flow_record,
                    full_message,
                    level=level,
                    context=context
                )
            except SQLAlchemyError as e:
                logger.warning(
                    f"Could not persist log line for flow {self._flow_id}: {str(e)}",
                    extra={"flow_id": self._flow_id}
                )
                await self._recover()

        self._mirror(full_message, level)
        return entry

    def _mirror(self, message: str, level: LogLevel) -> None:
        if not self.configuration.mirror_to_external_logger or self.external_logger is None:
            return
        try:
            self.external_logger.log(
                _LOGGING_LEVELS[level],
                f"[FlowTracker] [{self._process_name}] {message}"
            )
        except Exception:
            # Mirroring is best-effort and must not reach tracked work
            pass

    async def _recover(self) -> None:
        try:
            await self.db.rollback()
            await self.db.refresh(self._flow_record)
        except SQLAlchemyError as e:
            logger.error(f"Could not reload flow {self._flow_id} after rollback: {str(e)}")

    # ------------------------------------------------------------------
    # Logical steps
    # ------------------------------------------------------------------

    def _child(self, name: str) -> "Tracker":
        step_name = f"{self._step_prefix}.{name}" if self._step_prefix else name
        return Tracker(
            self.db,
            self._flow_record,
            self._process,
            self.configuration,
            external_logger=self.external_logger,
            step_prefix=step_name,
            lock=self._lock
        )

    async def flow(
        self,
        name: str,
        work: Optional[StepWork] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Run work as a named step and return its result.

        Without work, logs the step start and returns the step tracker for
        manual use. Errors raised by work are logged on the step and re-raised.
        """
        if work is None:
            child = self._child(name)
            await child.log("Started", context=metadata)
            return child

        async with self.step(name, metadata=metadata) as child:
            return await run_work(work, child)

    @asynccontextmanager
    async def step(self, name: str, metadata: Optional[Dict[str, Any]] = None):
        child = self._child(name)
        await child.log("Started", context=metadata)
        try:
            yield child
        except Exception as e:
            await child.log(f"Failed: {e}", level=LogLevel.ERROR)
            raise
        await child.log("Completed")

    # ------------------------------------------------------------------
    # Progress and counters
    # ------------------------------------------------------------------

    async def update_progress(self, current: int, total: int) -> None:
        async with self._lock:
            await self._flow_record.update_progress(self.db, current, total)

    async def ok(self) -> int:
        async with self._lock:
            return await self._flow_record.increment_ok(self.db)

    async def ko(self) -> int:
        async with self._lock:
            return await self._flow_record.increment_ko(self.db)

    async def skip(self) -> int:
        async with self._lock:
            return await self._flow_record.increment_skip(self.db)

    async def update_metadata(self, patch: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            return await self._flow_record.update_metadata(self.db, patch)

    # ------------------------------------------------------------------
    # Manual lifecycle
    # ------------------------------------------------------------------

    async def complete(self) -> None:
        async with self._lock:
            await self._flow_record.complete(self.db)

    async def fail(self, error: Optional[BaseException] = None) -> None:
        async with self._lock:
            await self._flow_record.fail(self.db, error)

    async def skip_flow(self, reason: Optional[str] = None) -> None:
        """Finish the flow as skipped (not the skip counter)"""
        async with self._lock:
            await self._flow_record.skip(self.db, reason)
