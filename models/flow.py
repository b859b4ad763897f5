from sqlalchemy import Column, String, DateTime, Float, Integer, Text, Index, ForeignKey, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import relationship
from sqlalchemy.orm.attributes import set_committed_value
from typing import Any, Dict, List, Optional
import logging
import traceback
import uuid

from core.exceptions import InvalidStateError, ValidationError
from models.base import Base, FlowStatus, IdType, IntEnumType, JSONType, utcnow
from models.log_entry import LogEntry

logger = logging.getLogger(__name__)

# Innermost frames kept from a failure's traceback
BACKTRACE_FRAMES = 20


def format_backtrace(error: BaseException) -> Optional[str]:
    frames = traceback.extract_tb(error.__traceback__)
    if not frames:
        return None
    # format_list folds recursive frames into one "repeated" line
    lines = [traceback.format_list([frame])[0] for frame in frames[-BACKTRACE_FRAMES:]]
    return "".join(lines).rstrip("\n")


def format_duration(duration_ms: Optional[int]) -> Optional[str]:
    """850 -> "850ms", 1500 -> "1.5s", 125000 -> "2m 5s" """
    if duration_ms is None:
        return None
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    if duration_ms < 60_000:
        return f"{round(duration_ms / 1000, 1)}s"
    minutes = duration_ms // 60_000
    seconds = (duration_ms % 60_000) // 1000
    return f"{minutes}m {seconds}s"


class Flow(Base):
    """
    One execution of a Process.

    Purpose:
    - Status trail of every run (running -> completed / failed / skipped)
    - Progress and ok / ko / skip counters updated while running
    - Error message and bounded backtrace of failed runs
    - Owns the run's LogEntries

    Design:
    - Terminal transitions are conditional UPDATEs on status = running,
      so a Flow reaches exactly one terminal state
    - Counters are incremented in SQL, never read-modify-written
    """
    __tablename__ = "flow_tracker_flows"

    id = Column(IdType, primary_key=True, autoincrement=True)
    process_id = Column(
        IdType,
        ForeignKey("flow_tracker_processes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Tracing
    correlation_id = Column(String(64), nullable=False, index=True)
    triggered_by = Column(String(255), nullable=True)

    # Lifecycle
    status = Column(IntEnumType(FlowStatus), nullable=False, default=FlowStatus.RUNNING, index=True)
    started_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    finished_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)

    # Payload
    flow_metadata = Column("metadata", JSONType, nullable=False, default=dict)

    # Error tracking
    error_message = Column(Text, nullable=True)
    error_backtrace = Column(Text, nullable=True)

    # Progress
    progress = Column(Float, nullable=False, default=0.0)
    total = Column(Integer, nullable=False, default=0)
    ok_count = Column(Integer, nullable=False, default=0)
    ko_count = Column(Integer, nullable=False, default=0)
    skip_count = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    process = relationship("Process", back_populates="flows")
    log_entries = relationship(
        "LogEntry",
        back_populates="flow",
        cascade="all, delete-orphan",
        order_by="LogEntry.logged_at"
    )

    __table_args__ = (
        Index("idx_flow_process_started", "process_id", "started_at"),
        Index("idx_flow_status_started", "status", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<Flow {self.id} {self.status.label if self.status is not None else None}>"

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @classmethod
    async def start(
        cls,
        db: AsyncSession,
        process,
        metadata: Optional[Dict[str, Any]] = None,
        triggered_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> "Flow":
        """Insert a running Flow for the given Process"""
        now = utcnow()
        flow = cls(
            process_id=process.id,
            status=FlowStatus.RUNNING,
            started_at=now,
            created_at=now,
            flow_metadata=dict(metadata or {}),
            triggered_by=triggered_by,
            correlation_id=correlation_id or str(uuid.uuid4()),
            progress=0.0,
            total=0,
            ok_count=0,
            ko_count=0,
            skip_count=0
        )
        db.add(flow)
        await db.commit()
        return flow

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.status == FlowStatus.RUNNING

    @property
    def is_completed(self) -> bool:
        return self.status == FlowStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == FlowStatus.FAILED

    @property
    def is_skipped(self) -> bool:
        return self.status == FlowStatus.SKIPPED

    @property
    def duration_human(self) -> Optional[str]:
        return format_duration(self.duration_ms)

    def _ensure_running(self, operation: str) -> None:
        if not self.is_running:
            raise InvalidStateError(
                f"Cannot {operation} a flow that is {self.status.label}",
                context={"flow_id": self.id, "status": self.status.label, "operation": operation}
            )

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def complete(self, db: AsyncSession) -> None:
        await self._finish(db, FlowStatus.COMPLETED, "complete")

    async def fail(self, db: AsyncSession, error: Optional[BaseException] = None) -> None:
        attrs = {}
        if error is not None:
            attrs["error_message"] = str(error)
            attrs["error_backtrace"] = format_backtrace(error)
        await self._finish(db, FlowStatus.FAILED, "fail", **attrs)

    async def skip(self, db: AsyncSession, reason: Optional[str] = None) -> None:
        await self._finish(db, FlowStatus.SKIPPED, "skip", error_message=reason)

    async def _finish(self, db: AsyncSession, status: FlowStatus, operation: str, **attrs) -> None:
        self._ensure_running(operation)

        finished_at = utcnow()
        values = {
            "status": status,
            "finished_at": finished_at,
            "duration_ms": max(0, int((finished_at - self.started_at).total_seconds() * 1000)),
            "updated_at": finished_at,
            **attrs
        }

        result = await db.execute(
            update(Flow)
            .where(Flow.id == self.id, Flow.status == FlowStatus.RUNNING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            await db.refresh(self)
            raise InvalidStateError(
                f"Cannot {operation} a flow that is {self.status.label}",
                context={"flow_id": self.id, "status": self.status.label, "operation": operation}
            )
        await db.commit()

        for key, value in values.items():
            set_committed_value(self, key, value)

        logger.debug(f"Flow {self.id} -> {status.label} ({values['duration_ms']}ms)")

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def update_progress(self, db: AsyncSession, current: int, total: int) -> None:
        self._ensure_running("update progress of")
        if total is None or total < 0 or current is None or current < 0:
            raise ValidationError(
                "Progress values must be non-negative",
                context={"current": current, "total": total}
            )

        progress = round(current / total, 4) if total > 0 else 0.0
        self.progress = min(max(progress, 0.0), 1.0)
        self.total = total
        await db.commit()

    async def increment_ok(self, db: AsyncSession) -> int:
        return await self._increment(db, "ok_count")

    async def increment_ko(self, db: AsyncSession) -> int:
        return await self._increment(db, "ko_count")

    async def increment_skip(self, db: AsyncSession) -> int:
        return await self._increment(db, "skip_count")

    async def _increment(self, db: AsyncSession, counter: str) -> int:
        self._ensure_running(f"increment {counter} of")
        column = getattr(Flow, counter)

        result = await db.execute(
            update(Flow)
            .where(Flow.id == self.id, Flow.status == FlowStatus.RUNNING)
            .values({column: column + 1})
            .returning(column)
            .execution_options(synchronize_session=False)
        )
        value = result.scalar_one_or_none()
        if value is None:
            await db.rollback()
            await db.refresh(self)
            raise InvalidStateError(
                f"Cannot increment {counter} of a flow that is {self.status.label}",
                context={"flow_id": self.id, "status": self.status.label}
            )
        await db.commit()

        set_committed_value(self, counter, value)
        return value

    async def update_metadata(self, db: AsyncSession, patch: Dict[str, Any]) -> Dict[str, Any]:
        """Shallow merge, keys from patch win"""
        self._ensure_running("update metadata of")
        merged = {**(self.flow_metadata or {}), **(patch or {})}
        self.flow_metadata = merged
        await db.commit()
        return merged

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def logs(self, db: AsyncSession) -> List[LogEntry]:
        """Log entries in chronological order"""
        result = await db.execute(
            select(LogEntry)
            .where(LogEntry.flow_id == self.id)
            .order_by(LogEntry.logged_at.asc(), LogEntry.id.asc())
        )
        return list(result.scalars().all())
