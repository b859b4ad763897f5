from sqlalchemy import Column, String, Text, Boolean, DateTime, Index, select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import relationship
from typing import Any, Dict, List, Optional
import logging
import re

from core.exceptions import ValidationError
from models.base import Base, Category, FlowStatus, IdType, IntEnumType, utcnow
from models.flow import Flow

logger = logging.getLogger(__name__)


def default_process_name(identifier: str) -> str:
    """
    Last path segment of an identifier, without the method suffix.

    "billing.jobs.InvoiceJob#perform" -> "InvoiceJob"
    "Billing::InvoiceJob#perform" -> "InvoiceJob"
    """
    head = identifier.split("#", 1)[0]
    return re.split(r"::|\.", head)[-1].strip()


def _parse_category(category) -> Category:
    if category is None:
        return Category.JOBS
    try:
        return Category.parse(category)
    except ValueError as e:
        raise ValidationError(
            f"Unknown process category: {category!r}",
            context={"field_name": "category", "allowed": Category.labels()},
            original_exception=e
        )


class Process(Base):
    """
    Definition of one kind of trackable unit of work.

    Purpose:
    - One row per unique identifier (e.g. "billing.jobs.InvoiceJob#perform")
    - Created lazily the first time that identifier is executed
    - Owns every Flow (execution) of that identifier
    """
    __tablename__ = "flow_tracker_processes"

    id = Column(IdType, primary_key=True, autoincrement=True)

    identifier = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False, index=True)
    category = Column(IntEnumType(Category), nullable=False, default=Category.JOBS, index=True)
    active = Column(Boolean, nullable=False, default=True, index=True)
    description = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    flows = relationship(
        "Flow",
        back_populates="process",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_process_category_active", "category", "active"),
    )

    def __repr__(self) -> str:
        return f"<Process {self.identifier!r}>"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    async def find_or_create(
        cls,
        db: AsyncSession,
        identifier: str,
        name: Optional[str] = None,
        category=None,
        description: Optional[str] = None
    ) -> "Process":
        """
        Return the Process for this identifier, inserting it if needed.

        Concurrent first executions race on the unique identifier; the loser
        rolls back and reads the winner's row.
        """
        if not identifier or not identifier.strip():
            raise ValidationError(
                "Process identifier is required",
                context={"field_name": "identifier"}
            )

        existing = await cls.find_by_identifier(db, identifier)
        if existing is not None:
            return existing

        resolved_name = name or default_process_name(identifier)
        if not resolved_name or not resolved_name.strip():
            raise ValidationError(
                "Process name is required",
                context={"field_name": "name", "identifier": identifier}
            )

        process = cls(
            identifier=identifier,
            name=resolved_name,
            category=_parse_category(category),
            active=True,
            description=description
        )
        db.add(process)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.debug(f"Process {identifier} created concurrently, reloading")
            existing = await cls.find_by_identifier(db, identifier)
            if existing is None:
                raise
            return existing

        logger.info(f"Registered process {identifier} ({resolved_name})")
        return process

    @classmethod
    async def find_by_identifier(cls, db: AsyncSession, identifier: str) -> Optional["Process"]:
        result = await db.execute(select(cls).where(cls.identifier == identifier))
        return result.scalar_one_or_none()

    async def set_active(self, db: AsyncSession, active: bool) -> None:
        self.active = active
        await db.commit()

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    async def stats(self, db: AsyncSession) -> Dict[str, Any]:
        """Aggregate counts over this process's flows"""
        counts_result = await db.execute(
            select(Flow.status, func.count())
            .where(Flow.process_id == self.id)
            .group_by(Flow.status)
        )
        counts = {status: count for status, count in counts_result.all()}

        avg_result = await db.execute(
            select(func.avg(Flow.duration_ms)).where(
                Flow.process_id == self.id,
                Flow.status == FlowStatus.COMPLETED,
                Flow.duration_ms.isnot(None)
            )
        )
        avg_duration = avg_result.scalar()

        last_result = await db.execute(
            select(func.max(Flow.started_at)).where(Flow.process_id == self.id)
        )

        return {
            "total_flows": sum(counts.values()),
            "completed": counts.get(FlowStatus.COMPLETED, 0),
            "failed": counts.get(FlowStatus.FAILED, 0),
            "running": counts.get(FlowStatus.RUNNING, 0),
            "avg_duration_ms": int(round(avg_duration)) if avg_duration is not None else None,
            "last_execution": last_result.scalar()
        }

    async def success_rate(self, db: AsyncSession) -> Optional[float]:
        """Percentage of finished flows that completed"""
        finished_result = await db.execute(
            select(func.count()).select_from(Flow).where(
                Flow.process_id == self.id,
                Flow.status != FlowStatus.RUNNING
            )
        )
        finished = finished_result.scalar() or 0
        if finished == 0:
            return None

        completed_result = await db.execute(
            select(func.count()).select_from(Flow).where(
                Flow.process_id == self.id,
                Flow.status == FlowStatus.COMPLETED
            )
        )
        completed = completed_result.scalar() or 0
        return round(completed / finished * 100, 1)

    async def recent_flows(self, db: AsyncSession, limit: int = 20) -> List["Flow"]:
        result = await db.execute(
            select(Flow)
            .where(Flow.process_id == self.id)
            .order_by(Flow.started_at.desc(), Flow.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def failed_flows(self, db: AsyncSession, limit: int = 20) -> List["Flow"]:
        result = await db.execute(
            select(Flow)
            .where(Flow.process_id == self.id, Flow.status == FlowStatus.FAILED)
            .order_by(Flow.started_at.desc(), Flow.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def has_running_flows(self, db: AsyncSession) -> bool:
        result = await db.execute(
            select(Flow.id)
            .where(Flow.process_id == self.id, Flow.status == FlowStatus.RUNNING)
            .limit(1)
        )
        return result.first() is not None
