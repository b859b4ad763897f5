from sqlalchemy import Column, Text, DateTime, ForeignKey, Index, event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import relationship
from typing import Any, Dict, Optional

from core.exceptions import InvalidStateError, ValidationError
from models.base import Base, IdType, IntEnumType, JSONType, LogLevel, utcnow


def coerce_level(level) -> LogLevel:
    try:
        return LogLevel.parse(level)
    except ValueError as e:
        raise ValidationError(
            f"Unknown log level: {level!r}",
            context={"field_name": "level", "allowed": LogLevel.labels()},
            original_exception=e
        )


class LogEntry(Base):
    """
    One structured message recorded during a Flow's execution.

    Log entries are append-only: they are inserted by trackers and removed
    only together with their Flow.
    """
    __tablename__ = "flow_tracker_log_entries"

    id = Column(IdType, primary_key=True, autoincrement=True)
    flow_id = Column(
        IdType,
        ForeignKey("flow_tracker_flows.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    level = Column(IntEnumType(LogLevel), nullable=False, default=LogLevel.INFO, index=True)
    content = Column(Text, nullable=False)
    context = Column(JSONType, nullable=False, default=dict)
    logged_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    flow = relationship("Flow", back_populates="log_entries")

    __table_args__ = (
        Index("idx_log_entry_flow_logged", "flow_id", "logged_at"),
    )

    @classmethod
    async def create(
        cls,
        db: AsyncSession,
        flow,
        message: str,
        level=LogLevel.INFO,
        context: Optional[Dict[str, Any]] = None
    ) -> "LogEntry":
        if message is None or not str(message).strip():
            raise ValidationError(
                "Log message is required",
                context={"field_name": "content", "flow_id": flow.id}
            )
        level = coerce_level(level)

        entry = cls(
            flow_id=flow.id,
            level=level,
            content=str(message),
            context=dict(context or {}),
            logged_at=utcnow()
        )
        db.add(entry)
        await db.commit()
        return entry

    @property
    def formatted_message(self) -> str:
        timestamp = self.logged_at.strftime("%H:%M:%S.%f")[:-3] if self.logged_at else ""
        return f"{timestamp} [{self.level.label.upper()}] {self.content}"

    @property
    def is_error(self) -> bool:
        return self.level == LogLevel.ERROR

    @property
    def is_warning_or_above(self) -> bool:
        return self.level >= LogLevel.WARN


@event.listens_for(LogEntry, "before_update")
def _reject_log_entry_update(mapper, connection, target):
    raise InvalidStateError(
        "Log entries are immutable",
        context={"log_entry_id": target.id}
    )
