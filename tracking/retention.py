"""
Retention sweep: bulk delete of old flows and their log entries
"""

from datetime import datetime, timedelta
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.exceptions import ValidationError
from models.base import utcnow
from models.flow import Flow
from models.log_entry import LogEntry

logger = logging.getLogger(__name__)


def retention_cutoff(days: int, now: datetime = None) -> datetime:
    if days is None or days < 0:
        raise ValidationError(
            "Retention days must be a non-negative integer",
            context={"field_name": "days", "field_value": days}
        )
    return (now or utcnow()) - timedelta(days=days)


async def delete_flows_older_than(db: AsyncSession, days: int, now: datetime = None) -> int:
    """
    Delete every Flow created strictly before now - days, whatever its status.

    Log entries go first in the same transaction, so the sweep does not
    depend on the database enforcing ON DELETE CASCADE. Returns the number
    of flows deleted.
    """
    cutoff = retention_cutoff(days, now=now)
    stale_ids = select(Flow.id).where(Flow.created_at < cutoff)

    try:
        await db.execute(
            delete(LogEntry)
            .where(LogEntry.flow_id.in_(stale_ids))
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(
            delete(Flow)
            .where(Flow.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    deleted = result.rowcount or 0
    logger.info(f"Retention sweep removed {deleted} flows created before {cutoff.isoformat()}")
    return deleted
