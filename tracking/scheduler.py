import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings
from core.database import async_session_maker
from tracking.facade import FlowTracker

logger = logging.getLogger(__name__)


class RetentionScheduler:
    """Runs the retention sweep on an interval, one fresh session per sweep"""

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker] = None,
        interval_hours: Optional[int] = None
    ):
        self.scheduler = AsyncIOScheduler()
        self.session_maker = session_maker or async_session_maker
        self.interval_hours = interval_hours or settings.CLEANUP_INTERVAL_HOURS

    async def run_cleanup_job(self) -> Optional[int]:
        """Job to run the retention sweep"""
        logger.info("Scheduler: Starting retention sweep")
        async with self.session_maker() as session:
            try:
                deleted = await FlowTracker(session).cleanup()
                logger.info(f"Scheduler: Retention sweep deleted {deleted} flows")
                return deleted
            except Exception as e:
                logger.error(f"Scheduler: Retention sweep failed - {e}")
                return None

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_cleanup_job,
            trigger=IntervalTrigger(hours=self.interval_hours),
            id="flow_tracker_cleanup",
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Retention scheduler started (every {self.interval_hours}h)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Retention scheduler stopped")
