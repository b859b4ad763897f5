import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from sqlalchemy.ext.asyncio import create_async_engine
from core.config import settings
from core.logging import setup_logging
from models.base import Base
# Import all models to ensure they are registered
from models.process import Process
from models.flow import Flow
from models.log_entry import LogEntry

setup_logging()
logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")
    engine = create_async_engine(settings.DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        logger.info("Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info(
            f"Tables created: {Process.__tablename__}, {Flow.__tablename__}, {LogEntry.__tablename__}"
        )

    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(init_database())
