"""
Script to run the retention sweep once
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import async_session_maker, engine
from core.exceptions import FlowTrackerError
from core.logging import setup_logging
from tracking.facade import FlowTracker

setup_logging()
logger = logging.getLogger(__name__)


async def run_cleanup(days=None) -> int:
    """Delete flows older than days (retention_days when omitted)"""
    try:
        async with async_session_maker() as session:
            deleted = await FlowTracker(session).cleanup(days)
            logger.info(f"Deleted {deleted} flows")
            return deleted
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Delete old tracked flows and their logs")
    parser.add_argument("--days", type=int, default=None, help="Retention window in days")
    args = parser.parse_args()

    try:
        asyncio.run(run_cleanup(args.days))
    except FlowTrackerError as e:
        logger.error(f"Cleanup failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
