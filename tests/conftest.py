"""
Pytest configuration and fixtures
"""

import logging
from datetime import timedelta
from typing import AsyncGenerator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from core.config import settings, tracking_config
from core.database import create_session_maker, enable_sqlite_foreign_keys
from models.base import Base, utcnow
from models.flow import Flow
from tracking.facade import FlowTracker

# In-memory SQLite shared by every session of a test through StaticPool
TEST_DATABASE_URL = "sqlite+aiosqlite://"

settings.SCHEDULER_ENABLED = False


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    enable_sqlite_foreign_keys(engine)

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return create_session_maker(test_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def reset_tracking_configuration():
    """Every test starts from default tracking options"""
    tracking_config.reset()
    yield
    tracking_config.reset()


@pytest.fixture
def external_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def flow_tracker(db_session, external_logger):
    return FlowTracker(db_session, external_logger=external_logger)


@pytest.fixture
def age_flow(db_session):
    """Move a flow's created_at / started_at back by a number of days"""

    async def _age(flow_id: int, days: float):
        past = utcnow() - timedelta(days=days)
        await db_session.execute(
            update(Flow)
            .where(Flow.id == flow_id)
            .values(created_at=past, started_at=past)
            .execution_options(synchronize_session=False)
        )
        await db_session.commit()
        await db_session.execute(
            select(Flow).where(Flow.id == flow_id).execution_options(populate_existing=True)
        )

    return _age
