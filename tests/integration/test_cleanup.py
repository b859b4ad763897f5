"""
Tests for the retention sweep
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select, update

from core.exceptions import ValidationError
from models.flow import Flow
from models.log_entry import LogEntry
from models.process import Process
from tracking.retention import delete_flows_older_than, retention_cutoff


async def _ids(db, model):
    result = await db.execute(select(model.id).order_by(model.id))
    return list(result.scalars().all())


async def _tracked_flow(flow_tracker, identifier="jobs.Report#perform"):
    async def work(tracker):
        await tracker.info("line one")
        await tracker.info("line two")

    outcome = await flow_tracker.track(identifier, work)
    return outcome["flow_id"]


@pytest.mark.asyncio
async def test_cleanup_deletes_only_flows_older_than_horizon(db_session, flow_tracker, age_flow):
    old = await _tracked_flow(flow_tracker)
    borderline = await _tracked_flow(flow_tracker)
    fresh = await _tracked_flow(flow_tracker)
    running = await flow_tracker.start("jobs.Stuck#perform")
    await running.info("never finished")

    await age_flow(old, 45)
    await age_flow(borderline, 29)
    await age_flow(running.flow_id, 60)

    deleted = await flow_tracker.cleanup(days=30)

    assert deleted == 2
    assert await _ids(db_session, Flow) == [borderline, fresh]

    result = await db_session.execute(select(LogEntry.flow_id).distinct())
    assert sorted(result.scalars().all()) == [borderline, fresh]

    # Processes are kept even when all their flows are gone
    assert await db_session.scalar(select(func.count()).select_from(Process)) == 2


@pytest.mark.asyncio
async def test_cleanup_defaults_to_retention_days(db_session, flow_tracker, age_flow):
    flow_tracker.configure(retention_days=10)
    old = await _tracked_flow(flow_tracker)
    fresh = await _tracked_flow(flow_tracker)
    await age_flow(old, 11)

    assert await flow_tracker.cleanup() == 1
    assert await _ids(db_session, Flow) == [fresh]


@pytest.mark.asyncio
async def test_cleanup_with_nothing_to_delete(flow_tracker):
    await _tracked_flow(flow_tracker)

    assert await flow_tracker.cleanup(days=1) == 0


@pytest.mark.asyncio
async def test_cleanup_rejects_negative_days(flow_tracker):
    with pytest.raises(ValidationError):
        await flow_tracker.cleanup(days=-1)


@pytest.mark.asyncio
async def test_flow_created_exactly_at_cutoff_is_kept(db_session, flow_tracker):
    now = datetime(2024, 6, 1, 12, 0, 0)
    cutoff = retention_cutoff(30, now=now)
    at_cutoff = await _tracked_flow(flow_tracker)
    before_cutoff = await _tracked_flow(flow_tracker)

    for flow_id, created_at in [
        (at_cutoff, cutoff),
        (before_cutoff, cutoff - timedelta(microseconds=1)),
    ]:
        await db_session.execute(
            update(Flow)
            .where(Flow.id == flow_id)
            .values(created_at=created_at)
            .execution_options(synchronize_session=False)
        )
    await db_session.commit()

    assert cutoff == datetime(2024, 5, 2, 12, 0, 0)
    assert await delete_flows_older_than(db_session, 30, now=now) == 1
    assert await _ids(db_session, Flow) == [at_cutoff]
