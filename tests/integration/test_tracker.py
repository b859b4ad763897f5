"""
Tests for Tracker logging, steps and lifecycle
"""

import asyncio
import logging

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, patch
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from core.config import TrackingConfiguration
from core.exceptions import InvalidStateError, ValidationError
from models.base import FlowStatus, LogLevel
from models.flow import Flow
from models.process import Process
from tracking.tracker import Tracker


@pytest_asyncio.fixture
async def tracker(db_session, external_logger):
    process = await Process.find_or_create(db_session, "billing.jobs.InvoiceJob#perform")
    flow = await Flow.start(db_session, process)
    return Tracker(db_session, flow, process, TrackingConfiguration(), external_logger=external_logger)


async def _contents(db_session, tracker):
    return [entry.content for entry in await tracker.flow_record.logs(db_session)]


@pytest.mark.asyncio
async def test_accessors(tracker):
    assert tracker.flow_id == tracker.flow_record.id
    assert tracker.process_id == tracker.process.id
    assert tracker.correlation_id == tracker.flow_record.correlation_id
    assert tracker.step_prefix is None


@pytest.mark.asyncio
async def test_log_levels(db_session, tracker):
    await tracker.debug("d")
    await tracker.info("i", context={"invoice_id": 7})
    await tracker.warn("w")
    entry = await tracker.error("e")

    logs = await tracker.flow_record.logs(db_session)
    assert [log.level for log in logs] == [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN, LogLevel.ERROR]
    assert logs[1].context == {"invoice_id": 7}
    assert entry.content == "e"


@pytest.mark.asyncio
async def test_log_accepts_level_names(db_session, tracker):
    entry = await tracker.log("careful", level="warn")

    assert entry.level == LogLevel.WARN


@pytest.mark.asyncio
async def test_empty_message_raises(tracker):
    with pytest.raises(ValidationError):
        await tracker.info("  ")


@pytest.mark.asyncio
async def test_log_is_mirrored_to_external_logger(tracker, external_logger):
    await tracker.warn("Low balance")

    external_logger.log.assert_called_once_with(
        logging.WARNING,
        "[FlowTracker] [InvoiceJob] Low balance"
    )


@pytest.mark.asyncio
async def test_mirroring_can_be_switched_off(db_session, tracker, external_logger):
    tracker.configuration = TrackingConfiguration(mirror_to_external_logger=False)

    await tracker.info("quiet")

    external_logger.log.assert_not_called()
    assert await _contents(db_session, tracker) == ["quiet"]


@pytest.mark.asyncio
async def test_mirror_failure_is_swallowed(db_session, tracker, external_logger):
    external_logger.log.side_effect = RuntimeError("sink down")

    entry = await tracker.info("still stored")

    assert entry is not None
    assert await _contents(db_session, tracker) == ["still stored"]


@pytest.mark.asyncio
async def test_log_persistence_failure_is_swallowed(db_session, tracker):
    with patch("tracking.tracker.LogEntry.create", AsyncMock(side_effect=SQLAlchemyError("disk full"))):
        assert await tracker.info("lost") is None

    await tracker.info("kept")
    assert await _contents(db_session, tracker) == ["kept"]
    assert tracker.flow_record.is_running


@pytest.mark.asyncio
async def test_nested_flows_prefix_logs_and_share_one_flow(db_session, tracker):
    async def inner(step):
        await step.info("deep")
        return "inner-result"

    async def outer(step):
        return await step.flow("inner", inner)

    result = await tracker.flow("outer", outer, metadata={"batch": 3})

    assert result == "inner-result"
    assert await _contents(db_session, tracker) == [
        "[outer] Started",
        "[outer.inner] Started",
        "[outer.inner] deep",
        "[outer.inner] Completed",
        "[outer] Completed",
    ]
    logs = await tracker.flow_record.logs(db_session)
    assert logs[0].context == {"batch": 3}

    count = await db_session.execute(select(func.count()).select_from(Flow))
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_flow_runs_sync_work(tracker):
    assert await tracker.flow("sum", lambda step: 1 + 1) == 2


@pytest.mark.asyncio
async def test_flow_failure_is_logged_and_reraised(db_session, tracker):
    async def work(step):
        raise ValueError("bad row")

    with pytest.raises(ValueError, match="bad row"):
        await tracker.flow("load", work)

    logs = await tracker.flow_record.logs(db_session)
    assert [log.content for log in logs] == ["[load] Started", "[load] Failed: bad row"]
    assert logs[-1].level == LogLevel.ERROR
    assert tracker.flow_record.is_running


@pytest.mark.asyncio
async def test_flow_without_work_returns_step_tracker(db_session, tracker):
    step = await tracker.flow("manual")
    await step.info("inside")

    assert step.step_prefix == "manual"
    assert step.flow_id == tracker.flow_id
    assert await _contents(db_session, tracker) == ["[manual] Started", "[manual] inside"]


@pytest.mark.asyncio
async def test_step_scope(db_session, tracker):
    async with tracker.step("render") as step:
        await step.info("drawing")

    assert await _contents(db_session, tracker) == [
        "[render] Started",
        "[render] drawing",
        "[render] Completed",
    ]


@pytest.mark.asyncio
async def test_concurrent_steps_share_the_tracker(db_session, tracker):
    async def work(step):
        for _ in range(3):
            await step.ok()

    await asyncio.gather(*(tracker.flow(f"part{i}", work) for i in range(4)))

    assert tracker.flow_record.ok_count == 12


@pytest.mark.asyncio
async def test_counters_progress_and_metadata(tracker):
    assert await tracker.ok() == 1
    assert await tracker.ko() == 1
    assert await tracker.skip() == 1
    await tracker.update_progress(1, 4)
    await tracker.update_metadata({"a": 1})
    merged = await tracker.update_metadata({"b": 2})

    flow = tracker.flow_record
    assert (flow.ok_count, flow.ko_count, flow.skip_count) == (1, 1, 1)
    assert flow.progress == 0.25
    assert merged == {"a": 1, "b": 2}


@pytest.mark.asyncio
async def test_complete_twice_raises(tracker):
    await tracker.complete()

    with pytest.raises(InvalidStateError):
        await tracker.complete()
    with pytest.raises(InvalidStateError):
        await tracker.fail(RuntimeError("late"))


@pytest.mark.asyncio
async def test_fail_and_skip_flow(db_session):
    process = await Process.find_or_create(db_session, "jobs.Sync#perform")
    failing = Tracker(db_session, await Flow.start(db_session, process), process, TrackingConfiguration())
    skipped = Tracker(db_session, await Flow.start(db_session, process), process, TrackingConfiguration())

    await failing.fail(RuntimeError("remote 500"))
    await skipped.skip_flow("no changes")

    assert failing.flow_record.status == FlowStatus.FAILED
    assert failing.flow_record.error_message == "remote 500"
    assert skipped.flow_record.status == FlowStatus.SKIPPED
    assert skipped.flow_record.error_message == "no changes"
