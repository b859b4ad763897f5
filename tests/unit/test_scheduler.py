import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from tracking.scheduler import RetentionScheduler


def _session_maker(session):
    maker = MagicMock()
    maker.return_value.__aenter__.return_value = session
    maker.return_value.__aexit__.return_value = False
    return maker


@pytest.mark.asyncio
async def test_scheduler_initialization():
    scheduler = RetentionScheduler(interval_hours=6)
    assert scheduler.scheduler is not None
    assert scheduler.interval_hours == 6


@pytest.mark.asyncio
async def test_cleanup_job_runs_sweep_in_fresh_session():
    session = AsyncMock()

    with patch("tracking.scheduler.FlowTracker") as mock_tracker_cls:
        mock_tracker_cls.return_value.cleanup = AsyncMock(return_value=4)

        scheduler = RetentionScheduler(session_maker=_session_maker(session))
        deleted = await scheduler.run_cleanup_job()

        assert deleted == 4
        mock_tracker_cls.assert_called_once_with(session)
        mock_tracker_cls.return_value.cleanup.assert_awaited_once()


@pytest.mark.asyncio
async def test_cleanup_job_failure_is_logged_not_raised():
    with patch("tracking.scheduler.FlowTracker") as mock_tracker_cls:
        mock_tracker_cls.return_value.cleanup = AsyncMock(side_effect=RuntimeError("db down"))

        scheduler = RetentionScheduler(session_maker=_session_maker(AsyncMock()))

        assert await scheduler.run_cleanup_job() is None


@pytest.mark.asyncio
async def test_start_registers_interval_job():
    scheduler = RetentionScheduler(session_maker=MagicMock(), interval_hours=12)
    scheduler.start()
    try:
        job = scheduler.scheduler.get_job("flow_tracker_cleanup")
        assert job is not None
        assert job.trigger.interval.total_seconds() == 12 * 3600
    finally:
        scheduler.stop()
