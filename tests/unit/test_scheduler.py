"""
Unit tests for ThreadSyncScheduler.

The run log, reconciler and APScheduler are replaced with mocks; covers
job registration, run logging and single-flight behaviour.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from forum_sync.reconciler import SyncResult, SyncStrategy
from forum_sync.scheduler import JOB_ID, ThreadSyncScheduler


class _FakeRunLog:
    instances = []

    def __init__(self, pool, trigger):
        self.trigger = trigger
        self.result = None
        _FakeRunLog.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


@pytest.fixture
def scheduler():
    _FakeRunLog.instances = []
    s = ThreadSyncScheduler(
        db_pool=MagicMock(),
        discord_token="token",
        guild_id="g1",
        strategy=SyncStrategy.UPSERT,
        cron="*/5 * * * *",
    )
    s.reconciler.run = AsyncMock(return_value=SyncResult(threads_processed=3))
    with patch("forum_sync.scheduler.SyncRunLog", _FakeRunLog):
        yield s


class TestConstruction:
    def test_reconciler_is_configured(self):
        s = ThreadSyncScheduler(MagicMock(), "token", channel_ids=["C1"], timeout=30, max_errors=10)
        assert s.reconciler.channel_ids == ["C1"]
        assert s.reconciler.strategy is SyncStrategy.REPLACE
        assert s.reconciler.timeout == 30
        assert s.reconciler.max_errors == 10


class TestStartStop:
    async def test_start_registers_cron_job(self, scheduler):
        scheduler.discord_client.initialize = AsyncMock()
        scheduler.scheduler = MagicMock()

        await scheduler.start()

        scheduler.discord_client.initialize.assert_awaited_once()
        kwargs = scheduler.scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == JOB_ID
        assert kwargs["max_instances"] == 1
        assert kwargs["kwargs"] == {"schedule": "*/5 * * * *"}
        scheduler.scheduler.start.assert_called_once()

    async def test_stop_closes_client(self, scheduler):
        scheduler.discord_client.close = AsyncMock()
        scheduler.scheduler = MagicMock()
        scheduler.scheduler.running = True

        await scheduler.stop()

        scheduler.scheduler.shutdown.assert_called_once()
        scheduler.discord_client.close.assert_awaited_once()


class TestRunSync:
    async def test_run_sync_logs_result(self, scheduler):
        result = await scheduler.run_sync("http")

        assert result.threads_processed == 3
        assert _FakeRunLog.instances[0].trigger == "http"
        assert _FakeRunLog.instances[0].result is result

    async def test_run_log_write_failure_keeps_result(self, flaky_pool):
        pool = flaky_pool(fail_on={2})
        s = ThreadSyncScheduler(db_pool=pool, discord_token="token", guild_id="g1")
        s.reconciler.run = AsyncMock(return_value=SyncResult(threads_processed=5))

        result = await s.run_sync("http")

        assert result.threads_processed == 5
        assert not s.is_running

    async def test_scheduled_run_uses_schedule_trigger(self, scheduler):
        result = await scheduler.run_scheduled_sync("*/5 * * * *")

        assert result.threads_processed == 3
        assert _FakeRunLog.instances[0].trigger == "schedule:*/5 * * * *"

    async def test_scheduled_run_skips_while_running(self, scheduler):
        release = asyncio.Event()

        async def _blocking_run():
            await release.wait()
            return SyncResult()

        scheduler.reconciler.run = AsyncMock(side_effect=_blocking_run)

        first = asyncio.create_task(scheduler.run_sync("http"))
        while not scheduler.is_running:
            await asyncio.sleep(0)

        skipped = await scheduler.run_scheduled_sync("*/5 * * * *")
        assert skipped is None

        release.set()
        await first
        assert scheduler.reconciler.run.await_count == 1
        assert not scheduler.is_running

    async def test_on_demand_runs_queue_behind_lock(self, scheduler):
        order = []

        async def _run():
            order.append("start")
            await asyncio.sleep(0.01)
            order.append("end")
            return SyncResult()

        scheduler.reconciler.run = AsyncMock(side_effect=_run)

        await asyncio.gather(scheduler.run_sync("a"), scheduler.run_sync("b"))

        assert order == ["start", "end", "start", "end"]
