"""
Integration tests for a full reconciler run and the run log on PostgreSQL.

The Discord client is mocked; writes hit the real tables.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from forum_sync.reconciler import SyncResult, SyncStrategy, ThreadReconciler
from forum_sync.store import ThreadStore
from forum_sync.sync_logger import SyncRunLog


def _client():
    client = MagicMock()
    client.list_guild_members = AsyncMock(return_value=[
        {"user": {"id": "u1", "username": "one"}, "nick": "Nick"},
    ])
    client.list_active_threads = AsyncMock(return_value=[
        {"id": "100", "name": "first", "parent_id": "C1", "owner_id": "u1",
         "member_count": 1, "message_count": 2},
        {"id": "200", "name": "second", "parent_id": "C2", "owner_id": "u2",
         "member_count": 3, "message_count": 4},
    ])
    channels = {"C1": {"id": "C1"}, "C2": {"id": "C2", "available_tags": [{"id": "t1", "name": "bug"}]}}
    client.get_channel = AsyncMock(side_effect=lambda cid: channels[cid])
    return client


@pytest.mark.parametrize("strategy", [SyncStrategy.REPLACE, SyncStrategy.UPSERT])
async def test_full_run_writes_threads_and_tags(thread_db, strategy):
    reconciler = ThreadReconciler(_client(), ThreadStore(thread_db), guild_id="g1", strategy=strategy)

    result = await reconciler.run()

    assert result.to_dict() == {"success": True, "threadsProcessed": 2, "errors": []}
    async with thread_db.acquire() as conn:
        threads = await conn.fetch("SELECT thread_id, owner_nickname FROM discord_threads ORDER BY thread_id")
        tags = await conn.fetch("SELECT parent_id, tag_id, tag_name, tag_emoji FROM discord_channel_tags")
    assert [(r["thread_id"], r["owner_nickname"]) for r in threads] == [("100", "Nick"), ("200", None)]
    assert [tuple(r.values()) for r in tags] == [("C2", "t1", "bug", None)]


async def test_replace_run_with_fatal_fetch_keeps_old_rows(thread_db):
    first = ThreadReconciler(_client(), ThreadStore(thread_db), guild_id="g1")
    await first.run()

    broken = _client()
    broken.list_active_threads = AsyncMock(side_effect=RuntimeError("gateway down"))
    result = await ThreadReconciler(broken, ThreadStore(thread_db), guild_id="g1").run()

    assert result.success is False
    async with thread_db.acquire() as conn:
        assert await conn.fetchval("SELECT COUNT(*) FROM discord_threads") == 2


async def test_run_log_records_success(thread_db):
    async with SyncRunLog(thread_db, "http") as log:
        log.result = SyncResult(threads_processed=7)

    async with thread_db.acquire() as conn:
        row = await conn.fetchrow("SELECT * FROM discord_sync_runs")
    assert row["trigger"] == "http"
    assert row["status"] == "success"
    assert row["threads_processed"] == 7
    assert row["error_count"] == 0
    assert row["completed_at"] is not None


async def test_run_log_records_failed_result(thread_db):
    async with SyncRunLog(thread_db, "schedule:*/15 * * * *") as log:
        result = SyncResult(success=False)
        result.add_error("run", "401: Unauthorized")
        log.result = result

    async with thread_db.acquire() as conn:
        row = await conn.fetchrow("SELECT status, error_message, error_count FROM discord_sync_runs")
    assert row["status"] == "error"
    assert row["error_message"] == "401: Unauthorized"
    assert row["error_count"] == 1


async def test_run_log_does_not_swallow_exceptions(thread_db):
    with pytest.raises(ValueError):
        async with SyncRunLog(thread_db, "http"):
            raise ValueError("boom")

    async with thread_db.acquire() as conn:
        row = await conn.fetchrow("SELECT status, error_message FROM discord_sync_runs")
    assert row["status"] == "error"
    assert row["error_message"] == "boom"
