"""
asyncpg store adapter for discord_threads and discord_channel_tags.

Writes go through a ThreadWriter bound to one pooled connection:

- upsert mode: every statement autocommits, so a failed row never loses
  the rows written before it.
- replace mode: the whole run is one transaction that starts by deleting
  both tables. Each row write runs in a savepoint so a failed row rolls
  back alone. Readers keep seeing the previous snapshot until commit, and
  an exception escaping the block rolls everything back.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from .normalizer import ThreadRecord
from .tag_sync import ChannelTag

logger = logging.getLogger(__name__)

UPSERT_THREAD_SQL = """
    INSERT INTO discord_threads (
        thread_id, thread_name, topic, owner_id, owner_nickname, parent_id,
        member_count, message_count, available_tags, applied_tags,
        thread_metadata, created_timestamp, last_updated
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
    ON CONFLICT (thread_id) DO UPDATE SET
        thread_name       = EXCLUDED.thread_name,
        topic             = EXCLUDED.topic,
        owner_id          = EXCLUDED.owner_id,
        owner_nickname    = EXCLUDED.owner_nickname,
        parent_id         = EXCLUDED.parent_id,
        member_count      = EXCLUDED.member_count,
        message_count     = EXCLUDED.message_count,
        available_tags    = EXCLUDED.available_tags,
        applied_tags      = EXCLUDED.applied_tags,
        thread_metadata   = EXCLUDED.thread_metadata,
        created_timestamp = EXCLUDED.created_timestamp,
        last_updated      = EXCLUDED.last_updated
"""

UPSERT_TAG_SQL = """
    INSERT INTO discord_channel_tags (parent_id, tag_id, tag_name, tag_emoji)
    VALUES ($1, $2, $3, $4)
    ON CONFLICT (parent_id, tag_id) DO UPDATE SET
        tag_name  = EXCLUDED.tag_name,
        tag_emoji = EXCLUDED.tag_emoji
"""


class ThreadWriter:
    """Row writes on a single connection."""

    def __init__(self, conn: asyncpg.Connection, in_transaction: bool = False):
        self.conn = conn
        self.in_transaction = in_transaction

    async def _execute(self, sql: str, *args):
        if self.in_transaction:
            # Nested transaction → SAVEPOINT
            async with self.conn.transaction():
                await self.conn.execute(sql, *args)
        else:
            await self.conn.execute(sql, *args)

    async def upsert_thread(self, record: ThreadRecord):
        await self._execute(UPSERT_THREAD_SQL, *record.as_row())

    async def upsert_tag(self, tag: ChannelTag):
        await self._execute(
            UPSERT_TAG_SQL, tag.parent_id, tag.tag_id, tag.tag_name, tag.tag_emoji
        )

    async def clear(self):
        """Delete every thread and tag row."""
        await self.conn.execute("DELETE FROM discord_threads")
        await self.conn.execute("DELETE FROM discord_channel_tags")
        logger.info("Cleared discord_threads and discord_channel_tags")


class ThreadStore:
    """Entry point for sync writes against the asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @asynccontextmanager
    async def writer(self, replace: bool = False) -> AsyncIterator[ThreadWriter]:
        async with self.pool.acquire() as conn:
            if not replace:
                yield ThreadWriter(conn)
                return

            async with conn.transaction():
                writer = ThreadWriter(conn, in_transaction=True)
                await writer.clear()
                yield writer
