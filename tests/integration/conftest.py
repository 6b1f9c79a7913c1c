"""
Integration test fixtures for the asyncpg store.

Provides a `thread_db` fixture: an asyncpg pool on the test database with
the tables created and emptied before each test. Skips when no PostgreSQL
is reachable at TEST_DATABASE_URL.
"""

import os

import asyncpg
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", os.environ.get("DATABASE_URL", ""))


@pytest_asyncio.fixture
async def thread_db():
    from forum_sync.db.engine import asyncpg_dsn
    from forum_sync.db.models import Base

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:
        await engine.dispose()
        pytest.skip(f"Test database not available ({TEST_DATABASE_URL}): {exc}")
    await engine.dispose()

    pool = await asyncpg.create_pool(asyncpg_dsn(TEST_DATABASE_URL), min_size=1, max_size=3)
    async with pool.acquire() as conn:
        await conn.execute(
            "TRUNCATE discord_threads, discord_channel_tags, discord_sync_runs"
        )

    yield pool

    await pool.close()
