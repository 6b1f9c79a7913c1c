"""Helper for recording sync runs in the discord_sync_runs table."""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

import asyncpg

from .reconciler import SyncResult

logger = logging.getLogger(__name__)


class SyncRunLog:
    """Context manager that logs a sync run to discord_sync_runs."""

    def __init__(self, pool: asyncpg.Pool, trigger: str):
        self.pool = pool
        self.trigger = trigger
        self.run_id = None
        self.start_time = None
        self.result: Optional[SyncResult] = None

    async def __aenter__(self):
        self.start_time = time.time()
        try:
            async with self.pool.acquire() as conn:
                self.run_id = await conn.fetchval(
                    """INSERT INTO discord_sync_runs (trigger, status)
                       VALUES ($1, 'running') RETURNING id""",
                    self.trigger,
                )
        except Exception as exc:
            # The run goes ahead without a log row
            logger.warning("Could not record start of sync %s: %s", self.trigger, exc)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time
        result = self.result

        if exc_type or result is None or not result.success:
            status = "error"
        else:
            status = "success"

        error_msg = None
        if exc_val is not None:
            error_msg = str(exc_val)
        elif result is not None and result.errors:
            error_msg = result.errors[0].message

        if self.run_id is not None:
            await self._finish(status, result, error_msg, duration)

        if status == "error":
            logger.error("Sync %s failed after %.1fs: %s", self.trigger, duration, error_msg)
        else:
            logger.info("Sync %s completed in %.1fs", self.trigger, duration)

        return False  # Don't suppress exceptions

    async def _finish(self, status: str, result: Optional[SyncResult], error_msg, duration: float):
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """UPDATE discord_sync_runs SET
                        status = $2,
                        threads_processed = $3,
                        error_count = $4,
                        error_message = $5,
                        duration_seconds = $6,
                        completed_at = $7
                       WHERE id = $1""",
                    self.run_id,
                    status,
                    result.threads_processed if result else None,
                    len(result.errors) + result.errors_suppressed if result else None,
                    error_msg,
                    duration,
                    datetime.now(timezone.utc),
                )
        except Exception as exc:
            logger.warning("Could not record end of sync run %s: %s", self.run_id, exc)
