"""
Scheduler for periodic thread sync runs.

Uses APScheduler to run the thread snapshot sync on a crontab schedule.
The same run can be requested on demand over HTTP (see
thread_tracker.api.thread_routes).

Runs are single-flight: an asyncio.Lock is held for the whole run. A
scheduled tick that finds a run in flight is skipped; on-demand callers
wait their turn.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Optional

import asyncpg
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .discord_client import DiscordClient
from .reconciler import SyncResult, SyncStrategy, ThreadReconciler
from .store import ThreadStore
from .sync_logger import SyncRunLog

logger = logging.getLogger(__name__)

JOB_ID = "thread_sync"


class ThreadSyncScheduler:
    """Owns the Discord client, the cron job and the run lock."""

    def __init__(
        self,
        db_pool: asyncpg.Pool,
        discord_token: str,
        guild_id: Optional[str] = None,
        channel_ids: Sequence[str] = (),
        strategy: SyncStrategy = SyncStrategy.REPLACE,
        cron: str = "*/15 * * * *",
        timeout: Optional[float] = None,
        resolve_owners: bool = True,
        max_errors: Optional[int] = None,
    ):
        self.db_pool = db_pool
        self.cron = cron
        self.discord_client = DiscordClient(discord_token)
        self.reconciler = ThreadReconciler(
            self.discord_client,
            ThreadStore(db_pool),
            guild_id=guild_id,
            channel_ids=channel_ids,
            strategy=strategy,
            resolve_owners=resolve_owners,
            timeout=timeout,
            max_errors=max_errors,
        )

        self.scheduler = AsyncIOScheduler()
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def start(self):
        """Initialize the client and start the scheduler."""
        await self.discord_client.initialize()

        self.scheduler.add_job(
            self.run_scheduled_sync,
            CronTrigger.from_crontab(self.cron),
            id=JOB_ID,
            name="Discord Forum Thread Sync",
            kwargs={"schedule": self.cron},
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info("Thread sync scheduler started (cron=%s)", self.cron)

    async def stop(self):
        """Shut down scheduler and client."""
        if self.scheduler.running:
            self.scheduler.shutdown()
        await self.discord_client.close()

    async def run_sync(self, trigger: str = "manual") -> SyncResult:
        """Run one sync, waiting for any run already in flight."""
        async with self._lock:
            async with SyncRunLog(self.db_pool, trigger) as log:
                result = await self.reconciler.run()
                log.result = result
            return result

    async def run_scheduled_sync(self, schedule: str) -> Optional[SyncResult]:
        """Timer entry point. No-ops while another run holds the lock."""
        logger.info("Running scheduled thread sync (trigger=%s)", schedule)
        if self.is_running:
            logger.warning("Thread sync already in progress, skipping scheduled run")
            return None
        return await self.run_sync(f"schedule:{schedule}")
