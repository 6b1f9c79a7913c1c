"""
Thread reconciliation: one end-to-end sync run.

Pipeline:
  1. open a store writer (replace mode clears both tables in a transaction)
  2. fetch_member_map()      owner id → display name, best-effort
  3. fetch active threads    guild-wide or per configured channel
  4. normalize + upsert      per thread, failures recorded and skipped
  5. sync_channel_tags()     tag taxonomy of every parent channel touched
  6. return SyncResult       {success, threadsProcessed, errors}

success only turns false for failures outside the per-thread loop: the
thread list could not be fetched at all, the store was unreachable, or
the run deadline expired.
"""

import asyncio
import enum
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional

from .discord_client import DiscordClient
from .members import fetch_member_map
from .normalizer import normalize_thread
from .store import ThreadStore
from .tag_sync import sync_channel_tags

logger = logging.getLogger(__name__)


class SyncStrategy(str, enum.Enum):
    UPSERT = "upsert"
    REPLACE = "replace"


@dataclass
class SyncError:
    context: str
    message: str


@dataclass
class SyncResult:
    success: bool = True
    threads_processed: int = 0
    errors: list[SyncError] = field(default_factory=list)
    errors_suppressed: int = 0
    max_errors: Optional[int] = None

    def add_error(self, context: str, message: str):
        if self.max_errors is not None and len(self.errors) >= self.max_errors:
            self.errors_suppressed += 1
            return
        self.errors.append(SyncError(context=str(context), message=message))

    def to_dict(self) -> dict:
        body = {
            "success": self.success,
            "threadsProcessed": self.threads_processed,
            "errors": [{"context": e.context, "message": e.message} for e in self.errors],
        }
        if self.errors_suppressed:
            body["errorsSuppressed"] = self.errors_suppressed
        return body


class ThreadReconciler:
    """Runs the thread snapshot sync against one store."""

    def __init__(
        self,
        client: DiscordClient,
        store: ThreadStore,
        guild_id: Optional[str] = None,
        channel_ids: Sequence[str] = (),
        strategy: SyncStrategy = SyncStrategy.REPLACE,
        resolve_owners: bool = True,
        timeout: Optional[float] = None,
        max_errors: Optional[int] = None,
    ):
        if not guild_id and not channel_ids:
            raise ValueError("ThreadReconciler needs a guild_id or channel_ids")
        self.client = client
        self.store = store
        self.guild_id = guild_id
        self.channel_ids = list(dict.fromkeys(channel_ids))
        self.strategy = SyncStrategy(strategy)
        self.resolve_owners = resolve_owners
        self.timeout = timeout
        self.max_errors = max_errors

    async def run(self) -> SyncResult:
        """Run one sync. Never raises; fatal problems land in the result."""
        result = SyncResult(max_errors=self.max_errors)
        start = time.monotonic()
        logger.info(
            "Starting thread sync (strategy=%s, guild=%s, channels=%s)",
            self.strategy.value, self.guild_id, self.channel_ids or "-",
        )

        try:
            await asyncio.wait_for(self._run(result), timeout=self.timeout)
        except asyncio.TimeoutError:
            message = f"Sync timed out after {self.timeout:g}s"
            if self.strategy is SyncStrategy.REPLACE:
                message += "; previous snapshot kept"
            logger.error(message)
            self._fail(result, message)
        except Exception as exc:
            logger.error("Fatal error in thread sync: %s", exc, exc_info=True)
            self._fail(result, str(exc))

        duration = time.monotonic() - start
        logger.info(
            "Thread sync %s: %d threads processed, %d errors in %.1fs",
            "succeeded" if result.success else "failed",
            result.threads_processed, len(result.errors) + result.errors_suppressed, duration,
        )
        return result

    def _fail(self, result: SyncResult, message: str):
        result.success = False
        # Replace mode rolled back, so nothing from this run was kept
        if self.strategy is SyncStrategy.REPLACE:
            result.threads_processed = 0
        result.max_errors = None
        result.add_error("run", message)

    async def _run(self, result: SyncResult):
        replace = self.strategy is SyncStrategy.REPLACE
        async with self.store.writer(replace=replace) as writer:
            member_map = await self._resolve_members()
            threads = await self._fetch_threads(result)

            now_ms = int(time.time() * 1000)
            parent_ids: set[str] = set()

            for raw in threads:
                thread_id = raw.get("id") if isinstance(raw, dict) else None
                try:
                    record = normalize_thread(raw, member_map, now_ms=now_ms)
                    await writer.upsert_thread(record)
                except Exception as exc:
                    logger.error("Error processing thread %s: %s", thread_id, exc)
                    result.add_error(str(thread_id), str(exc))
                    continue

                result.threads_processed += 1
                if record.parent_id:
                    parent_ids.add(str(record.parent_id))

            if parent_ids:
                tag_stats = await sync_channel_tags(self.client, writer, parent_ids)
                for channel_id, message in tag_stats.failed:
                    result.add_error(f"channel:{channel_id}", message)

    async def _resolve_members(self) -> dict[str, str]:
        if not self.resolve_owners:
            return {}
        if not self.guild_id:
            logger.info("No guild id configured, owner nicknames will not be resolved")
            return {}
        return await fetch_member_map(self.client, self.guild_id)

    async def _fetch_threads(self, result: SyncResult) -> list[dict]:
        if not self.channel_ids:
            return await self.client.list_active_threads(self.guild_id)

        threads = []
        failures = 0
        for channel_id in self.channel_ids:
            try:
                threads.extend(await self.client.list_channel_threads(channel_id))
            except Exception as exc:
                failures += 1
                logger.error("Error listing threads for channel %s: %s", channel_id, exc)
                result.add_error(f"channel:{channel_id}", str(exc))

        if failures == len(self.channel_ids):
            raise RuntimeError(f"Could not list threads for any of {len(self.channel_ids)} channels")
        return threads
