"""Run a single thread sync from the command line and print the result.

Usage: python scripts/sync_once.py [--strategy upsert|replace]
"""

import argparse
import asyncio
import json
import logging
import os
import sys

# Ensure src/ is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import asyncpg

from forum_sync.db.engine import asyncpg_dsn
from forum_sync.reconciler import SyncStrategy
from thread_tracker.app import build_scheduler
from thread_tracker.config import get_settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")


async def main(strategy: str | None) -> int:
    settings = get_settings()
    if strategy:
        settings.sync_strategy = SyncStrategy(strategy).value
    if not settings.sync_configured:
        print("DISCORD_BOT_TOKEN and DISCORD_GUILD_ID or DISCORD_CHANNEL_IDS are required")
        return 2

    pool = await asyncpg.create_pool(asyncpg_dsn(settings.database_url), min_size=1, max_size=2)
    scheduler = build_scheduler(pool, settings)
    await scheduler.discord_client.initialize()
    try:
        result = await scheduler.run_sync("cli")
    finally:
        await scheduler.discord_client.close()
        await pool.close()

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--strategy", choices=[s.value for s in SyncStrategy])
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.strategy)))
