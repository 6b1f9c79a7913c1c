"""
FastAPI routes for the thread snapshot and its sync.

Mounted at /api/threads/ on the main FastAPI app.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from forum_sync.db.models import DiscordChannelTag, DiscordThread
from forum_sync.scheduler import ThreadSyncScheduler
from thread_tracker.deps import get_db, get_sync_scheduler, verify_sync_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/threads", tags=["Threads"])

# Strong refs to fire-and-forget sync tasks until they finish
_background_syncs: set[asyncio.Task] = set()


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------

@router.api_route(
    "/sync",
    methods=["GET", "POST"],
    dependencies=[Depends(verify_sync_key)],
)
async def run_thread_sync(
    request: Request,
    scheduler: ThreadSyncScheduler = Depends(get_sync_scheduler),
):
    """Run a sync now and return its result."""
    logger.info("Received on-demand sync request: %s %s", request.method, request.url.path)
    try:
        result = await scheduler.run_sync("http")
    except Exception as exc:
        logger.error("On-demand sync failed: %s", exc, exc_info=True)
        return JSONResponse({"error": str(exc)}, status_code=500)

    logger.info("On-demand sync completed: %d threads processed", result.threads_processed)
    return result.to_dict()


@router.post("/sync/trigger", dependencies=[Depends(verify_sync_key)])
async def trigger_thread_sync(
    scheduler: ThreadSyncScheduler = Depends(get_sync_scheduler),
):
    """Start a sync in the background and return immediately."""

    async def _run():
        try:
            await scheduler.run_sync("trigger")
        except Exception as e:
            logger.error("Background thread sync failed: %s", e, exc_info=True)

    task = asyncio.create_task(_run())
    _background_syncs.add(task)
    task.add_done_callback(_background_syncs.discard)
    return {"ok": True, "status": "sync_triggered", "already_running": scheduler.is_running}


# ---------------------------------------------------------------------------
# Snapshot reads
# ---------------------------------------------------------------------------

def _thread_dict(t: DiscordThread) -> dict:
    return {
        "thread_id": t.thread_id,
        "thread_name": t.thread_name,
        "topic": t.topic,
        "owner_id": t.owner_id,
        "owner_nickname": t.owner_nickname,
        "parent_id": t.parent_id,
        "member_count": t.member_count,
        "message_count": t.message_count,
        "available_tags": t.available_tags,
        "applied_tags": t.applied_tags,
        "thread_metadata": t.thread_metadata,
        "created_timestamp": t.created_timestamp,
        "last_updated": t.last_updated,
    }


@router.get("")
async def list_threads(
    parent_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    stmt = select(DiscordThread).order_by(DiscordThread.last_updated.desc(), DiscordThread.thread_id)
    if parent_id:
        stmt = stmt.where(DiscordThread.parent_id == parent_id)
    rows = (await db.execute(stmt)).scalars().all()
    return {"ok": True, "data": [_thread_dict(t) for t in rows]}


@router.get("/tags")
async def list_tags(
    parent_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    stmt = select(DiscordChannelTag).order_by(DiscordChannelTag.parent_id, DiscordChannelTag.tag_name)
    if parent_id:
        stmt = stmt.where(DiscordChannelTag.parent_id == parent_id)
    rows = (await db.execute(stmt)).scalars().all()
    return {
        "ok": True,
        "data": [
            {
                "parent_id": t.parent_id,
                "tag_id": t.tag_id,
                "tag_name": t.tag_name,
                "tag_emoji": t.tag_emoji,
            }
            for t in rows
        ],
    }
