"""Health check endpoint."""

from fastapi import APIRouter, Request
from sqlalchemy import text

from forum_sync.db.engine import get_session_factory
from thread_tracker.config import VERSION, get_settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    settings = get_settings()
    db_status = "disconnected"
    try:
        factory = get_session_factory(settings.database_url)
        async with factory() as session:
            await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as exc:
        db_status = f"error: {exc}"

    scheduler = getattr(request.app.state, "thread_sync_scheduler", None)
    if scheduler is None:
        scheduler_status = "disabled"
    elif scheduler.is_running:
        scheduler_status = "syncing"
    else:
        scheduler_status = "idle"

    return {
        "ok": True,
        "data": {
            "db": db_status,
            "scheduler": scheduler_status,
            "version": VERSION,
        },
    }
