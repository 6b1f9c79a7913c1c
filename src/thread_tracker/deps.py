"""FastAPI dependencies shared across routes."""

from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from forum_sync.db.engine import get_session_factory
from forum_sync.scheduler import ThreadSyncScheduler
from thread_tracker.config import get_settings


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields a read-only database session per request."""
    factory = get_session_factory(get_settings().database_url)
    async with factory() as session:
        yield session


async def get_sync_scheduler(request: Request) -> ThreadSyncScheduler:
    """Retrieve the ThreadSyncScheduler stored on app state."""
    scheduler = getattr(request.app.state, "thread_sync_scheduler", None)
    if scheduler is None:
        raise HTTPException(503, "Thread sync not configured")
    return scheduler


async def verify_sync_key(x_api_key: str = Header(None)):
    """Shared-secret check for the sync endpoints; open when SYNC_API_KEY is unset."""
    api_key = get_settings().sync_api_key
    if api_key and x_api_key != api_key:
        raise HTTPException(401, "Invalid API key")
