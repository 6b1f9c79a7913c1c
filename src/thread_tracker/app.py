"""Thread tracker application factory."""

import logging
from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI, Request, Response

from forum_sync.db.engine import asyncpg_dsn, dispose_engine
from forum_sync.reconciler import SyncStrategy
from forum_sync.scheduler import ThreadSyncScheduler
from thread_tracker.config import VERSION, Settings, get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
# Per-request httpx lines and APScheduler tick logs are noise at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def build_scheduler(pool: asyncpg.Pool, settings: Settings) -> ThreadSyncScheduler:
    return ThreadSyncScheduler(
        db_pool=pool,
        discord_token=settings.discord_bot_token,
        guild_id=settings.discord_guild_id or None,
        channel_ids=settings.channel_id_list,
        strategy=SyncStrategy(settings.sync_strategy),
        cron=settings.sync_cron,
        timeout=settings.sync_timeout_seconds or None,
        resolve_owners=settings.sync_resolve_owners,
        max_errors=settings.sync_max_errors or None,
    )


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting thread tracker (env=%s)", settings.app_env)

        try:
            db_pool = await asyncpg.create_pool(
                asyncpg_dsn(settings.database_url), min_size=1, max_size=5
            )
            app.state.db_pool = db_pool
            logger.info("asyncpg pool created")
        except Exception as exc:
            logger.warning("asyncpg pool not created (DB may not be available): %s", exc)
            db_pool = None
            app.state.db_pool = None

        scheduler = None
        if db_pool and settings.sync_configured:
            scheduler = build_scheduler(db_pool, settings)
            await scheduler.start()
        else:
            logger.info("Thread sync scheduler skipped (missing token, guild/channel ids, or DB)")
        app.state.thread_sync_scheduler = scheduler

        yield

        if scheduler is not None:
            await scheduler.stop()

        if db_pool is not None:
            await db_pool.close()

        await dispose_engine()
        logger.info("Thread tracker shutdown complete")

    app = FastAPI(
        title="Discord Forum Thread Tracker",
        version=VERSION,
        lifespan=lifespan,
    )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc):
        return Response(
            content='{"ok":false,"error":"Not found"}',
            status_code=404,
            media_type="application/json",
        )

    from thread_tracker.api.health import router as health_router
    from thread_tracker.api.thread_routes import router as thread_router

    app.include_router(health_router, prefix="/api")
    app.include_router(thread_router)

    return app


def serve():
    """Console entry point: run the app under uvicorn with configured host/port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "thread_tracker.app:create_app",
        host=settings.app_host,
        port=settings.app_port,
        factory=True,
        reload=settings.app_env == "development",
    )
