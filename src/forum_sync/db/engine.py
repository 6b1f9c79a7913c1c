"""Async database engine and session factory."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


_engine = None
_session_factory = None


def get_engine(database_url: str):
    global _engine
    if _engine is None:
        _engine = create_async_engine(database_url, echo=False, pool_pre_ping=True)
    return _engine


def get_session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(database_url), expire_on_commit=False)
    return _session_factory


def asyncpg_dsn(database_url: str) -> str:
    """Strip the SQLAlchemy dialect prefix so asyncpg accepts the URL."""
    return database_url.replace("postgresql+asyncpg://", "postgresql://")


async def dispose_engine():
    """Close pooled connections and forget the cached engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None

