"""Async database engine and session factory for the content store."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from content_rag.core.config import Settings, get_settings
from content_rag.db.models import Base


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    """Create the async engine for the content store."""
    settings = settings or get_settings()
    return create_async_engine(
        settings.get_database_url,
        echo=settings.debug,
        pool_pre_ping=True,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create content tables. Development and tests only; production tables are owned upstream."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
