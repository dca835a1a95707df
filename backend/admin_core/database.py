from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .config import Settings
from .models import Base


def create_engine_for(settings: Settings) -> AsyncEngine:
    options: dict[str, Any] = {"echo": settings.debug, "future": True}
    # Pool sizing applies to postgres only.
    if settings.database_url.startswith("postgresql"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=settings.db_pool_pre_ping,
        )
    elif settings.database_url.endswith(":memory:"):
        # One shared connection, otherwise every session sees an empty database.
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    return create_async_engine(settings.database_url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: repositories convert rows to domain dataclasses
    # before the session closes and never reuse ORM objects after commit.
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

