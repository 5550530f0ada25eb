from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tenantkey.core.config import Settings, get_settings


def _pool_options(settings: Settings) -> dict[str, Any]:
    # SQLite drivers manage their own connections; only server databases get a sized pool.
    if settings.database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": max(1, settings.db_pool_size),
        "max_overflow": max(0, settings.db_max_overflow),
    }


engine = create_async_engine(get_settings().database_url, **_pool_options(get_settings()))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session


async def create_all() -> None:
    from tenantkey.domain.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all() -> None:
    from tenantkey.domain.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
