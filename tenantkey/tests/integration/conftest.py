from __future__ import annotations

from typing import AsyncIterator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.core.config import get_settings
from tenantkey.persistence.db import SessionLocal, create_all, drop_all, engine


@pytest.fixture(autouse=True)
async def fresh_schema() -> AsyncIterator[None]:
    # Rebuild tables per test and dispose the engine to prevent cross-loop connection reuse.
    get_settings.cache_clear()
    await create_all()
    yield
    await drop_all()
    await engine.dispose()


@pytest.fixture
async def session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as db_session:
        yield db_session
