from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from notifysend.core.config import get_settings
from notifysend.domain.models import Base
from notifysend.services.telemetry import reset_telemetry


@pytest.fixture(autouse=True)
def reset_settings_and_counters() -> None:
    # Settings are cached per process; tests that patch env must not leak into others.
    get_settings.cache_clear()
    reset_telemetry()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def session_factory():
    # One shared in-memory connection so every session sees the same tables.
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()
