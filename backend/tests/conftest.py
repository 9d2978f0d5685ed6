"""Shared fixtures: temp-dir SQLite databases and the wired service graph."""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from signalpush import models  # noqa: F401
from signalpush.database import Base
from signalpush.services.store import BackendStore


@pytest.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite database in a temp dir."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return BackendStore(session_factory)
