import os

# must be in place before any oden module reads settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-0123456789abcdef0123456789abcdef"
os.environ["LOCK_BACKEND"] = "local"
os.environ["ENV"] = "test"

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from oden.core.clock import FixedClock
from oden.core.db import make_sessionmaker
from oden.core.init_db import ensure_schema
from oden.core.locks import KeyedLock

T0 = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def locks():
    return KeyedLock(backend="local", timeout=5)


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await ensure_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
