"""
Shared fixtures for the Lady Luck test suite.

Every test gets its own SQLite file (aiosqlite) with the schema created by
``ensure_schema``, so service and API tests run against real SQLAlchemy
sessions without a PostgreSQL server.
"""
import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-" + "x" * 40)
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")

import random

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ladyluck.core.init_db import ensure_schema
from ladyluck.core.rate_limit import rate_limiter
from ladyluck.models.wallet import Wallet


class AlwaysZero(random.Random):
    """RNG that always draws 0.0: first catalog entry, secondary drop always hits."""

    def random(self):
        return 0.0


class AlwaysHigh(random.Random):
    """RNG that draws just below 1.0: last catalog entry, secondary drop never hits."""

    def random(self):
        return 0.999999


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ladyluck.db'}")
    await ensure_schema(bind=eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def add_wallet(session_maker):
    async def _add(user_id: str, echo_points: int = 0, gold: int = 0):
        async with session_maker() as s:
            s.add(Wallet(user_id=user_id, echo_points=echo_points, gold=gold))
            await s.commit()

    return _add


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def rng_low():
    return AlwaysZero()


@pytest.fixture
def rng_high():
    return AlwaysHigh()
