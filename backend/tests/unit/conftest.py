"""Unit test conftest for setting up test environment."""

import os

# Set environment defaults before importing any revtrail modules
# so the settings singleton is built from them
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AIRTABLE_BASE_URL", "https://airtable.com")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from contextlib import asynccontextmanager  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from revtrail.db.init_db import init_db  # noqa: E402


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def db_context(engine):
    """Session context factory bound to the in-memory engine."""
    factory = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    @asynccontextmanager
    async def _context():
        async with factory() as db:
            try:
                yield db
            except Exception:
                await db.rollback()
                raise

    return _context


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays and returns at once."""
    delays = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep
