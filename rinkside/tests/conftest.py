"""
Shared pytest configuration for rinkside tests.

Service tests run against a fresh SQLite database file per test (through
aiosqlite), so every test starts from empty tables.

SAFETY: TEST_DATABASE_URL may point the suite at another database, but only
if its name contains "test". Anything else is refused before a single table is
created or dropped.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("ENABLE_EMAIL", "false")

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402
from rinkside.database.db import Base, build_engine  # noqa: E402


def _resolve_test_database_url(tmp_path) -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if an explicit URL does not point to a database
    whose name contains "test".
    """
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        return f"sqlite+aiosqlite:///{tmp_path / 'rinkside_test.db'}"

    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"SAFETY: Refusing to run tests against database '{db_name}'. "
            f"The database name must contain 'test'."
        )
    return url


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine with all tables."""
    url = _resolve_test_database_url(tmp_path)
    # NullPool: every session gets its own connection, like concurrent requests
    engine = build_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        from rinkside.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_engine):
    """Session factory bound to the test engine, for tests needing several sessions."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker):
    """A test database session."""
    async with session_maker() as session:
        yield session
