"""
Shared pytest configuration for backend tests.

Uses a throwaway SQLite file (via aiosqlite) per test by default. Set
TEST_DATABASE_URL to run against PostgreSQL instead.

SAFETY: A server database URL is REFUSED unless the database name contains
the substring "test". This prevents accidental truncation / drop of the
development or production database when environment variables are
misconfigured.
"""

import os
import asyncio
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from backend.database.db import Base

os.environ.setdefault("ENV", "test")


def _resolve_test_database_url(tmp_path) -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if a server URL does not point to a database
    whose name contains "test".
    """
    url = os.getenv("TEST_DATABASE_URL", "")
    if not url:
        return f"sqlite+aiosqlite:///{tmp_path / 'golfleague_test.db'}"

    if url.startswith("sqlite"):
        return url

    # ── Safety gate: database name MUST contain "test" ──────────────────
    db_name = url.rsplit("/", 1)[-1].split("?")[0]  # strip query params
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database, e.g.:\n"
            f"    export TEST_DATABASE_URL=postgresql+asyncpg://.../{db_name}_test\n"
            f"{'=' * 70}"
        )
    return url


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine with fresh tables."""
    # NullPool avoids connection reuse across event loops
    engine = create_async_engine(
        _resolve_test_database_url(tmp_path),
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        from backend.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own sessions (recalc_queue._run_calculation) must
    # hit the same database as the test fixtures
    from backend.database import db

    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local

    # Let fire-and-forget tasks settle before tearing down
    await asyncio.sleep(0.05)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Test database session on an empty schema."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def league_factory(db_session):
    """
    Build a league with players, returning (league_id, [player_ids]).

    Players are named P1..Pn in id order.
    """
    from backend.services import data_service

    async def _make(name="Test League", player_count=4):
        league = await data_service.create_league(db_session, name)
        player_ids = []
        for i in range(1, player_count + 1):
            player = await data_service.create_player(db_session, league["id"], f"P{i}")
            player_ids.append(player["id"])
        return league["id"], player_ids

    return _make


def _card(total: int, holes: int = 18) -> list:
    """
    An 18-hole card adding up to ``total``.

    Strokes are spread as evenly as possible, front nine first.
    """
    base, extra = divmod(total, holes)
    strokes = [base + (1 if i < extra else 0) for i in range(holes)]
    return strokes + [None] * (18 - holes)


@pytest.fixture
def make_card():
    return _card
