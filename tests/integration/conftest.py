"""PostgreSQL fixtures for the integration suite.

Runs against ``CODEBRO_DATABASE_URL`` after ``alembic upgrade head``. Every
test starts from empty tables. The suite is skipped when the database cannot
be reached.
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from codebro.config import get_settings
from codebro.database import close_db, get_session_factory, init_db

PROJECT_ROOT = Path(__file__).resolve().parents[2]


async def _require_database(url: str) -> None:
    engine = create_async_engine(url, connect_args={"timeout": 5})
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (OSError, SQLAlchemyError) as exc:
        pytest.skip(f"PostgreSQL not reachable at {engine.url.render_as_string(hide_password=True)}: {exc}")
    finally:
        await engine.dispose()


def _ensure_migrations() -> None:
    """Apply Alembic migrations. Runs synchronously."""
    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        cwd=PROJECT_ROOT,
        check=True,
        capture_output=True,
    )


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Migrated, emptied database; yields the app's session factory."""
    settings = get_settings()
    await _require_database(settings.database_url)
    _ensure_migrations()

    await init_db(settings.database_url)
    factory = get_session_factory()
    async with factory() as session:
        await session.execute(text("TRUNCATE TABLE users, lessons, challenges, achievements CASCADE"))
        await session.commit()

    yield factory

    await close_db()


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for setup and assertions."""
    async with session_factory() as session:
        yield session

