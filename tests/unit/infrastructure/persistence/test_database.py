"""Tests for engine options and the session scope."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy import text

from soundshelf.config import DatabaseSettings, Settings
from soundshelf.infrastructure.persistence import Database
from soundshelf.infrastructure.persistence.database import SQLITE_LOCK_TIMEOUT, engine_options


def test_sqlite_gets_lock_timeout_and_no_pool_sizing() -> None:
    options = engine_options(DatabaseSettings(url="sqlite+aiosqlite:///./x.db"))

    assert options["connect_args"] == {"check_same_thread": False, "timeout": SQLITE_LOCK_TIMEOUT}
    assert "pool_size" not in options


def test_server_database_gets_pool_limits() -> None:
    options = engine_options(
        DatabaseSettings(url="postgresql+asyncpg://u:p@db/soundshelf", pool_size=7)
    )

    assert options["pool_size"] == 7
    assert "connect_args" not in options


@pytest.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    url = f"sqlite+aiosqlite:///{tmp_path / 't.db'}"
    db = Database(Settings(database=DatabaseSettings(url=url)))
    await db.create_tables()
    yield db
    await db.close()


async def test_foreign_keys_are_enforced(database: Database) -> None:
    async with database.session_scope() as session:
        enabled = (await session.execute(text("PRAGMA foreign_keys"))).scalar()

    assert enabled == 1


async def test_session_scope_rolls_back_on_error(database: Database) -> None:
    async with database.session_scope() as session:
        await session.execute(text("CREATE TABLE scratch (id INTEGER PRIMARY KEY)"))

    with pytest.raises(RuntimeError):
        async with database.session_scope() as session:
            await session.execute(text("INSERT INTO scratch (id) VALUES (1)"))
            raise RuntimeError("boom")

    async with database.session_scope() as session:
        count = (await session.execute(text("SELECT COUNT(*) FROM scratch"))).scalar()
    assert count == 0
