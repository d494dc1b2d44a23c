"""Async engine and session scopes for the user and track tables."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from soundshelf.config import DatabaseSettings, Settings

logger = logging.getLogger(__name__)

# Seconds a SQLite writer waits for a competing write lock before giving up
SQLITE_LOCK_TIMEOUT = 30

SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA journal_mode=WAL",
)


def engine_options(database: DatabaseSettings) -> dict[str, Any]:
    """Keyword arguments for create_async_engine depending on the backend in the URL.

    SQLite gets a lock timeout and no pool sizing (aiosqlite has no real pool); server
    databases get the configured pool limits.
    """
    options: dict[str, Any] = {
        "echo": database.echo,
        "pool_pre_ping": database.pool_pre_ping,
    }
    if make_url(database.url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False, "timeout": SQLITE_LOCK_TIMEOUT}
    else:
        options.update(
            pool_size=database.pool_size,
            max_overflow=database.max_overflow,
            pool_timeout=database.pool_timeout,
            pool_recycle=database.pool_recycle,
        )
    return options


class Database:
    """Owns the engine; hands out one transactional session per unit of work."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.is_sqlite = make_url(settings.database.url).get_backend_name() == "sqlite"
        self.engine: AsyncEngine = create_async_engine(
            settings.database.url, **engine_options(settings.database)
        )
        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _apply_sqlite_pragmas)
        self._sessions = async_sessionmaker(self.engine, expire_on_commit=False)

    # Hey future me, ONE session per request, committed when the block exits cleanly and rolled
    # back on ANY exception (re-raised afterwards). Repositories flush() inside the block so
    # constraint violations surface while the route handler is still running.
    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error."""
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create the users and tracks tables when they are missing."""
        from soundshelf.infrastructure.persistence.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Database schema ensured", extra={"tables": sorted(Base.metadata.tables)})

    async def drop_tables(self) -> None:
        """Drop every table. Only tests call this."""
        from soundshelf.infrastructure.persistence.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def close(self) -> None:
        await self.engine.dispose()


def _apply_sqlite_pragmas(dbapi_conn: Any, _connection_record: Any) -> None:
    cursor = dbapi_conn.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()
