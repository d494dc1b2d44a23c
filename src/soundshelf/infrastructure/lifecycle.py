"""Startup and shutdown of the API process (FastAPI lifespan)."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from soundshelf.config import Settings, get_settings
from soundshelf.domain.exceptions import InternalError
from soundshelf.infrastructure.observability import configure_logging
from soundshelf.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


# Hey future me, SQLite writes its journal/WAL files NEXT TO the .db file, so the directory has
# to exist and be writable before the first connect. The .db file itself is left to SQLite.
# Misconfigured paths fail the startup here with a readable message instead of an opaque
# "unable to open database file" on the first request.
def prepare_sqlite_directory(db_path: Path) -> None:
    """Create the database directory and prove it is writable.

    Raises:
        InternalError: Directory can't be created or written
    """
    directory = db_path.parent
    probe = directory / f".{db_path.stem}_write_probe"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        probe.write_bytes(b"")
        probe.unlink()
    except OSError as exc:
        raise InternalError(
            f"SQLite database directory '{directory}' is not writable: {exc}. "
            "Point DATABASE_URL somewhere writable or fix the directory permissions.",
            error="Startup failed",
        ) from exc


def check_signing_secret(settings: Settings) -> bool:
    """Log when tokens would be signed with the built-in key; True if they would.

    Development gets a warning, every other environment an error line.
    """
    if not settings.auth.uses_default_secret:
        return False
    level = logging.WARNING if settings.is_development else logging.ERROR
    logger.log(
        level,
        "JWT_SECRET is not set, tokens are signed with the built-in default key. "
        "Set JWT_SECRET before exposing this server.",
    )
    return True


def _settings_for(app: FastAPI) -> Settings:
    settings = getattr(app.state, "settings", None)
    return settings if settings is not None else get_settings()


async def _open_database(settings: Settings) -> Database:
    db_path = settings.sqlite_db_path()
    if db_path is not None:
        prepare_sqlite_directory(db_path)

    db = Database(settings)
    if settings.database.auto_create_tables:
        await db.create_tables()
    logger.info(
        "Database ready", extra={"url": settings.database.url, "sqlite": db.is_sqlite}
    )
    return db


async def _close_database(app: FastAPI) -> None:
    db: Database | None = getattr(app.state, "db", None)
    if db is None:
        return
    try:
        await db.close()
    except Exception as e:
        # Shutdown goes on; a failed dispose only leaves connections for the OS to reap
        logger.exception("Closing the database failed: %s", e)


# Listen future me, everything before `yield` runs at STARTUP, everything after at SHUTDOWN.
# The Database lives on app.state.db so the request dependencies can open sessions from it.
# If startup fails the app does not start, and the finally block still closes what was opened.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging, create the upload tree, open the database; close it again on exit."""
    settings = _settings_for(app)
    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    check_signing_secret(settings)

    try:
        settings.ensure_directories()
        logger.info(f"Uploads stored under {settings.storage.upload_path}")
        app.state.db = await _open_database(settings)
        yield
    except Exception as e:
        logger.exception("Startup failed: %s", e)
        raise
    finally:
        await _close_database(app)
        logger.info("Shutdown complete")
