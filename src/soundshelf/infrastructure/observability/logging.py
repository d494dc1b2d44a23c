"""Root logging setup: JSON or compact text lines, tagged with the request's correlation ID."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from types import TracebackType
from typing import Any

from pythonjsonlogger.json import JsonFormatter

# Hey future me, every request gets a correlation id (RequestLoggingMiddleware sets it) and
# every log line written while handling that request carries it. ContextVar, not a global:
# each asyncio task sees its own value. Default "" covers startup logs and scripts.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

_PACKAGE_MARKER = "soundshelf"

# Third-party loggers held at WARNING whatever the configured level is
QUIET_LOGGERS = (
    "asyncio",
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
    "aiosqlite",
    "sqlalchemy.engine",
    # RequestLoggingMiddleware writes the access line
    "uvicorn.access",
)

TEXT_FORMAT = "%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"


def get_correlation_id() -> str:
    """Correlation ID of the current context, "" outside a request."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind ``correlation_id`` (or a fresh UUID when empty) to the current context."""
    value = correlation_id or str(uuid.uuid4())
    correlation_id_var.set(value)
    return value


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def _cause_chain(exc: BaseException) -> list[BaseException]:
    """Exceptions linked through __cause__ / __context__, root cause first."""
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain[::-1]


def _own_frames(tb: TracebackType | None) -> list[str]:
    """Source lines of the frames inside our package, skipping library code."""
    lines: list[str] = []
    for frame in traceback.extract_tb(tb):
        if "/site-packages/" in frame.filename or _PACKAGE_MARKER not in frame.filename:
            continue
        location = f'File "{Path(frame.filename).name}", line {frame.lineno}, in {frame.name}'
        lines.append(f"    {location}")
        if frame.line:
            lines.append(f"      {frame.line.strip()}")
    return lines


class CompactExceptionFormatter(logging.Formatter):
    """Text formatter printing exception chains in a few lines.

    Every exception of the chain gets a ``╰─►`` header, root cause first, followed only by
    frames from our own package:

        ERROR   │ soundshelf.api.dependencies:88 │ Authentication failed
        ╰─► OperationalError: database is locked
            File "repositories.py", line 231, in get_by_id
              model = await self.session.get(UserModel, str(user_id))
    """

    def formatException(self, ei: Any) -> str:
        exc = ei[1]
        if exc is None:
            return ""
        lines: list[str] = []
        for link in _cause_chain(exc):
            lines.append(f"╰─► {type(link).__name__}: {link}")
            lines.extend(_own_frames(link.__traceback__))
        return "\n".join(lines)


class CustomJsonFormatter(JsonFormatter):
    """One JSON object per record: level, logger, source location, correlation id, extras."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            timestamp=self.formatTime(record, self.datefmt),
            level=record.levelname,
            logger=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        )
        if correlation_id := getattr(record, "correlation_id", ""):
            log_record["correlation_id"] = correlation_id


def build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return CustomJsonFormatter(JSON_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    return CompactExceptionFormatter(fmt=TEXT_FORMAT, datefmt="%H:%M:%S")


# Listen future me, call this ONCE at startup (the lifespan and scripts/create_admin.py do).
# It replaces the root logger's handlers, so calling it again (tests, reloads) doesn't
# duplicate output.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "soundshelf",
) -> None:
    """Point the root logger at stdout.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL); unknown names mean INFO
        json_format: JSON lines for log shipping instead of the compact text format
        app_name: Name recorded in the startup line
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(build_formatter(json_format))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={"app_name": app_name, "log_level": log_level, "json_format": json_format},
    )
