"""Per-request access log with correlation IDs."""

import logging
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from soundshelf.infrastructure.observability.logging import set_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _request_fields(request: Request) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
    }
    # get_current_user leaves the resolved account here
    user = getattr(request.state, "user", None)
    if user is not None:
        fields["user_id"] = str(user.id)
    return fields


# Hey future me, this runs around EVERY request: it takes the caller's X-Correlation-ID (or makes
# one), so all logs of the request share it, and echoes it back in the response header. Static
# upload files are served without a log line - a page full of cover images would drown the log.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Write one access line per request and tag its logs with a correlation ID."""

    def __init__(self, app: ASGIApp, quiet_prefixes: tuple[str, ...] = ("/uploads/",)) -> None:
        super().__init__(app)
        self.quiet_prefixes = quiet_prefixes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = correlation_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"Request failed: {request.method} {request.url.path}",
                extra={
                    **_request_fields(request),
                    "duration_ms": _elapsed_ms(started),
                    "error_type": type(e).__name__,
                },
            )
            raise

        if not request.url.path.startswith(self.quiet_prefixes):
            self._log_completed(request, response, _elapsed_ms(started))
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    @staticmethod
    def _log_completed(request: Request, response: Response, duration_ms: int) -> None:
        marker = "✓" if response.status_code < 400 else "✗"
        logger.info(
            f"{marker} {request.method} {request.url.path} → {response.status_code} "
            f"({duration_ms}ms)",
            extra={
                **_request_fields(request),
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
