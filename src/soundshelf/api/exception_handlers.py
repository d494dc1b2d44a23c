"""Custom exception handlers for FastAPI application.

This module registers global exception handlers that convert domain exceptions
and validation errors into JSON error bodies: ``{"error", "message", "details"?}``.
"""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from soundshelf.api.schemas.common import VALIDATION_ERROR, VALIDATION_MESSAGE, error_details
from soundshelf.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainException,
    DuplicateEntityException,
    EntityNotFoundException,
    InternalError,
    InvalidStateException,
    RateLimitExceededError,
    ValidationException,
)

logger = logging.getLogger(__name__)

# Most specific first - the first isinstance() match wins
_STATUS_BY_EXCEPTION: tuple[tuple[type[DomainException], int], ...] = (
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (DuplicateEntityException, status.HTTP_400_BAD_REQUEST),
    (InvalidStateException, status.HTTP_400_BAD_REQUEST),
    (EntityNotFoundException, status.HTTP_404_NOT_FOUND),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (RateLimitExceededError, status.HTTP_429_TOO_MANY_REQUESTS),
    (InternalError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: DomainException) -> int:
    """HTTP status code for a domain exception (500 for unmapped ones)."""
    for exc_type, status_code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(error: str, message: str, details: list[Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": error, "message": message}
    if details:
        body["details"] = details
    return body


def _is_development(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings is not None and settings.is_development)


# Hey future me, this registers GLOBAL exception handlers for the entire app! Domain exceptions
# raised anywhere (routes, dependencies, the auth chain) end up here and leave as
# {"error": exc.error, "message": exc.message}. One handler for the whole DomainException tree;
# status_for() picks the code. Register during app setup, BEFORE any request arrives.
def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers for domain, validation and HTTP errors."""

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        """Handle every domain exception with its mapped status code."""
        status_code = status_for(exc)
        log = logger.error if status_code >= 500 else logger.info
        log(
            "%s at %s: %s",
            type(exc).__name__,
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.error, "status_code": status_code},
        )
        details = exc.details if isinstance(exc, ValidationException) else None
        headers = None
        if isinstance(exc, RateLimitExceededError) and exc.retry_after is not None:
            headers = {"Retry-After": str(max(1, round(exc.retry_after)))}
        return JSONResponse(
            status_code=status_code,
            content=error_body(exc.error, exc.message, details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors with 400 and a field/message list.

        Hey future me - exc.errors() can carry the raw body as bytes in 'input'. We only keep
        the location and message, so nothing non-serializable reaches the response.
        """
        details = error_details(list(exc.errors()))
        logger.info(
            "Request validation error at %s: %s",
            request.url.path,
            details,
            extra={"path": request.url.path, "errors": details},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(VALIDATION_ERROR, VALIDATION_MESSAGE, details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle framework HTTP errors (unknown route, wrong method) as JSON."""
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            content = error_body(
                "Route not found",
                f"The route {request.url.path} does not exist on this server.",
            )
        else:
            content = error_body(str(exc.detail), str(exc.detail))
        logger.info(
            "HTTP error %d at %s: %s",
            exc.status_code,
            request.url.path,
            exc.detail,
            extra={"path": request.url.path, "status_code": exc.status_code},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    # Listen up, the catch-all. Clients get a generic body; the stack goes to the log always and
    # into the response ONLY in development, never in production.
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error at %s: %s",
            request.url.path,
            exc,
            extra={"path": request.url.path},
        )
        content = error_body("Internal server error", "Something went wrong!")
        if _is_development(request):
            content["message"] = str(exc) or content["message"]
            content["stack"] = traceback.format_exception(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
