"""Domain exceptions.

Every exception carries a short ``error`` code next to the human ``message`` - the
exception handlers turn both into the JSON error body (``{"error", "message"}``).
HTTP status mapping lives in ``soundshelf.api.exception_handlers``.
"""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    error_code: str = "Request failed"

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). The error kwarg overrides the class-level short code - the auth chain uses
    # that to say "Token expired" vs "Invalid token" while keeping the same exception type.
    def __init__(self, message: str, *args: Any, error: str | None = None) -> None:
        super().__init__(message, *args)
        self.message = message
        self.error = error or self.error_code


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    error_code = "Not found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            f"The requested {entity_type.lower()} could not be found",
            error=f"{entity_type} not found",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input or entity validation fails.

    HTTP Status: 400. ``details`` is rendered as the ``details`` array of the response.
    """

    error_code = "Validation failed"

    def __init__(
        self,
        message: str,
        *args: Any,
        error: str | None = None,
        details: list[Any] | None = None,
    ) -> None:
        super().__init__(message, *args, error=error)
        self.details = details or []


class UploadRejectedError(ValidationException):
    """An uploaded file broke a limit or the type allow-list.

    ``kind`` tells which rule failed: file_size, file_count, field_count,
    unexpected_field, file_type, missing_file or other.
    """

    error_code = "File upload failed"

    def __init__(self, message: str, kind: str = "other", error: str | None = None) -> None:
        super().__init__(message, error=error)
        self.kind = kind


class DuplicateEntityException(DomainException):
    """Raised when trying to create a duplicate entity.

    HTTP Status: 400 (kept at 400 rather than 409 for client compatibility).
    """

    error_code = "Already exists"

    def __init__(self, entity_type: str, entity_id: Any, message: str | None = None) -> None:
        super().__init__(
            message or f"A {entity_type.lower()} with this identifier already exists",
            error=f"{entity_type} already exists",
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidStateException(DomainException):
    """Raised when an operation is not allowed in the current state.

    Example: an admin deactivating or demoting their own account.
    """

    error_code = "Invalid operation"


class AuthenticationError(DomainException):
    """User is not authenticated, the token is invalid or the account is inactive.

    HTTP Status: 401
    """

    error_code = "Access denied"


class TokenExpiredError(AuthenticationError):
    """Token signature is fine but its expiry lies in the past."""

    error_code = "Token expired"

    def __init__(self, message: str = "Your session has expired. Please login again.") -> None:
        super().__init__(message)


class TokenMalformedError(AuthenticationError):
    """Token signature or structure is invalid."""

    error_code = "Invalid token"

    def __init__(self, message: str = "The provided token is invalid.") -> None:
        super().__init__(message)


class AuthorizationError(DomainException):
    """User is authenticated but not allowed to do this.

    HTTP Status: 403
    """

    error_code = "Access denied"


class RateLimitExceededError(DomainException):
    """Client exhausted its request budget.

    HTTP Status: 429
    """

    error_code = "Too many requests"

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class InternalError(DomainException):
    """Unexpected failure wrapped so the client gets a clean 500 body.

    HTTP Status: 500
    """

    error_code = "Internal server error"


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "DomainException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "InternalError",
    "InvalidStateException",
    "RateLimitExceededError",
    "TokenExpiredError",
    "TokenMalformedError",
    "UploadRejectedError",
    "ValidationException",
]
