"""Shared API schema building blocks."""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from soundshelf.application.services import Page
from soundshelf.domain.exceptions import ValidationException

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)

VALIDATION_ERROR = "Validation failed"
VALIDATION_MESSAGE = "Please check your input data"


# Hey future me - every schema inherits from CamelModel so the wire format is camelCase
# (playCount, isActive, birthYear) while Python code stays snake_case. populate_by_name lets
# tests and internal code build models with snake_case kwargs too.
class CamelModel(BaseModel):
    """Base model serializing to and parsing from camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(CamelModel):
    """Response carrying only a human message."""

    message: str


class Envelope(CamelModel, Generic[T]):
    """Standard success body: ``{"message": ..., "data": {...}}``."""

    message: str
    data: T


class ErrorResponse(BaseModel):
    """Error body returned by every exception handler."""

    error: str = Field(description="Short error code, e.g. 'Invalid token'")
    message: str = Field(description="Human readable explanation")
    details: list[Any] | None = Field(default=None, description="Field level errors")


class Pagination(CamelModel):
    """Paging block of list responses."""

    current_page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class SongPagination(Pagination):
    total_songs: int

    @classmethod
    def from_page(cls, page: Page[Any]) -> "SongPagination":
        return cls(
            current_page=page.page,
            total_pages=page.total_pages,
            total_songs=page.total,
            has_next_page=page.has_next,
            has_prev_page=page.has_prev,
        )


class UserPagination(Pagination):
    total_users: int

    @classmethod
    def from_page(cls, page: Page[Any]) -> "UserPagination":
        return cls(
            current_page=page.page,
            total_pages=page.total_pages,
            total_users=page.total,
            has_next_page=page.has_next,
            has_prev_page=page.has_prev,
        )


def error_details(errors: Sequence[Any]) -> list[dict[str, Any]]:
    """Reduce pydantic errors to ``{"field", "message"}`` pairs."""
    details = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
        details.append({"field": ".".join(location), "message": error.get("msg", "")})
    return details


def validate_form(model: type[ModelT], data: dict[str, Any]) -> ModelT:
    """Validate plain multipart form values against ``model``.

    Multipart bodies bypass FastAPI's own body validation, so handlers call this
    to get the same 400 "Validation failed" answer a JSON body would produce.
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationException(
            VALIDATION_MESSAGE,
            error=VALIDATION_ERROR,
            details=error_details(e.errors(include_url=False)),
        ) from e
