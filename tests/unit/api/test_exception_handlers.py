"""Unit tests for the global exception handlers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from soundshelf.api.exception_handlers import register_exception_handlers, status_for
from soundshelf.config import Settings
from soundshelf.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DuplicateEntityException,
    EntityNotFoundException,
    InternalError,
    InvalidStateException,
    RateLimitExceededError,
    TokenExpiredError,
    UploadRejectedError,
    ValidationException,
)


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ValidationException("bad"), 400),
        (UploadRejectedError("bad file", kind="file_type"), 400),
        (DuplicateEntityException("User", "x"), 400),
        (InvalidStateException("nope"), 400),
        (EntityNotFoundException("Song", "x"), 404),
        (AuthenticationError("who?"), 401),
        (TokenExpiredError(), 401),
        (AuthorizationError("no"), 403),
        (RateLimitExceededError("slow down"), 429),
        (InternalError("boom"), 500),
    ],
)
def test_status_for(exc: Exception, expected: int) -> None:
    assert status_for(exc) == expected


class Payload(BaseModel):
    rating: int = Field(ge=1, le=5)


def build_app(environment: str) -> FastAPI:
    app = FastAPI()
    app.state.settings = Settings(environment=environment)
    register_exception_handlers(app)

    @app.get("/missing")
    async def missing() -> None:
        raise EntityNotFoundException("Song", "abc")

    @app.get("/limited")
    async def limited() -> None:
        raise RateLimitExceededError("Too many", retry_after=12.4)

    @app.post("/rate")
    async def rate(payload: Payload) -> dict[str, int]:
        return {"rating": payload.rating}

    @app.get("/crash")
    async def crash() -> None:
        raise RuntimeError("kaboom")

    return app


@pytest.fixture
def client() -> TestClient:
    return TestClient(build_app("production"), raise_server_exceptions=False)


def test_domain_exception_body(client: TestClient) -> None:
    response = client.get("/missing")

    assert response.status_code == 404
    assert response.json() == {
        "error": "Song not found",
        "message": "The requested song could not be found",
    }


def test_rate_limit_sets_retry_after(client: TestClient) -> None:
    response = client.get("/limited")

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "12"


def test_request_validation_is_400_with_details(client: TestClient) -> None:
    response = client.post("/rate", json={"rating": 9})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert body["message"] == "Please check your input data"
    assert body["details"][0]["field"] == "rating"


def test_unknown_route(client: TestClient) -> None:
    response = client.get("/nowhere")

    assert response.status_code == 404
    assert response.json() == {
        "error": "Route not found",
        "message": "The route /nowhere does not exist on this server.",
    }


def test_unhandled_error_hides_details_in_production(client: TestClient) -> None:
    response = client.get("/crash")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "message": "Something went wrong!"}


def test_unhandled_error_shows_stack_in_development() -> None:
    client = TestClient(build_app("development"), raise_server_exceptions=False)

    body = client.get("/crash").json()

    assert body["message"] == "kaboom"
    assert any("RuntimeError" in line for line in body["stack"])
