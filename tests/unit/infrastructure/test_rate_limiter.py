"""Unit tests for the token bucket rate limiter."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from soundshelf.domain.exceptions import RateLimitExceededError
from soundshelf.infrastructure.rate_limiter import (
    RATE_LIMIT_MESSAGE,
    RateLimiter,
    RateLimiterConfig,
    RateLimitMiddleware,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    # 3 requests per 30 seconds -> one token back every 10 seconds
    return RateLimiter(RateLimiterConfig(max_requests=3, window_seconds=30), clock=clock)


def test_budget_then_429(limiter: RateLimiter) -> None:
    assert limiter.check("1.2.3.4") == 2
    assert limiter.check("1.2.3.4") == 1
    assert limiter.check("1.2.3.4") == 0

    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.check("1.2.3.4")

    assert exc_info.value.message == RATE_LIMIT_MESSAGE
    assert exc_info.value.retry_after == pytest.approx(10.0)


def test_clients_have_separate_buckets(limiter: RateLimiter) -> None:
    for _ in range(3):
        limiter.check("a")

    assert limiter.check("b") == 2


def test_tokens_refill_gradually(limiter: RateLimiter, clock: FakeClock) -> None:
    for _ in range(3):
        limiter.check("a")

    clock.advance(10)
    limiter.check("a")
    with pytest.raises(RateLimitExceededError):
        limiter.check("a")

    clock.advance(1000)
    assert limiter.available_tokens("a") == 3


def test_unknown_client_has_full_budget(limiter: RateLimiter) -> None:
    assert limiter.available_tokens("never-seen") == 3


def test_full_buckets_are_pruned(clock: FakeClock) -> None:
    limiter = RateLimiter(
        RateLimiterConfig(max_requests=3, window_seconds=30), clock=clock, prune_every=2
    )
    limiter.check("old")
    clock.advance(60)

    limiter.check("new")

    assert "old" not in limiter._buckets


def test_middleware_answers_429_with_retry_after(clock: FakeClock) -> None:
    limiter = RateLimiter(RateLimiterConfig(max_requests=2, window_seconds=60), clock=clock)
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limiter=limiter)

    @app.get("/ping")
    async def ping() -> dict[str, str]:
        return {"status": "ok"}

    client = TestClient(app)

    first = client.get("/ping")
    assert first.status_code == 200
    assert first.headers["X-RateLimit-Limit"] == "2"
    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert client.get("/ping").status_code == 200

    blocked = client.get("/ping")
    assert blocked.status_code == 429
    assert blocked.json() == {"error": "Too many requests", "message": RATE_LIMIT_MESSAGE}
    assert int(blocked.headers["Retry-After"]) >= 30
