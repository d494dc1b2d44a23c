"""
Per-client request rate limiting.

Hey future me - this is a Token Bucket per client IP, checked once per incoming request:
- every client gets a bucket holding max_requests tokens
- tokens refill continuously at max_requests / window_seconds per second
- each request takes one token; an empty bucket means 429 until enough time has passed

Default budget is 100 requests per 15 minutes. Unlike a fixed window, a client that burns its
budget gets single requests back gradually instead of all 100 at the window edge.

USAGE:
    limiter = RateLimiter(RateLimiterConfig(max_requests=100, window_seconds=900))
    limiter.check("203.0.113.7")  # raises RateLimitExceededError when exhausted
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from soundshelf.domain.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


@dataclass
class RateLimiterConfig:
    """Request budget for one client."""

    max_requests: int = 100
    window_seconds: float = 900.0

    @property
    def refill_rate(self) -> float:
        """Tokens regained per second."""
        return self.max_requests / self.window_seconds


@dataclass
class TokenBucket:
    """One client's bucket."""

    tokens: float
    last_refill: float


# Listen up, the limiter is NOT locked: check() never awaits, so on one event loop two requests
# can't interleave inside it. Buckets that have refilled completely carry no state worth keeping
# and are dropped by _prune() so the dict doesn't grow with every IP that ever visited.
@dataclass
class RateLimiter:
    """Token bucket rate limiter keyed by client identifier."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    clock: Callable[[], float] = time.monotonic
    prune_every: int = 1000

    _buckets: dict[str, TokenBucket] = field(default_factory=dict, init=False)
    _checks: int = field(default=0, init=False)

    def _refill(self, bucket: TokenBucket, now: float) -> None:
        elapsed = max(0.0, now - bucket.last_refill)
        bucket.tokens = min(
            float(self.config.max_requests), bucket.tokens + elapsed * self.config.refill_rate
        )
        bucket.last_refill = now

    def check(self, key: str) -> float:
        """Take one token for ``key``.

        Returns:
            Tokens left after this request

        Raises:
            RateLimitExceededError: When the bucket is empty; ``retry_after`` holds the
                seconds until one token is available again
        """
        now = self.clock()
        self._checks += 1
        if self._checks % self.prune_every == 0:
            self._prune(now)

        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = TokenBucket(tokens=float(self.config.max_requests), last_refill=now)
            self._buckets[key] = bucket
        else:
            self._refill(bucket, now)

        if bucket.tokens < 1.0:
            retry_after = (1.0 - bucket.tokens) / self.config.refill_rate
            logger.warning(
                f"RateLimiter: budget exhausted for {key}, retry in {retry_after:.1f}s",
                extra={"client": key, "retry_after": retry_after},
            )
            raise RateLimitExceededError(RATE_LIMIT_MESSAGE, retry_after=retry_after)

        bucket.tokens -= 1.0
        return bucket.tokens

    def available_tokens(self, key: str) -> float:
        """Tokens currently available to ``key`` (full budget for unknown clients)."""
        bucket = self._buckets.get(key)
        if bucket is None:
            return float(self.config.max_requests)
        self._refill(bucket, self.clock())
        return bucket.tokens

    def _prune(self, now: float) -> None:
        for key, bucket in list(self._buckets.items()):
            self._refill(bucket, now)
            if bucket.tokens >= self.config.max_requests:
                del self._buckets[key]


def client_key(request: Request) -> str:
    """Identify the client of a request by its IP address."""
    return request.client.host if request.client else "unknown"


# Hey future me, exceptions raised in a BaseHTTPMiddleware do NOT reach the app's exception
# handlers (those sit further inside the stack), so the 429 body is rendered right here in the
# same {"error", "message"} shape the handlers use.
class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests from clients that exhausted their budget with 429."""

    def __init__(self, app: ASGIApp, limiter: RateLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            remaining = self.limiter.check(client_key(request))
        except RateLimitExceededError as e:
            retry_after = int(e.retry_after or 0) + 1
            return JSONResponse(
                status_code=429,
                content={"error": e.error, "message": e.message},
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limiter.config.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(int(remaining))
        return response


__all__ = [
    "RATE_LIMIT_MESSAGE",
    "RateLimitMiddleware",
    "RateLimiter",
    "RateLimiterConfig",
    "TokenBucket",
    "client_key",
]
