"""FastAPI application factory."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles

from soundshelf.api.exception_handlers import register_exception_handlers
from soundshelf.api.routers import api_router, health
from soundshelf.config import Settings, get_settings
from soundshelf.infrastructure.lifecycle import lifespan
from soundshelf.infrastructure.observability import RequestLoggingMiddleware
from soundshelf.infrastructure.rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
    RateLimitMiddleware,
)

logger = logging.getLogger(__name__)

API_TITLE = "SoundShelf API"
API_VERSION = health.API_VERSION


# Listen up, middleware order: Starlette runs the LAST added middleware FIRST. We add them
# innermost to outermost, so a request passes
#   RequestLogging -> CORS -> GZip -> RateLimit -> routes
# That way 429 answers are still logged with a correlation id and still carry CORS headers.
def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Explicit settings (tests inject their own); defaults to get_settings()
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=API_TITLE,
        description="Moderated music sharing backend: accounts, uploads, catalog and ratings.",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_exception_handlers(app)

    if settings.rate_limit.enabled:
        limiter = RateLimiter(
            RateLimiterConfig(
                max_requests=settings.rate_limit.max_requests,
                window_seconds=settings.rate_limit.window_seconds,
            )
        )
        app.state.rate_limiter = limiter
        app.add_middleware(RateLimitMiddleware, limiter=limiter)

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials="*" not in settings.api.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RequestLoggingMiddleware, quiet_prefixes=(f"{settings.storage.public_prefix}/",)
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(api_router, prefix=settings.api.prefix)

    # check_dir=False: the directory tree is created by the lifespan, after this mount
    app.mount(
        settings.storage.public_prefix,
        StaticFiles(directory=settings.storage.upload_path, check_dir=False),
        name="uploads",
    )

    return app
