"""API router initialization."""

# Hey future me, this is the MAIN API router aggregator! It gets mounted under the configured
# prefix (default /api) in main.py, so endpoints become /api/auth/login, /api/songs/{id}, ...
# The health router is NOT in here: /health and / live at the server root.

from typing import Any

from fastapi import APIRouter

from soundshelf.api.routers import auth, health, songs, users
from soundshelf.api.schemas.common import ErrorResponse

# Documented once for every /api route; the exception handlers produce these bodies
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Validation failed"},
    401: {"model": ErrorResponse, "description": "Missing, invalid or expired token"},
    403: {"model": ErrorResponse, "description": "Role or ownership check failed"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
}

api_router = APIRouter(responses=ERROR_RESPONSES)

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(songs.router, prefix="/songs", tags=["Songs"])

__all__ = [
    "ERROR_RESPONSES",
    "api_router",
    "auth",
    "health",
    "songs",
    "users",
]
