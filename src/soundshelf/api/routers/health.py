"""Service root: health check and API index (mounted outside the /api prefix)."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

router = APIRouter()

API_VERSION = "1.0.0"


class HealthStatus(BaseModel):
    """Liveness response."""

    status: str = Field(description="Always OK while the process serves requests")
    message: str
    timestamp: str = Field(description="ISO timestamp of the check")
    environment: str


class ApiIndex(BaseModel):
    message: str
    description: str
    version: str
    endpoints: dict[str, str]


# Hey future me - Docker HEALTHCHECK / load balancers hit this. No DB round trip on purpose, it
# answers "is the process up", nothing more.
@router.get("/health")
async def health_check(request: Request) -> HealthStatus:
    settings = request.app.state.settings
    return HealthStatus(
        status="OK",
        message=f"{settings.app_name} backend is running",
        timestamp=datetime.now(UTC).isoformat(),
        environment=settings.environment,
    )


@router.get("/")
async def api_index(request: Request) -> ApiIndex:
    """Entry point listing the top-level endpoints."""
    prefix = request.app.state.settings.api.prefix
    return ApiIndex(
        message="Welcome to the SoundShelf music API",
        description="Upload, moderate and stream a shared music catalog",
        version=API_VERSION,
        endpoints={
            "health": "/health",
            "auth": f"{prefix}/auth",
            "users": f"{prefix}/users",
            "songs": f"{prefix}/songs",
        },
    )
