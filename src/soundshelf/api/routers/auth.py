"""Authentication endpoints: registration, login, tokens and preferences."""

import logging

from fastapi import APIRouter, Depends, status

from soundshelf.api.dependencies import get_auth_service, get_current_user
from soundshelf.api.schemas.common import MessageResponse
from soundshelf.api.schemas.users import (
    AuthResponse,
    LoginRequest,
    PlatformStatsResponse,
    PlatformUserStatsOut,
    PreferencesRequest,
    RegisterRequest,
    TokenResponse,
    UserOut,
    UserResponse,
)
from soundshelf.application.services import AuthService
from soundshelf.domain.entities import User, UserRole

router = APIRouter()
logger = logging.getLogger(__name__)


# Hey future me, registration logs the new user in right away (token in the response). Duplicate
# email is a 400 "User already exists", not 409 - clients have always matched on 400 here. The
# schema only allows standard/contributor: admin accounts come from scripts/create_admin.py.
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account and return it with a fresh token."""
    result = await auth_service.register(
        name=body.name,
        email=body.email,
        password=body.password,
        role=UserRole(body.role),
    )
    return AuthResponse(
        message="User registered successfully",
        token=result.token,
        user=UserOut.from_entity(result.user),
    )


@router.post("/login")
async def login(
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange email and password for a token."""
    result = await auth_service.login(body.email, body.password)
    return AuthResponse(
        message="Login successful",
        token=result.token,
        user=UserOut.from_entity(result.user),
    )


@router.get("/me")
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse(
        message="User profile retrieved successfully", user=UserOut.from_entity(user)
    )


@router.post("/refresh")
async def refresh(
    user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Issue a new token. The old one keeps working until it expires."""
    return TokenResponse(message="Token refreshed successfully", token=auth_service.refresh(user))


# Yo, tokens are stateless - there's nothing to revoke server side. Logout just confirms the
# token was valid; the client throws it away.
@router.post("/logout")
async def logout(user: User = Depends(get_current_user)) -> MessageResponse:
    logger.info("User logged out", extra={"user_id": str(user.id)})
    return MessageResponse(message="Logout successful")


@router.put("/preferences")
async def update_preferences(
    body: PreferencesRequest,
    user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    updated = await auth_service.update_preferences(
        user,
        language=body.language,
        font_size=body.font_size,
        high_contrast=body.high_contrast,
        notifications=body.notifications,
    )
    return UserResponse(
        message="Preferences updated successfully", user=UserOut.from_entity(updated)
    )


@router.get("/stats")
async def platform_stats(
    _user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> PlatformStatsResponse:
    """User counts: total, active, registered in the last 7 days and per role."""
    stats = await auth_service.user_statistics()
    return PlatformStatsResponse(
        message="Statistics retrieved successfully",
        stats=PlatformUserStatsOut.from_statistics(stats),
    )
