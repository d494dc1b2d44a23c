"""Dependency injection for API endpoints.

Two families live here:
- plumbing: settings, DB session, repositories, services, upload pipeline
- the authentication / authorization chain composed into routes
"""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import cast

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from soundshelf.application.services import (
    AuthService,
    PasswordHasher,
    TokenService,
    TrackService,
    UserService,
)
from soundshelf.application.services.auth_service import account_deactivated
from soundshelf.config import Settings, get_settings
from soundshelf.domain.entities import User, UserRole
from soundshelf.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainException,
    InternalError,
    ValidationException,
)
from soundshelf.domain.value_objects import UserId
from soundshelf.infrastructure.persistence import Database, TrackRepository, UserRepository
from soundshelf.infrastructure.uploads import UploadPipeline

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

OwnerLookup = Callable[[str, AsyncSession], Awaitable[UserId]]


# =============================================================================
# Plumbing
# =============================================================================


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with (falls back to the process-wide instance)."""
    settings = getattr(request.app.state, "settings", None)
    return cast(Settings, settings) if settings is not None else get_settings()


# Hey future me - ONE session per request. session_scope() commits when the route returns and
# rolls back when anything raises, including the domain exceptions our handlers turn into 4xx.
# FastAPI caches dependencies per request, so every repository of a request shares this session.
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state."""
    db: Database = request.app.state.db
    async with db.session_scope() as session:
        yield session


def get_user_repository(session: AsyncSession = Depends(get_db_session)) -> UserRepository:
    return UserRepository(session)


def get_track_repository(session: AsyncSession = Depends(get_db_session)) -> TrackRepository:
    return TrackRepository(session)


def get_token_service(settings: Settings = Depends(get_app_settings)) -> TokenService:
    return TokenService.from_settings(settings.auth)


def get_password_hasher(settings: Settings = Depends(get_app_settings)) -> PasswordHasher:
    return PasswordHasher(rounds=settings.auth.password_hash_rounds)


def get_auth_service(
    user_repository: UserRepository = Depends(get_user_repository),
    password_hasher: PasswordHasher = Depends(get_password_hasher),
    token_service: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(user_repository, password_hasher, token_service)


def get_track_service(
    track_repository: TrackRepository = Depends(get_track_repository),
    user_repository: UserRepository = Depends(get_user_repository),
) -> TrackService:
    return TrackService(track_repository, user_repository)


def get_user_service(
    user_repository: UserRepository = Depends(get_user_repository),
    track_repository: TrackRepository = Depends(get_track_repository),
) -> UserService:
    return UserService(user_repository, track_repository)


def get_upload_pipeline(settings: Settings = Depends(get_app_settings)) -> UploadPipeline:
    return UploadPipeline(settings.storage)


# =============================================================================
# Authentication
# =============================================================================


def bearer_token(authorization: str | None) -> str:
    """Extract the token of an ``Authorization: Bearer <token>`` header.

    Raises:
        AuthenticationError: Header missing, wrong scheme or empty token
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError(
            "No valid token provided. Please include Bearer token in Authorization header.",
            error="Access denied",
        )
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise AuthenticationError("Token is required", error="Access denied")
    return token


async def resolve_user(
    token: str, user_repository: UserRepository, token_service: TokenService
) -> User:
    """Turn a token into an active user.

    Raises:
        TokenExpiredError / TokenMalformedError: Token did not verify
        AuthenticationError: Subject unknown or deactivated
    """
    user_id = token_service.verify(token)
    user = await user_repository.get_by_id(user_id)
    if user is None:
        raise AuthenticationError("User not found", error="Invalid token")
    if not user.is_active:
        raise account_deactivated()
    return user


# Listen up, this is the REQUIRED authentication step. Order of checks: header shape, empty
# token, signature/expiry, subject exists, subject active. Each failure is a 401 with its own
# error code ("Access denied", "Token expired", "Invalid token", "Account deactivated"). Anything
# else that blows up in here (DB down, etc.) is logged and becomes a 500 "Authentication failed",
# never a half-authenticated request.
async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
    user_repository: UserRepository = Depends(get_user_repository),
    token_service: TokenService = Depends(get_token_service),
) -> User:
    """Authenticate the request and attach the user to ``request.state.user``."""
    try:
        token = bearer_token(authorization)
        user = await resolve_user(token, user_repository, token_service)
    except DomainException:
        raise
    except Exception as e:
        logger.exception("Authentication error: %s", e)
        raise InternalError(
            "An error occurred during authentication", error="Authentication failed"
        ) from e
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    authorization: str | None = Header(default=None),
    user_repository: UserRepository = Depends(get_user_repository),
    token_service: TokenService = Depends(get_token_service),
) -> User | None:
    """Like get_current_user, but any failure just means an anonymous request."""
    request.state.user = None
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        return None
    try:
        user = await resolve_user(token, user_repository, token_service)
    except AuthenticationError:
        return None
    except Exception as e:
        logger.warning(f"Optional authentication error: {e}", exc_info=True)
        return None
    request.state.user = user
    return user


# =============================================================================
# Authorization
# =============================================================================


def ensure_role(user: User | None, roles: tuple[UserRole, ...]) -> User:
    """Check that ``user`` holds one of ``roles``.

    Raises:
        AuthenticationError: No user at all (401 "Authentication required")
        AuthorizationError: Role not allowed (403 "Insufficient permissions")
    """
    if user is None:
        raise AuthenticationError(
            "You must be logged in to access this resource", error="Authentication required"
        )
    if user.role not in roles:
        required = " or ".join(role.value for role in roles)
        raise AuthorizationError(
            f"Access denied. Required role: {required}. Your role: {user.role.value}",
            error="Insufficient permissions",
        )
    return user


def require_roles(*roles: UserRole) -> Callable[..., Awaitable[User]]:
    """Dependency factory: authenticated user with one of ``roles``."""

    async def role_checker(user: User = Depends(get_current_user)) -> User:
        return ensure_role(user, roles)

    return role_checker


require_admin = require_roles(UserRole.ADMIN)
require_uploader = require_roles(UserRole.CONTRIBUTOR, UserRole.ADMIN)


# Hey future me, ownership comes in two flavours:
#   - owner_lookup=None: the path id IS the owner (user routes, /users/{id}/...). It is parsed
#                        like every other id, so a malformed one is 400, not 403.
#   - owner_lookup=fn:   fn(resource_id, session) resolves the resource's owner first (track
#                        routes). The lookup raises its own domain exceptions: bad id -> 400,
#                        unknown resource -> 404.
# Admins pass before any lookup happens. Domain exceptions pass through untouched, any OTHER
# error is a 500 "Authorization failed".
def require_ownership_or_admin(
    owner_lookup: OwnerLookup | None = None,
    param: str = "id",
    message: str = "You can only access your own resources",
) -> Callable[..., Awaitable[User]]:
    """Dependency factory: caller owns the resource in path parameter ``param``, or is admin."""

    async def ownership_checker(
        request: Request,
        user: User = Depends(get_current_user),
        session: AsyncSession = Depends(get_db_session),
    ) -> User:
        try:
            if user.is_admin:
                return user
            resource_id = request.path_params.get(param)
            if not resource_id:
                raise ValidationException(
                    "Resource ID must be provided", error="Resource ID required"
                )
            if owner_lookup is None:
                is_owner = UserId.from_string(resource_id) == user.id
            else:
                is_owner = await owner_lookup(resource_id, session) == user.id
        except DomainException:
            raise
        except Exception as e:
            logger.exception("Ownership check error: %s", e)
            raise InternalError(
                "An error occurred during authorization", error="Authorization failed"
            ) from e
        if not is_owner:
            raise AuthorizationError(message, error="Access denied")
        return user

    return ownership_checker
