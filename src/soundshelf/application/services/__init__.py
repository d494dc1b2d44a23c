"""Application services - use cases sitting between the API and the repositories."""

from soundshelf.application.services.auth_service import (
    AuthResult,
    AuthService,
    UserStatistics,
)
from soundshelf.application.services.pagination import Page
from soundshelf.application.services.password_hasher import PasswordHasher
from soundshelf.application.services.token_service import TokenService
from soundshelf.application.services.track_service import TrackMetadata, TrackService
from soundshelf.application.services.user_service import (
    PublicProfile,
    UserService,
    UserStatisticsReport,
)

__all__ = [
    "AuthResult",
    "AuthService",
    "Page",
    "PasswordHasher",
    "PublicProfile",
    "TokenService",
    "TrackMetadata",
    "TrackService",
    "UserService",
    "UserStatistics",
    "UserStatisticsReport",
]
