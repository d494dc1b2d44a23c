"""API schemas for user accounts, profiles and auth responses."""

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from soundshelf.application.services import PublicProfile, UserStatistics, UserStatisticsReport
from soundshelf.domain.entities import FontSize, UILanguage, User, UserRole, utc_now

from .common import CamelModel, UserPagination

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"


# =============================================================================
# Requests
# =============================================================================


class RegisterRequest(CamelModel):
    """Self-service registration. Admin accounts come from scripts/create_admin.py."""

    name: str = Field(min_length=2, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(min_length=6, max_length=128)
    role: Literal["standard", "contributor"] = "standard"

    @field_validator("name", "email", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class LoginRequest(CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1)


class PreferencesRequest(CamelModel):
    """Partial preference update; omitted fields stay as they are."""

    language: UILanguage | None = None
    font_size: FontSize | None = None
    high_contrast: bool | None = None
    notifications: bool | None = None


class ProfileUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    bio: str | None = Field(default=None, max_length=500)
    birth_year: int | None = None

    @field_validator("birth_year")
    @classmethod
    def _birth_year_range(cls, value: int | None) -> int | None:
        if value is not None and not 1900 <= value <= utc_now().year:
            raise ValueError("Birth year must be between 1900 and current year")
        return value


class StatusUpdateRequest(CamelModel):
    is_active: bool


class RoleUpdateRequest(CamelModel):
    role: UserRole


# =============================================================================
# Responses
# =============================================================================


class PreferencesOut(CamelModel):
    language: UILanguage
    font_size: FontSize
    high_contrast: bool
    notifications: bool


class ProfileOut(CamelModel):
    bio: str
    birth_year: int | None
    avatar: str | None


class UserStatsOut(CamelModel):
    songs_uploaded: int
    songs_played: int
    last_login: datetime | None


# Yo, UserOut is the ONLY way a User leaves the API. It deliberately has no password_hash
# field - even if somebody passes the whole entity dict in, pydantic drops unknown keys.
class UserOut(CamelModel):
    """Full account view, shown to the account owner and admins."""

    id: str
    name: str
    email: str
    role: UserRole
    is_active: bool
    is_email_verified: bool
    age: int | None
    preferences: PreferencesOut
    profile: ProfileOut
    stats: UserStatsOut
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, user: User) -> "UserOut":
        return cls(
            id=str(user.id),
            name=user.name,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            is_email_verified=user.is_email_verified,
            age=user.age,
            preferences=PreferencesOut(
                language=user.preferences.language,
                font_size=user.preferences.font_size,
                high_contrast=user.preferences.high_contrast,
                notifications=user.preferences.notifications,
            ),
            profile=ProfileOut(
                bio=user.profile.bio,
                birth_year=user.profile.birth_year,
                avatar=user.profile.avatar,
            ),
            stats=UserStatsOut(
                songs_uploaded=user.stats.songs_uploaded,
                songs_played=user.stats.songs_played,
                last_login=user.stats.last_login,
            ),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class PublicUserOut(CamelModel):
    """What anyone may see about an active user (no email, no preferences)."""

    id: str
    name: str
    role: UserRole
    profile: ProfileOut
    stats: UserStatsOut
    created_at: datetime
    songs_count: int

    @classmethod
    def from_profile(cls, public: PublicProfile) -> "PublicUserOut":
        user = public.user
        return cls(
            id=str(user.id),
            name=user.name,
            role=user.role,
            profile=ProfileOut(
                bio=user.profile.bio,
                birth_year=user.profile.birth_year,
                avatar=user.profile.avatar,
            ),
            stats=UserStatsOut(
                songs_uploaded=user.stats.songs_uploaded,
                songs_played=user.stats.songs_played,
                last_login=user.stats.last_login,
            ),
            created_at=user.created_at,
            songs_count=public.songs_count,
        )


class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserOut


class UserResponse(CamelModel):
    message: str
    user: UserOut


class TokenResponse(CamelModel):
    message: str
    token: str


class PlatformUserStatsOut(CamelModel):
    total_users: int
    active_users: int
    recent_users: int
    users_by_role: dict[str, int]

    @classmethod
    def from_statistics(cls, stats: UserStatistics) -> "PlatformUserStatsOut":
        return cls(
            total_users=stats.total_users,
            active_users=stats.active_users,
            recent_users=stats.recent_users,
            users_by_role=dict(stats.users_by_role),
        )


class PlatformStatsResponse(CamelModel):
    message: str
    stats: PlatformUserStatsOut


class UsersData(CamelModel):
    users: list[UserOut]
    pagination: UserPagination


class UserData(CamelModel):
    user: UserOut


class PublicUserData(CamelModel):
    user: PublicUserOut


class AvatarData(CamelModel):
    user: UserOut
    avatar_url: str


class AccountActivityOut(CamelModel):
    songs_played: int
    last_login: datetime | None
    member_since: datetime


class UploadCountsOut(CamelModel):
    total: int
    approved: int
    pending: int
    rejected: int


class EngagementOut(CamelModel):
    total_play_count: int
    total_favorite_count: int
    average_rating: float


class UserStatsData(CamelModel):
    """Body of GET /users/{id}/stats."""

    user: AccountActivityOut
    uploads: UploadCountsOut
    engagement: EngagementOut

    @classmethod
    def from_report(cls, report: UserStatisticsReport) -> "UserStatsData":
        user, uploads = report.user, report.uploads
        return cls(
            user=AccountActivityOut(
                songs_played=user.stats.songs_played,
                last_login=user.stats.last_login,
                member_since=user.created_at,
            ),
            uploads=UploadCountsOut(
                total=uploads.total,
                approved=uploads.approved,
                pending=uploads.pending,
                rejected=uploads.rejected,
            ),
            engagement=EngagementOut(
                total_play_count=uploads.total_play_count,
                total_favorite_count=uploads.total_favorite_count,
                average_rating=uploads.average_rating,
            ),
        )
