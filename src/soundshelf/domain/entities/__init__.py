"""Domain entities."""

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from soundshelf.domain.exceptions import ValidationException
from soundshelf.domain.value_objects import TrackId, UserId

MAX_AUDIO_FILE_SIZE = 100 * 1024 * 1024
MAX_IMAGE_FILE_SIZE = 5 * 1024 * 1024
MIN_RATING = 1
MAX_RATING = 5


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me, roles and statuses are CLOSED enums - str subclass so they serialize as
# plain strings in JSON and compare equal to "admin" etc. Never pass raw role strings around
# in service code, parse them into UserRole at the API boundary!
class UserRole(str, Enum):
    """Role of a user account."""

    STANDARD = "standard"
    CONTRIBUTOR = "contributor"
    ADMIN = "admin"


class TrackStatus(str, Enum):
    """Moderation status of a track."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    HIDDEN = "hidden"


class UILanguage(str, Enum):
    """Interface language preference."""

    EN = "en"
    ZH = "zh"


class FontSize(str, Enum):
    """Font size preference."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class TrackLanguage(str, Enum):
    """Language of a track's lyrics."""

    EN = "en"
    ZH = "zh"
    MIXED = "mixed"
    OTHER = "other"


@dataclass
class Preferences:
    """Per-user display and notification preferences."""

    language: UILanguage = UILanguage.EN
    font_size: FontSize = FontSize.MEDIUM
    high_contrast: bool = False
    notifications: bool = True


@dataclass
class Profile:
    """Public profile data."""

    bio: str = ""
    birth_year: int | None = None
    avatar: str | None = None


@dataclass
class UserStats:
    """Usage counters of a user."""

    songs_uploaded: int = 0
    songs_played: int = 0
    last_login: datetime | None = None


# Yo, User is the DOMAIN ENTITY (not the DB model)! password_hash lives here because the
# login flow needs it, but NO response schema ever reads it. Email is always stored
# lower-cased and stripped - uniqueness is case-insensitive because of that.
@dataclass
class User:
    """User account entity."""

    id: UserId
    name: str
    email: str
    password_hash: str
    role: UserRole = UserRole.STANDARD
    is_active: bool = True
    is_email_verified: bool = False
    preferences: Preferences = field(default_factory=Preferences)
    profile: Profile = field(default_factory=Profile)
    stats: UserStats = field(default_factory=UserStats)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationException("Name is required")
        self.email = normalize_email(self.email)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def age(self) -> int | None:
        if self.profile.birth_year is None:
            return None
        return utc_now().year - self.profile.birth_year

    def record_login(self) -> None:
        self.stats.last_login = utc_now()
        self.touch()

    def touch(self) -> None:
        self.updated_at = utc_now()


def normalize_email(email: str) -> str:
    """Lower-case and strip an email address."""
    return email.strip().lower()


@dataclass
class FileDescriptor:
    """Stored file reference (audio or image) attached to a track or profile."""

    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str


@dataclass
class TrackStats:
    """Engagement counters of a track."""

    play_count: int = 0
    favorite_count: int = 0
    download_count: int = 0
    last_played: datetime | None = None
    average_rating: float = 0.0
    rating_count: int = 0


def validate_rating(rating: int) -> int:
    """Check a rating is within 1..5."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationException("Rating must be an integer between 1 and 5")
    if rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationException("Rating must be between 1 and 5")
    return rating


def running_average(average: float, count: int, rating: int) -> tuple[float, int]:
    """Fold one rating into an average: ``(avg*count + rating) / (count + 1)``."""
    new_count = count + 1
    return (average * count + rating) / new_count, new_count


# Listen up, Track is where the MODERATION STATE MACHINE lives! States:
#   pending -> approved | rejected      (approve()/reject(), admin only at the API)
#   any     -> hidden                   (hide(), manual override, no route exposes it)
# Transitions are UNCONDITIONAL overwrites - approving an approved track just records the newer
# moderator/timestamp. The initial state comes from initial_status_for(): admins self-approve.
@dataclass
class Track:
    """Catalog track entity."""

    id: TrackId
    title: str
    artist: str
    audio_file: FileDescriptor
    uploaded_by: UserId
    uploader_name: str | None = None
    album: str = ""
    genre: str = ""
    year: int | None = None
    duration: int | None = None
    lyrics: str = ""
    language: TrackLanguage = TrackLanguage.EN
    tags: list[str] = field(default_factory=list)
    cover_image: FileDescriptor | None = None
    status: TrackStatus = TrackStatus.PENDING
    moderation_notes: str = ""
    moderated_by: UserId | None = None
    moderated_at: datetime | None = None
    stats: TrackStats = field(default_factory=TrackStats)
    is_active: bool = True
    is_featured: bool = False
    featured_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationException("Song title is required")
        if not self.artist or not self.artist.strip():
            raise ValidationException("Artist name is required")
        if self.audio_file.size > MAX_AUDIO_FILE_SIZE:
            raise ValidationException("File size cannot exceed 100MB")

    @classmethod
    def initial_status_for(cls, role: UserRole) -> TrackStatus:
        """Status a freshly uploaded track starts in for an uploader of ``role``."""
        return TrackStatus.APPROVED if role == UserRole.ADMIN else TrackStatus.PENDING

    @classmethod
    def new_upload(
        cls,
        uploader: User,
        title: str,
        artist: str,
        audio_file: FileDescriptor,
        cover_image: FileDescriptor | None = None,
        **metadata: object,
    ) -> "Track":
        """Create a track for a fresh upload, applying the admin auto-approval rule."""
        track = cls(
            id=TrackId.generate(),
            title=title,
            artist=artist,
            audio_file=audio_file,
            cover_image=cover_image,
            uploaded_by=uploader.id,
            uploader_name=uploader.name,
            **metadata,  # type: ignore[arg-type]
        )
        if cls.initial_status_for(uploader.role) == TrackStatus.APPROVED:
            track._moderate(TrackStatus.APPROVED, uploader.id, "")
        return track

    @property
    def is_public(self) -> bool:
        """Visible in public listings: approved and not soft-deleted."""
        return self.status == TrackStatus.APPROVED and self.is_active

    @property
    def formatted_duration(self) -> str:
        if not self.duration:
            return "0:00"
        minutes, seconds = divmod(self.duration, 60)
        return f"{minutes}:{seconds:02d}"

    @property
    def formatted_file_size(self) -> str:
        size = self.audio_file.size
        if not size:
            return "0 B"
        units = ["B", "KB", "MB", "GB"]
        index = min(int(math.log(size, 1024)), len(units) - 1)
        return f"{size / 1024**index:.1f} {units[index]}"

    def approve(self, moderator_id: UserId, notes: str = "") -> None:
        self._moderate(TrackStatus.APPROVED, moderator_id, notes)

    def reject(self, moderator_id: UserId, notes: str = "") -> None:
        self._moderate(TrackStatus.REJECTED, moderator_id, notes)

    def hide(self, moderator_id: UserId, notes: str = "") -> None:
        self._moderate(TrackStatus.HIDDEN, moderator_id, notes)

    def _moderate(self, status: TrackStatus, moderator_id: UserId, notes: str) -> None:
        now = utc_now()
        self.status = status
        self.moderated_by = moderator_id
        self.moderated_at = now
        self.moderation_notes = notes
        self.updated_at = now

    def add_rating(self, rating: int) -> None:
        """Fold a rating into the in-memory stats.

        Persistence must go through the repository's atomic ``add_rating`` - this is
        the same formula, used when the entity is already loaded.
        """
        validate_rating(rating)
        self.stats.average_rating, self.stats.rating_count = running_average(
            self.stats.average_rating, self.stats.rating_count, rating
        )
        self.updated_at = utc_now()

    def set_featured(self, featured: bool) -> None:
        self.is_featured = featured
        self.featured_at = utc_now() if featured else None
        self.updated_at = utc_now()

    def soft_delete(self) -> None:
        self.is_active = False
        self.updated_at = utc_now()


__all__ = [
    "MAX_AUDIO_FILE_SIZE",
    "MAX_IMAGE_FILE_SIZE",
    "FileDescriptor",
    "FontSize",
    "Preferences",
    "Profile",
    "Track",
    "TrackLanguage",
    "TrackStats",
    "TrackStatus",
    "UILanguage",
    "User",
    "UserRole",
    "UserStats",
    "normalize_email",
    "running_average",
    "utc_now",
    "validate_rating",
]
