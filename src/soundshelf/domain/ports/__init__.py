"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from soundshelf.domain.entities import Track, TrackLanguage, TrackStatus, User, UserRole
from soundshelf.domain.value_objects import TrackId, UserId

TrackSortField = Literal["createdAt", "playCount", "favoriteCount", "title", "artist"]
SortOrder = Literal["asc", "desc"]


@dataclass
class CatalogQuery:
    """Filters, sort and paging for the public catalog listing."""

    page: int = 1
    limit: int = 20
    search: str | None = None
    genre: str | None = None
    language: TrackLanguage | None = None
    sort_by: TrackSortField = "createdAt"
    sort_order: SortOrder = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class UploaderStats:
    """Aggregated numbers over one uploader's tracks."""

    total: int = 0
    approved: int = 0
    pending: int = 0
    rejected: int = 0
    total_play_count: int = 0
    total_favorite_count: int = 0
    average_rating: float = 0.0


# Hey future me, IUserRepository is a PORT! Services depend on this ABC, the SQLAlchemy version
# lives in infrastructure/persistence/repositories.py. increment_stat() MUST be a single atomic
# UPDATE in every implementation - two concurrent plays must both be counted.
class IUserRepository(ABC):
    """Repository interface for User entities."""

    @abstractmethod
    async def add(self, user: User) -> None:
        """Add a new user. Raises DuplicateEntityException on a taken email."""

    @abstractmethod
    async def get_by_id(self, user_id: UserId) -> User | None:
        """Get a user by ID."""

    @abstractmethod
    async def get_by_email(self, email: str) -> User | None:
        """Get a user by (normalized) email."""

    @abstractmethod
    async def update(self, user: User) -> None:
        """Persist changes of an existing user."""

    @abstractmethod
    async def count(
        self,
        role: UserRole | None = None,
        is_active: bool | None = None,
        created_since: datetime | None = None,
    ) -> int:
        """Count users matching the optional filters."""

    @abstractmethod
    async def list(
        self,
        role: UserRole | None = None,
        is_active: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[User]:
        """List users newest first."""

    @abstractmethod
    async def increment_stat(self, user_id: UserId, stat: str, amount: int = 1) -> None:
        """Atomically add ``amount`` to a counter (songs_uploaded or songs_played)."""


class ITrackRepository(ABC):
    """Repository interface for Track entities."""

    @abstractmethod
    async def add(self, track: Track) -> None:
        """Add a new track."""

    @abstractmethod
    async def get_by_id(self, track_id: TrackId, public_only: bool = False) -> Track | None:
        """Get a track; with ``public_only`` only approved and active tracks are returned."""

    @abstractmethod
    async def get_owner_id(self, track_id: TrackId) -> UserId | None:
        """Get the uploader of a track, None if the track does not exist."""

    @abstractmethod
    async def update(self, track: Track) -> None:
        """Persist changes of an existing track."""

    @abstractmethod
    async def list_catalog(self, query: CatalogQuery) -> tuple[list[Track], int]:
        """List public tracks for a catalog query. Returns (page, total)."""

    @abstractmethod
    async def list_featured(self, limit: int = 10) -> list[Track]:
        """Public featured tracks, most recently featured first."""

    @abstractmethod
    async def list_popular(self, limit: int = 10) -> list[Track]:
        """Public tracks by play count desc, then favorite count desc."""

    @abstractmethod
    async def list_recent(self, limit: int = 10) -> list[Track]:
        """Public tracks newest first."""

    @abstractmethod
    async def list_by_status(
        self, status: TrackStatus, limit: int = 20, offset: int = 0
    ) -> tuple[list[Track], int]:
        """Active tracks in a moderation status, oldest first."""

    @abstractmethod
    async def list_by_uploader(
        self,
        user_id: UserId,
        status: TrackStatus | None = TrackStatus.APPROVED,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Track], int]:
        """Active tracks of one uploader, newest first. Returns (page, total)."""

    @abstractmethod
    async def count_by_uploader(
        self, user_id: UserId, status: TrackStatus | None = None
    ) -> int:
        """Count active tracks of one uploader."""

    @abstractmethod
    async def aggregate_uploader_stats(self, user_id: UserId) -> UploaderStats:
        """Upload counts per status plus engagement over approved tracks."""

    @abstractmethod
    async def increment_play_count(self, track_id: TrackId) -> int | None:
        """Atomically count one play on a public track. Returns the new count or None."""

    @abstractmethod
    async def add_rating(self, track_id: TrackId, rating: int) -> tuple[float, int] | None:
        """Atomically fold a rating into a public track. Returns (average, count) or None."""

    @abstractmethod
    async def deactivate_by_uploader(self, user_id: UserId) -> int:
        """Mark all tracks of an uploader inactive. Returns affected rows."""


__all__ = [
    "CatalogQuery",
    "ITrackRepository",
    "IUserRepository",
    "SortOrder",
    "TrackSortField",
    "UploaderStats",
]
