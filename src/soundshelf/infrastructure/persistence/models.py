"""SQLAlchemy ORM models for SoundShelf."""

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import JSON, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Datetimes come back "naive", so the
# repositories run every loaded timestamp through this before handing it to the domain.
def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Yo, preferences/profile/stats are FLATTENED into columns (pref_*, bio, songs_*) instead of a
# JSON blob - the atomic counter UPDATEs in UserRepository.increment_stat need real columns.
# Roles are plain strings (not sa.Enum) for SQLite + Alembic friendliness, validated by UserRole.
class UserModel(Base):
    """SQLAlchemy model for User entity."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="standard", index=True
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, server_default="1", default=True, index=True
    )
    is_email_verified: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, server_default="0", default=False
    )

    pref_language: Mapped[str] = mapped_column(String(5), nullable=False, default="en")
    pref_font_size: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    pref_high_contrast: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, server_default="0", default=False
    )
    pref_notifications: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, server_default="1", default=True
    )

    avatar: Mapped[str | None] = mapped_column(String(512), nullable=True)
    bio: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    birth_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    songs_uploaded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    songs_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_login: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )


# Listen up, the FileDescriptor value objects are flattened into audio_* / cover_* columns.
# A track without cover art has ALL cover_* columns NULL - the mapper treats cover_filename as
# the presence marker. Tracks are never hard-deleted (soft delete via is_active), so there is
# no ON DELETE CASCADE on uploaded_by.
class TrackModel(Base):
    """SQLAlchemy model for Track entity."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    artist: Mapped[str] = mapped_column(String(100), nullable=False)
    album: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    genre: Mapped[str] = mapped_column(String(50), nullable=False, default="", index=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lyrics: Mapped[str] = mapped_column(Text, nullable=False, default="")
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="en", index=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    audio_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    audio_original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    audio_mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    audio_size: Mapped[int] = mapped_column(Integer, nullable=False)
    audio_url: Mapped[str] = mapped_column(String(512), nullable=False)

    cover_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cover_original_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cover_mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cover_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cover_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    uploaded_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    moderation_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    moderated_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    moderated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    play_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    favorite_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_played: Mapped[datetime | None] = mapped_column(nullable=True)
    average_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, server_default="1", default=True
    )
    is_featured: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, server_default="0", default=False
    )
    featured_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_tracks_status_active", "status", "is_active"),
        Index("ix_tracks_featured", "is_featured", "featured_at"),
    )
