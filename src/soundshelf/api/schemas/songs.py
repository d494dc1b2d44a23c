"""API schemas for catalog tracks ("songs" on the wire)."""

from datetime import datetime

from pydantic import Field, field_validator

from soundshelf.domain.entities import (
    FileDescriptor,
    Track,
    TrackLanguage,
    TrackStatus,
    utc_now,
)

from .common import CamelModel, SongPagination

MAX_TAGS = 20


# =============================================================================
# Requests
# =============================================================================


# Hey future me, SongUploadForm validates the PLAIN fields of the multipart upload. FastAPI can't
# do it for us because the pipeline reads the form itself, so the handler feeds the batch values
# through validate_form() INSIDE `async with batch:` - a bad title then deletes the stored audio.
class SongUploadForm(CamelModel):
    """Text fields sent next to the audio file."""

    title: str = Field(min_length=1, max_length=200)
    artist: str = Field(min_length=1, max_length=100)
    album: str = Field(default="", max_length=100)
    genre: str = Field(default="", max_length=50)
    year: int | None = None
    duration: int | None = Field(default=None, ge=1, le=7200)
    lyrics: str = Field(default="", max_length=10000)
    language: TrackLanguage = TrackLanguage.EN
    tags: list[str] = Field(default_factory=list, max_length=MAX_TAGS)

    @field_validator("title", "artist", "album", "genre", "lyrics", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("year", "duration", mode="before")
    @classmethod
    def _blank_is_none(cls, value: object) -> object:
        return None if value == "" else value

    @field_validator("year")
    @classmethod
    def _year_range(cls, value: int | None) -> int | None:
        if value is not None and not 1900 <= value <= utc_now().year + 1:
            raise ValueError("Year must be between 1900 and next year")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: object) -> object:
        # Multipart clients send either repeated "tags" fields or one comma separated string
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return [tag.strip() for item in value for tag in item.split(",") if tag.strip()]
        return value

    @field_validator("tags")
    @classmethod
    def _tag_length(cls, value: list[str]) -> list[str]:
        for tag in value:
            if not 1 <= len(tag) <= 30:
                raise ValueError("Each tag must be between 1 and 30 characters")
        return value


class RateRequest(CamelModel):
    rating: int = Field(ge=1, le=5, description="Rating from 1 to 5")


class ModerationRequest(CamelModel):
    notes: str = Field(default="", max_length=1000)


class FeaturedRequest(CamelModel):
    featured: bool


# =============================================================================
# Responses
# =============================================================================


class FileOut(CamelModel):
    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str

    @classmethod
    def from_descriptor(cls, descriptor: FileDescriptor) -> "FileOut":
        return cls(
            filename=descriptor.filename,
            original_name=descriptor.original_name,
            mime_type=descriptor.mime_type,
            size=descriptor.size,
            url=descriptor.url,
        )


class UploaderOut(CamelModel):
    id: str
    name: str | None


class TrackStatsOut(CamelModel):
    play_count: int
    favorite_count: int
    download_count: int
    last_played: datetime | None
    average_rating: float
    rating_count: int


class SongOut(CamelModel):
    """Track as returned by every song endpoint."""

    id: str
    title: str
    artist: str
    album: str
    genre: str
    year: int | None
    duration: int | None
    formatted_duration: str
    formatted_file_size: str
    lyrics: str
    language: TrackLanguage
    tags: list[str]
    audio_file: FileOut
    cover_image: FileOut | None
    uploaded_by: UploaderOut
    status: TrackStatus
    moderated_by: str | None
    moderated_at: datetime | None
    moderation_notes: str
    stats: TrackStatsOut
    is_active: bool
    is_featured: bool
    featured_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, track: Track) -> "SongOut":
        return cls(
            id=str(track.id),
            title=track.title,
            artist=track.artist,
            album=track.album,
            genre=track.genre,
            year=track.year,
            duration=track.duration,
            formatted_duration=track.formatted_duration,
            formatted_file_size=track.formatted_file_size,
            lyrics=track.lyrics,
            language=track.language,
            tags=list(track.tags),
            audio_file=FileOut.from_descriptor(track.audio_file),
            cover_image=(
                FileOut.from_descriptor(track.cover_image) if track.cover_image else None
            ),
            uploaded_by=UploaderOut(id=str(track.uploaded_by), name=track.uploader_name),
            status=track.status,
            moderated_by=str(track.moderated_by) if track.moderated_by else None,
            moderated_at=track.moderated_at,
            moderation_notes=track.moderation_notes,
            stats=TrackStatsOut(
                play_count=track.stats.play_count,
                favorite_count=track.stats.favorite_count,
                download_count=track.stats.download_count,
                last_played=track.stats.last_played,
                average_rating=track.stats.average_rating,
                rating_count=track.stats.rating_count,
            ),
            is_active=track.is_active,
            is_featured=track.is_featured,
            featured_at=track.featured_at,
            created_at=track.created_at,
            updated_at=track.updated_at,
        )

    @classmethod
    def many(cls, tracks: list[Track]) -> list["SongOut"]:
        return [cls.from_entity(track) for track in tracks]


class SongData(CamelModel):
    song: SongOut


class SongListData(CamelModel):
    songs: list[SongOut]


class PagedSongsData(CamelModel):
    songs: list[SongOut]
    pagination: SongPagination


class PlayCountData(CamelModel):
    play_count: int


class RatingData(CamelModel):
    average_rating: float
    rating_count: int
