"""Track Service - catalog reads, uploads, engagement and moderation.

Hey future me - routes never touch the repositories for tracks directly, they come through here.
Visibility rule used everywhere: the public sees a track only when it is APPROVED and ACTIVE.
Admins can read any track by id (pending ones for moderation, soft-deleted ones for support).
"""

import logging
from dataclasses import dataclass, field
from typing import Literal

from soundshelf.application.services.pagination import Page
from soundshelf.domain.entities import (
    FileDescriptor,
    Track,
    TrackLanguage,
    TrackStatus,
    User,
    validate_rating,
)
from soundshelf.domain.exceptions import EntityNotFoundException
from soundshelf.domain.ports import CatalogQuery, ITrackRepository, IUserRepository
from soundshelf.domain.value_objects import TrackId, UserId

logger = logging.getLogger(__name__)

HIGHLIGHT_LIMIT = 10

ModerationAction = Literal["approve", "reject", "hide"]


@dataclass
class TrackMetadata:
    """Descriptive fields supplied with an upload."""

    title: str
    artist: str
    album: str = ""
    genre: str = ""
    year: int | None = None
    duration: int | None = None
    lyrics: str = ""
    language: TrackLanguage = TrackLanguage.EN
    tags: list[str] = field(default_factory=list)


def song_not_found(track_id: TrackId) -> EntityNotFoundException:
    return EntityNotFoundException("Song", track_id.value)


class TrackService:
    """Use cases around catalog tracks."""

    def __init__(
        self, track_repository: ITrackRepository, user_repository: IUserRepository
    ) -> None:
        self._tracks = track_repository
        self._users = user_repository

    async def create_from_upload(
        self,
        uploader: User,
        metadata: TrackMetadata,
        audio_file: FileDescriptor,
        cover_image: FileDescriptor | None = None,
    ) -> Track:
        """Create a track for stored upload files.

        Admin uploads are approved on creation, everyone else's wait for moderation.
        """
        track = Track.new_upload(
            uploader,
            title=metadata.title,
            artist=metadata.artist,
            audio_file=audio_file,
            cover_image=cover_image,
            album=metadata.album,
            genre=metadata.genre,
            year=metadata.year,
            duration=metadata.duration,
            lyrics=metadata.lyrics,
            language=metadata.language,
            tags=list(metadata.tags),
        )
        await self._tracks.add(track)
        await self._users.increment_stat(uploader.id, "songs_uploaded")
        logger.info(
            f"Track {track.id} uploaded by {uploader.id} ({track.status.value})",
            extra={
                "track_id": str(track.id),
                "user_id": str(uploader.id),
                "status": track.status.value,
            },
        )
        return track

    async def get_public(self, track_id: TrackId) -> Track:
        """Get an approved, active track.

        Raises:
            EntityNotFoundException: Unknown, unapproved or soft-deleted track
        """
        track = await self._tracks.get_by_id(track_id, public_only=True)
        if track is None:
            raise song_not_found(track_id)
        return track

    async def get_for_admin(self, track_id: TrackId) -> Track:
        """Get a track regardless of status and active flag."""
        track = await self._tracks.get_by_id(track_id)
        if track is None:
            raise song_not_found(track_id)
        return track

    async def get_for_viewer(self, track_id: TrackId, viewer: User | None) -> Track:
        """Admins see every track, everyone else only public ones."""
        if viewer is not None and viewer.is_admin:
            return await self.get_for_admin(track_id)
        return await self.get_public(track_id)

    async def browse(self, query: CatalogQuery) -> Page[Track]:
        tracks, total = await self._tracks.list_catalog(query)
        return Page(items=tracks, total=total, page=query.page, limit=query.limit)

    async def featured(self, limit: int = HIGHLIGHT_LIMIT) -> list[Track]:
        return await self._tracks.list_featured(limit)

    async def popular(self, limit: int = HIGHLIGHT_LIMIT) -> list[Track]:
        return await self._tracks.list_popular(limit)

    async def recent(self, limit: int = HIGHLIGHT_LIMIT) -> list[Track]:
        return await self._tracks.list_recent(limit)

    async def by_uploader(
        self,
        user_id: UserId,
        status: TrackStatus = TrackStatus.APPROVED,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Track]:
        """Active tracks of one uploader in one moderation status, newest first."""
        tracks, total = await self._tracks.list_by_uploader(
            user_id, status=status, limit=limit, offset=(page - 1) * limit
        )
        return Page(items=tracks, total=total, page=page, limit=limit)

    async def record_play(self, track_id: TrackId, listener: User | None = None) -> int:
        """Count one play and return the new play count.

        An authenticated listener also gets their songs-played counter bumped.
        """
        play_count = await self._tracks.increment_play_count(track_id)
        if play_count is None:
            raise song_not_found(track_id)
        if listener is not None:
            await self._users.increment_stat(listener.id, "songs_played")
        return play_count

    async def rate(self, track_id: TrackId, rating: int) -> tuple[float, int]:
        """Fold a 1..5 rating into a public track. Returns (average, count)."""
        validate_rating(rating)
        stats = await self._tracks.add_rating(track_id, rating)
        if stats is None:
            raise song_not_found(track_id)
        return stats

    async def soft_delete(self, track_id: TrackId) -> Track:
        """Mark a track inactive. Ownership is checked by the caller."""
        track = await self.get_for_admin(track_id)
        track.soft_delete()
        await self._tracks.update(track)
        logger.info(f"Track {track_id} soft-deleted", extra={"track_id": str(track_id)})
        return track

    async def moderate(
        self,
        track_id: TrackId,
        moderator: User,
        action: ModerationAction,
        notes: str = "",
    ) -> Track:
        """Apply a moderation transition and persist it."""
        track = await self.get_for_admin(track_id)
        if action == "approve":
            track.approve(moderator.id, notes)
        elif action == "reject":
            track.reject(moderator.id, notes)
        else:
            track.hide(moderator.id, notes)
        await self._tracks.update(track)
        logger.info(
            f"Track {track_id} {track.status.value} by {moderator.id}",
            extra={"track_id": str(track_id), "moderator_id": str(moderator.id)},
        )
        return track

    async def set_featured(self, track_id: TrackId, featured: bool) -> Track:
        track = await self.get_for_admin(track_id)
        track.set_featured(featured)
        await self._tracks.update(track)
        return track

    async def pending(self, page: int = 1, limit: int = 20) -> Page[Track]:
        """Moderation queue, oldest upload first."""
        tracks, total = await self._tracks.list_by_status(
            TrackStatus.PENDING, limit=limit, offset=(page - 1) * limit
        )
        return Page(items=tracks, total=total, page=page, limit=limit)
