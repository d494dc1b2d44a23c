"""Song (catalog track) endpoints: browse, upload, engagement and moderation."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from soundshelf.api.dependencies import (
    get_current_user,
    get_db_session,
    get_optional_user,
    get_track_service,
    get_upload_pipeline,
    require_admin,
    require_ownership_or_admin,
    require_uploader,
)
from soundshelf.api.schemas.common import (
    Envelope,
    MessageResponse,
    SongPagination,
    validate_form,
)
from soundshelf.api.schemas.songs import (
    FeaturedRequest,
    ModerationRequest,
    PagedSongsData,
    PlayCountData,
    RateRequest,
    RatingData,
    SongData,
    SongListData,
    SongOut,
    SongUploadForm,
)
from soundshelf.application.services import Page, TrackMetadata, TrackService
from soundshelf.application.services.track_service import song_not_found
from soundshelf.domain.entities import Track, TrackLanguage, User
from soundshelf.domain.exceptions import UploadRejectedError
from soundshelf.domain.ports import CatalogQuery, SortOrder, TrackSortField
from soundshelf.domain.value_objects import TrackId, UserId
from soundshelf.infrastructure.persistence import TrackRepository
from soundshelf.infrastructure.uploads import SONG_UPLOAD, UploadBatch, UploadPipeline

router = APIRouter()
logger = logging.getLogger(__name__)


async def song_owner(resource_id: str, session: AsyncSession) -> UserId:
    """Owner lookup for ownership checks on /songs/{id}: bad id -> 400, unknown -> 404."""
    track_id = TrackId.from_string(resource_id)
    owner = await TrackRepository(session).get_owner_id(track_id)
    if owner is None:
        raise song_not_found(track_id)
    return owner


def _paged(message: str, page: Page[Track]) -> Envelope[PagedSongsData]:
    return Envelope(
        message=message,
        data=PagedSongsData(
            songs=SongOut.many(page.items), pagination=SongPagination.from_page(page)
        ),
    )


def _listed(message: str, tracks: list[Track]) -> Envelope[SongListData]:
    return Envelope(message=message, data=SongListData(songs=SongOut.many(tracks)))


def _song(message: str, track: Track) -> Envelope[SongData]:
    return Envelope(message=message, data=SongData(song=SongOut.from_entity(track)))


def _upload_form_data(batch: UploadBatch) -> dict[str, Any]:
    data: dict[str, Any] = {name: batch.value(name) for name in batch.fields}
    if "tags" in batch.fields:
        data["tags"] = batch.values("tags")
    return data


# =============================================================================
# Catalog reads - static paths first, /{id} would swallow them otherwise
# =============================================================================


@router.get("")
async def list_songs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, max_length=100),
    genre: str | None = Query(None, max_length=50),
    language: TrackLanguage | None = Query(None),
    sort_by: TrackSortField = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[PagedSongsData]:
    """Browse approved, active songs with search, filters, sorting and paging."""
    result = await track_service.browse(
        CatalogQuery(
            page=page,
            limit=limit,
            search=search or None,
            genre=genre or None,
            language=language,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    )
    return _paged("Songs retrieved successfully", result)


@router.get("/featured")
async def featured_songs(
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[SongListData]:
    return _listed("Featured songs retrieved successfully", await track_service.featured())


@router.get("/popular")
async def popular_songs(
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[SongListData]:
    return _listed("Popular songs retrieved successfully", await track_service.popular())


@router.get("/recent")
async def recent_songs(
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[SongListData]:
    return _listed("Recent songs retrieved successfully", await track_service.recent())


@router.get("/moderation/pending")
async def pending_songs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _admin: User = Depends(require_admin),
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[PagedSongsData]:
    """Moderation queue, oldest upload first (admin only)."""
    result = await track_service.pending(page=page, limit=limit)
    return _paged("Pending songs retrieved successfully", result)


@router.get("/user/{user_id}")
async def songs_by_user(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=100),
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[PagedSongsData]:
    """Approved, active songs of one uploader, newest first."""
    result = await track_service.by_uploader(
        UserId.from_string(user_id), page=page, limit=limit
    )
    return _paged("User songs retrieved successfully", result)


@router.get("/{id}")
async def get_song(
    id: str,
    viewer: User | None = Depends(get_optional_user),
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[SongData]:
    """One song. Admins also see pending, rejected and soft-deleted songs."""
    track = await track_service.get_for_viewer(TrackId.from_string(id), viewer)
    return _song("Song retrieved successfully", track)


# =============================================================================
# Upload
# =============================================================================


# Listen up, this is the moderated upload. Flow:
#   1. require_uploader: contributor or admin (401/403 before we read a single byte)
#   2. pipeline.accept(): limits, type checks, streams files to disk - or 400 with nothing stored
#   3. inside `async with batch:` validate the text fields, create the track and COMMIT. ANY
#      exception in there (bad title, DB error, failed commit) deletes the stored files before
#      the error response goes out.
# Admin uploads come back approved, everyone else's pending.
@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_song(
    request: Request,
    uploader: User = Depends(require_uploader),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
    track_service: TrackService = Depends(get_track_service),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[SongData]:
    """Upload an audio file (field ``audio``) with an optional ``coverImage``."""
    batch = await pipeline.accept(request, SONG_UPLOAD)
    async with batch:
        form = validate_form(SongUploadForm, _upload_form_data(batch))
        audio = batch.file("audio")
        if audio is None:
            raise UploadRejectedError(
                "Please provide an audio file", kind="missing_file", error="Audio file required"
            )
        cover = batch.file("coverImage")
        track = await track_service.create_from_upload(
            uploader,
            TrackMetadata(
                title=form.title,
                artist=form.artist,
                album=form.album,
                genre=form.genre,
                year=form.year,
                duration=form.duration,
                lyrics=form.lyrics,
                language=form.language,
                tags=form.tags,
            ),
            audio.to_descriptor(),
            cover.to_descriptor() if cover else None,
        )
        await session.commit()
    return _song("Song uploaded successfully", track)


# =============================================================================
# Engagement
# =============================================================================


@router.put("/{id}/play")
async def play_song(
    id: str,
    listener: User | None = Depends(get_optional_user),
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[PlayCountData]:
    """Count one play. Works anonymously; a logged-in listener's play counter goes up too."""
    play_count = await track_service.record_play(TrackId.from_string(id), listener)
    return Envelope(
        message="Play count updated successfully", data=PlayCountData(play_count=play_count)
    )


@router.post("/{id}/rate")
async def rate_song(
    id: str,
    body: RateRequest,
    _user: User = Depends(get_current_user),
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[RatingData]:
    average, count = await track_service.rate(TrackId.from_string(id), body.rating)
    return Envelope(
        message="Song rated successfully",
        data=RatingData(average_rating=round(average, 2), rating_count=count),
    )


@router.delete("/{id}")
async def delete_song(
    id: str,
    _user: User = Depends(
        require_ownership_or_admin(
            owner_lookup=song_owner, message="You can only delete your own songs"
        )
    ),
    track_service: TrackService = Depends(get_track_service),
) -> MessageResponse:
    """Soft delete: the song disappears from public views but stays readable by admins."""
    await track_service.soft_delete(TrackId.from_string(id))
    return MessageResponse(message="Song deleted successfully")


# =============================================================================
# Moderation (admin)
# =============================================================================


@router.put("/{id}/approve")
async def approve_song(
    id: str,
    body: ModerationRequest | None = Body(default=None),
    admin: User = Depends(require_admin),
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[SongData]:
    notes = body.notes if body else ""
    track = await track_service.moderate(TrackId.from_string(id), admin, "approve", notes)
    return _song("Song approved successfully", track)


@router.put("/{id}/reject")
async def reject_song(
    id: str,
    body: ModerationRequest | None = Body(default=None),
    admin: User = Depends(require_admin),
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[SongData]:
    notes = body.notes if body else ""
    track = await track_service.moderate(TrackId.from_string(id), admin, "reject", notes)
    return _song("Song rejected successfully", track)


@router.put("/{id}/featured")
async def feature_song(
    id: str,
    body: FeaturedRequest,
    _admin: User = Depends(require_admin),
    track_service: TrackService = Depends(get_track_service),
) -> Envelope[SongData]:
    track = await track_service.set_featured(TrackId.from_string(id), body.featured)
    message = "Song featured successfully" if body.featured else "Song unfeatured successfully"
    return _song(message, track)
