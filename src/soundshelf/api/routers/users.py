"""User endpoints: profiles, avatars, per-user songs and stats, account administration."""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from soundshelf.api.dependencies import (
    get_db_session,
    get_optional_user,
    get_upload_pipeline,
    get_user_service,
    require_admin,
    require_ownership_or_admin,
)
from soundshelf.api.schemas.common import (
    Envelope,
    MessageResponse,
    SongPagination,
    UserPagination,
)
from soundshelf.api.schemas.songs import PagedSongsData, SongOut
from soundshelf.api.schemas.users import (
    AvatarData,
    ProfileUpdateRequest,
    PublicUserData,
    PublicUserOut,
    RoleUpdateRequest,
    StatusUpdateRequest,
    UserData,
    UserOut,
    UsersData,
    UserStatsData,
)
from soundshelf.application.services import UserService
from soundshelf.domain.entities import TrackStatus, User, UserRole
from soundshelf.domain.exceptions import AuthorizationError, UploadRejectedError
from soundshelf.domain.value_objects import UserId
from soundshelf.infrastructure.uploads import AVATAR_UPLOAD, UploadPipeline

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: UserRole | None = Query(None),
    is_active: bool | None = Query(None, alias="isActive"),
    _admin: User = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> Envelope[UsersData]:
    """All accounts with optional role / active filters (admin only)."""
    result = await user_service.list_users(role=role, is_active=is_active, page=page, limit=limit)
    return Envelope(
        message="Users retrieved successfully",
        data=UsersData(
            users=[UserOut.from_entity(user) for user in result.items],
            pagination=UserPagination.from_page(result),
        ),
    )


@router.get("/{id}")
async def get_user(
    id: str,
    user_service: UserService = Depends(get_user_service),
) -> Envelope[PublicUserData]:
    """Public profile of an active user with their approved song count."""
    profile = await user_service.public_profile(UserId.from_string(id))
    return Envelope(
        message="User retrieved successfully",
        data=PublicUserData(user=PublicUserOut.from_profile(profile)),
    )


@router.put("/{id}")
async def update_user(
    id: str,
    body: ProfileUpdateRequest,
    _user: User = Depends(
        require_ownership_or_admin(message="You can only edit your own profile")
    ),
    user_service: UserService = Depends(get_user_service),
) -> Envelope[UserData]:
    updated = await user_service.update_profile(
        UserId.from_string(id), name=body.name, bio=body.bio, birth_year=body.birth_year
    )
    return Envelope(
        message="Profile updated successfully", data=UserData(user=UserOut.from_entity(updated))
    )


# Yo, same upload guard as song uploads: pipeline.accept() stores the image (or rejects with
# nothing on disk), and `async with batch:` deletes it again if the profile update or its
# commit fails.
@router.post("/{id}/avatar")
async def upload_avatar(
    id: str,
    request: Request,
    _user: User = Depends(
        require_ownership_or_admin(message="You can only update your own avatar")
    ),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
    user_service: UserService = Depends(get_user_service),
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[AvatarData]:
    """Replace the profile picture with the uploaded ``avatar`` image."""
    user_id = UserId.from_string(id)
    batch = await pipeline.accept(request, AVATAR_UPLOAD)
    async with batch:
        avatar = batch.file("avatar")
        if avatar is None:
            raise UploadRejectedError(
                "Please provide an image file", kind="missing_file", error="No image provided"
            )
        updated = await user_service.set_avatar(user_id, avatar.url)
        await session.commit()
    return Envelope(
        message="Avatar uploaded successfully",
        data=AvatarData(user=UserOut.from_entity(updated), avatar_url=avatar.url),
    )


# Hey future me, approved songs are public. Pending/rejected ones are only listed for the
# uploader themselves and for admins - the moderation queue isn't a public feed.
@router.get("/{id}/songs")
async def user_songs(
    id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    song_status: Literal["approved", "pending", "rejected"] = Query("approved", alias="status"),
    viewer: User | None = Depends(get_optional_user),
    user_service: UserService = Depends(get_user_service),
) -> Envelope[PagedSongsData]:
    user_id = UserId.from_string(id)
    track_status = TrackStatus(song_status)
    if track_status != TrackStatus.APPROVED and not (
        viewer is not None and (viewer.is_admin or viewer.id == user_id)
    ):
        raise AuthorizationError(
            "You can only view your own pending or rejected songs", error="Access denied"
        )
    result = await user_service.uploader_songs(
        user_id, status=track_status, page=page, limit=limit
    )
    return Envelope(
        message="User songs retrieved successfully",
        data=PagedSongsData(
            songs=SongOut.many(result.items), pagination=SongPagination.from_page(result)
        ),
    )


@router.get("/{id}/stats")
async def user_stats(
    id: str,
    _user: User = Depends(
        require_ownership_or_admin(message="You can only view your own statistics")
    ),
    user_service: UserService = Depends(get_user_service),
) -> Envelope[UserStatsData]:
    """Listening activity, upload counts by status and engagement on the user's songs."""
    report = await user_service.statistics(UserId.from_string(id))
    return Envelope(
        message="User statistics retrieved successfully",
        data=UserStatsData.from_report(report),
    )


@router.put("/{id}/status")
async def update_user_status(
    id: str,
    body: StatusUpdateRequest,
    admin: User = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> Envelope[UserData]:
    updated = await user_service.set_active(admin, UserId.from_string(id), body.is_active)
    message = (
        "User activated successfully" if body.is_active else "User deactivated successfully"
    )
    return Envelope(message=message, data=UserData(user=UserOut.from_entity(updated)))


@router.put("/{id}/role")
async def update_user_role(
    id: str,
    body: RoleUpdateRequest,
    admin: User = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> Envelope[UserData]:
    updated = await user_service.set_role(admin, UserId.from_string(id), body.role)
    return Envelope(
        message="User role updated successfully", data=UserData(user=UserOut.from_entity(updated))
    )


@router.delete("/{id}")
async def delete_user(
    id: str,
    actor: User = Depends(
        require_ownership_or_admin(message="You can only delete your own account")
    ),
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    """Deactivate the account and soft delete all of its songs."""
    await user_service.deactivate_account(actor, UserId.from_string(id))
    return MessageResponse(message="Account deleted successfully")
