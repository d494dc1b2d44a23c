"""User Service - profiles, uploader statistics and account administration."""

import logging
from dataclasses import dataclass

from soundshelf.application.services.pagination import Page
from soundshelf.domain.entities import Track, TrackStatus, User, UserRole
from soundshelf.domain.exceptions import EntityNotFoundException, InvalidStateException
from soundshelf.domain.ports import ITrackRepository, IUserRepository, UploaderStats
from soundshelf.domain.value_objects import UserId

logger = logging.getLogger(__name__)


@dataclass
class PublicProfile:
    """A user as shown to anyone, with their approved track count."""

    user: User
    songs_count: int


@dataclass
class UserStatisticsReport:
    """Per-user numbers for the stats endpoint."""

    user: User
    uploads: UploaderStats


def user_not_found(user_id: UserId) -> EntityNotFoundException:
    return EntityNotFoundException("User", user_id.value)


class UserService:
    """Use cases around user accounts."""

    def __init__(
        self, user_repository: IUserRepository, track_repository: ITrackRepository
    ) -> None:
        self._users = user_repository
        self._tracks = track_repository

    async def get(self, user_id: UserId) -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise user_not_found(user_id)
        return user

    async def list_users(
        self,
        role: UserRole | None = None,
        is_active: bool | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[User]:
        users = await self._users.list(
            role=role, is_active=is_active, limit=limit, offset=(page - 1) * limit
        )
        total = await self._users.count(role=role, is_active=is_active)
        return Page(items=users, total=total, page=page, limit=limit)

    async def public_profile(self, user_id: UserId) -> PublicProfile:
        """Profile of an active user. Deactivated accounts look like unknown ones."""
        user = await self._users.get_by_id(user_id)
        if user is None or not user.is_active:
            raise user_not_found(user_id)
        songs_count = await self._tracks.count_by_uploader(user_id, TrackStatus.APPROVED)
        return PublicProfile(user=user, songs_count=songs_count)

    async def update_profile(
        self,
        user_id: UserId,
        name: str | None = None,
        bio: str | None = None,
        birth_year: int | None = None,
    ) -> User:
        """Apply profile changes, leaving None values untouched."""
        user = await self.get(user_id)
        if name is not None:
            user.name = name.strip()
        if bio is not None:
            user.profile.bio = bio.strip()
        if birth_year is not None:
            user.profile.birth_year = birth_year
        user.touch()
        await self._users.update(user)
        return user

    async def set_avatar(self, user_id: UserId, avatar_url: str) -> User:
        user = await self.get(user_id)
        user.profile.avatar = avatar_url
        user.touch()
        await self._users.update(user)
        return user

    async def uploader_songs(
        self,
        user_id: UserId,
        status: TrackStatus = TrackStatus.APPROVED,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Track]:
        """Active tracks of a user in one moderation status, newest first."""
        tracks, total = await self._tracks.list_by_uploader(
            user_id, status=status, limit=limit, offset=(page - 1) * limit
        )
        return Page(items=tracks, total=total, page=page, limit=limit)

    async def statistics(self, user_id: UserId) -> UserStatisticsReport:
        user = await self.get(user_id)
        uploads = await self._tracks.aggregate_uploader_stats(user_id)
        uploads.average_rating = round(uploads.average_rating, 2)
        return UserStatisticsReport(user=user, uploads=uploads)

    # Hey future me, the three admin operations below all refuse to act on the caller's OWN
    # account (deactivate self, change own role, delete own admin account). Without that an
    # admin can lock the platform out of its last admin with one click.
    async def set_active(self, actor: User, user_id: UserId, is_active: bool) -> User:
        user = await self.get(user_id)
        if user.id == actor.id and not is_active:
            raise InvalidStateException(
                "You cannot deactivate your own account", error="Cannot deactivate yourself"
            )
        user.is_active = is_active
        user.touch()
        await self._users.update(user)
        logger.info(
            f"User {user_id} {'activated' if is_active else 'deactivated'} by {actor.id}",
            extra={"user_id": str(user_id), "actor_id": str(actor.id)},
        )
        return user

    async def set_role(self, actor: User, user_id: UserId, role: UserRole) -> User:
        user = await self.get(user_id)
        if user.id == actor.id:
            raise InvalidStateException(
                "You cannot change your own role", error="Cannot change own role"
            )
        user.role = role
        user.touch()
        await self._users.update(user)
        logger.info(
            f"User {user_id} role set to {role.value} by {actor.id}",
            extra={"user_id": str(user_id), "actor_id": str(actor.id), "role": role.value},
        )
        return user

    async def deactivate_account(self, actor: User, user_id: UserId) -> int:
        """Deactivate an account and every track it uploaded. Returns the track count."""
        user = await self.get(user_id)
        if user.id == actor.id and actor.is_admin:
            raise InvalidStateException(
                "Admin accounts cannot be deleted", error="Cannot delete admin account"
            )
        user.is_active = False
        user.touch()
        await self._users.update(user)
        tracks = await self._tracks.deactivate_by_uploader(user_id)
        logger.info(
            f"Account {user_id} deactivated with {tracks} track(s)",
            extra={"user_id": str(user_id), "actor_id": str(actor.id)},
        )
        return tracks
