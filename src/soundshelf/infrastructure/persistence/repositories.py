"""Repository implementations for domain entities."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, Result, Select, and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from soundshelf.domain.entities import (
    FileDescriptor,
    FontSize,
    Preferences,
    Profile,
    Track,
    TrackLanguage,
    TrackStats,
    TrackStatus,
    UILanguage,
    User,
    UserRole,
    UserStats,
    normalize_email,
)
from soundshelf.domain.exceptions import DuplicateEntityException, EntityNotFoundException
from soundshelf.domain.ports import (
    CatalogQuery,
    ITrackRepository,
    IUserRepository,
    UploaderStats,
)
from soundshelf.domain.value_objects import TrackId, UserId

from .models import TrackModel, UserModel, ensure_utc_aware, utc_now

_USER_COUNTERS = {
    "songs_uploaded": UserModel.songs_uploaded,
    "songs_played": UserModel.songs_played,
}

_TRACK_SORT_COLUMNS = {
    "createdAt": TrackModel.created_at,
    "playCount": TrackModel.play_count,
    "favoriteCount": TrackModel.favorite_count,
    "title": TrackModel.title,
    "artist": TrackModel.artist,
}


def _like_pattern(term: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _user_to_entity(model: UserModel) -> User:
    return User(
        id=UserId.from_string(model.id),
        name=model.name,
        email=model.email,
        password_hash=model.password_hash,
        role=UserRole(model.role),
        is_active=model.is_active,
        is_email_verified=model.is_email_verified,
        preferences=Preferences(
            language=UILanguage(model.pref_language),
            font_size=FontSize(model.pref_font_size),
            high_contrast=model.pref_high_contrast,
            notifications=model.pref_notifications,
        ),
        profile=Profile(
            bio=model.bio or "",
            birth_year=model.birth_year,
            avatar=model.avatar,
        ),
        stats=UserStats(
            songs_uploaded=model.songs_uploaded,
            songs_played=model.songs_played,
            last_login=ensure_utc_aware(model.last_login),
        ),
        created_at=ensure_utc_aware(model.created_at),  # type: ignore[arg-type]
        updated_at=ensure_utc_aware(model.updated_at),  # type: ignore[arg-type]
    )


def _apply_user(model: UserModel, user: User) -> None:
    model.name = user.name
    model.email = user.email
    model.password_hash = user.password_hash
    model.role = user.role.value
    model.is_active = user.is_active
    model.is_email_verified = user.is_email_verified
    model.pref_language = user.preferences.language.value
    model.pref_font_size = user.preferences.font_size.value
    model.pref_high_contrast = user.preferences.high_contrast
    model.pref_notifications = user.preferences.notifications
    model.bio = user.profile.bio
    model.birth_year = user.profile.birth_year
    model.avatar = user.profile.avatar
    model.last_login = user.stats.last_login
    model.updated_at = user.updated_at
    # songs_uploaded / songs_played are NOT copied: they only move through increment_stat()


def _track_to_entity(model: TrackModel, uploader_name: str | None = None) -> Track:
    cover = None
    if model.cover_filename:
        cover = FileDescriptor(
            filename=model.cover_filename,
            original_name=model.cover_original_name or "",
            mime_type=model.cover_mime_type or "",
            size=model.cover_size or 0,
            url=model.cover_url or "",
        )
    return Track(
        id=TrackId.from_string(model.id),
        title=model.title,
        artist=model.artist,
        album=model.album or "",
        genre=model.genre or "",
        year=model.year,
        duration=model.duration,
        lyrics=model.lyrics or "",
        language=TrackLanguage(model.language),
        tags=list(model.tags or []),
        audio_file=FileDescriptor(
            filename=model.audio_filename,
            original_name=model.audio_original_name,
            mime_type=model.audio_mime_type,
            size=model.audio_size,
            url=model.audio_url,
        ),
        cover_image=cover,
        uploaded_by=UserId.from_string(model.uploaded_by),
        uploader_name=uploader_name,
        status=TrackStatus(model.status),
        moderation_notes=model.moderation_notes or "",
        moderated_by=UserId.from_string(model.moderated_by) if model.moderated_by else None,
        moderated_at=ensure_utc_aware(model.moderated_at),
        stats=TrackStats(
            play_count=model.play_count,
            favorite_count=model.favorite_count,
            download_count=model.download_count,
            last_played=ensure_utc_aware(model.last_played),
            average_rating=model.average_rating,
            rating_count=model.rating_count,
        ),
        is_active=model.is_active,
        is_featured=model.is_featured,
        featured_at=ensure_utc_aware(model.featured_at),
        created_at=ensure_utc_aware(model.created_at),  # type: ignore[arg-type]
        updated_at=ensure_utc_aware(model.updated_at),  # type: ignore[arg-type]
    )


def _apply_track(model: TrackModel, track: Track) -> None:
    model.title = track.title
    model.artist = track.artist
    model.album = track.album
    model.genre = track.genre
    model.year = track.year
    model.duration = track.duration
    model.lyrics = track.lyrics
    model.language = track.language.value
    model.tags = list(track.tags)
    model.audio_filename = track.audio_file.filename
    model.audio_original_name = track.audio_file.original_name
    model.audio_mime_type = track.audio_file.mime_type
    model.audio_size = track.audio_file.size
    model.audio_url = track.audio_file.url
    cover = track.cover_image
    model.cover_filename = cover.filename if cover else None
    model.cover_original_name = cover.original_name if cover else None
    model.cover_mime_type = cover.mime_type if cover else None
    model.cover_size = cover.size if cover else None
    model.cover_url = cover.url if cover else None
    model.uploaded_by = str(track.uploaded_by)
    model.status = track.status.value
    model.moderation_notes = track.moderation_notes
    model.moderated_by = str(track.moderated_by) if track.moderated_by else None
    model.moderated_at = track.moderated_at
    model.is_active = track.is_active
    model.is_featured = track.is_featured
    model.featured_at = track.featured_at
    model.updated_at = track.updated_at
    # Counters (play_count, rating aggregate) are NOT copied: they only move through the
    # atomic UPDATE statements below, so a stale entity can never overwrite them.


def _public_filter() -> ColumnElement[bool]:
    return and_(TrackModel.status == TrackStatus.APPROVED.value, TrackModel.is_active.is_(True))


# Track reads always join the uploader so responses can show who uploaded a track
def _select_tracks() -> Select[tuple[TrackModel, str]]:
    return select(TrackModel, UserModel.name).join(
        UserModel, UserModel.id == TrackModel.uploaded_by
    )


def _tracks_from(result: Result[tuple[TrackModel, str]]) -> list[Track]:
    return [_track_to_entity(model, name) for model, name in result.all()]


class UserRepository(IUserRepository):
    """SQLAlchemy implementation of User repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, user: User) -> None:
        """Add a new user.

        Flushes immediately so a taken email surfaces as DuplicateEntityException inside
        the calling handler instead of at commit time.
        """
        model = UserModel(
            id=str(user.id),
            songs_uploaded=user.stats.songs_uploaded,
            songs_played=user.stats.songs_played,
            created_at=user.created_at,
        )
        _apply_user(model, user)
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise DuplicateEntityException(
                "User", user.email, "A user with this email already exists"
            ) from e

    async def get_by_id(self, user_id: UserId) -> User | None:
        """Get a user by ID."""
        model = await self.session.get(UserModel, str(user_id))
        return _user_to_entity(model) if model else None

    async def get_by_email(self, email: str) -> User | None:
        """Get a user by email (case-insensitive through normalization)."""
        stmt = select(UserModel).where(UserModel.email == normalize_email(email))
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return _user_to_entity(model) if model else None

    async def update(self, user: User) -> None:
        """Update an existing user."""
        model = await self.session.get(UserModel, str(user.id))
        if not model:
            raise EntityNotFoundException("User", user.id.value)
        _apply_user(model, user)
        await self.session.flush()

    @staticmethod
    def _filters(
        role: UserRole | None,
        is_active: bool | None,
        created_since: datetime | None = None,
    ) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        if role is not None:
            conditions.append(UserModel.role == role.value)
        if is_active is not None:
            conditions.append(UserModel.is_active.is_(is_active))
        if created_since is not None:
            conditions.append(UserModel.created_at >= created_since)
        return conditions

    async def count(
        self,
        role: UserRole | None = None,
        is_active: bool | None = None,
        created_since: datetime | None = None,
    ) -> int:
        """Count users matching the optional filters."""
        stmt = select(func.count(UserModel.id)).where(
            *self._filters(role, is_active, created_since)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def list(
        self,
        role: UserRole | None = None,
        is_active: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[User]:
        """List users newest first."""
        stmt = (
            select(UserModel)
            .where(*self._filters(role, is_active))
            .order_by(UserModel.created_at.desc(), UserModel.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [_user_to_entity(model) for model in result.scalars().all()]

    # Hey future me, this is the ONLY way usage counters change! `SET x = x + n` runs as one
    # statement in the database, so two requests landing at the same time both count. Never
    # read the user, bump the number in Python and write it back - that loses updates.
    async def increment_stat(self, user_id: UserId, stat: str, amount: int = 1) -> None:
        """Atomically add ``amount`` to a user counter."""
        column = _USER_COUNTERS.get(stat)
        if column is None:
            raise ValueError(f"Unknown user counter: {stat}")
        stmt = (
            update(UserModel)
            .where(UserModel.id == str(user_id))
            .values({column: column + amount})
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)


class TrackRepository(ITrackRepository):
    """SQLAlchemy implementation of Track repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, track: Track) -> None:
        """Add a new track and flush it."""
        model = TrackModel(
            id=str(track.id),
            play_count=track.stats.play_count,
            favorite_count=track.stats.favorite_count,
            download_count=track.stats.download_count,
            average_rating=track.stats.average_rating,
            rating_count=track.stats.rating_count,
            created_at=track.created_at,
        )
        _apply_track(model, track)
        self.session.add(model)
        await self.session.flush()

    async def get_by_id(self, track_id: TrackId, public_only: bool = False) -> Track | None:
        """Get a track by ID, optionally restricted to approved and active tracks."""
        stmt = _select_tracks().where(TrackModel.id == str(track_id))
        if public_only:
            stmt = stmt.where(_public_filter())
        row = (await self.session.execute(stmt)).one_or_none()
        return _track_to_entity(row[0], row[1]) if row else None

    async def get_owner_id(self, track_id: TrackId) -> UserId | None:
        """Get the uploader of a track without loading the whole row."""
        stmt = select(TrackModel.uploaded_by).where(TrackModel.id == str(track_id))
        result = await self.session.execute(stmt)
        owner = result.scalar_one_or_none()
        return UserId.from_string(owner) if owner else None

    async def update(self, track: Track) -> None:
        """Update an existing track."""
        model = await self.session.get(TrackModel, str(track.id))
        if not model:
            raise EntityNotFoundException("Song", track.id.value)
        _apply_track(model, track)
        await self.session.flush()

    async def _page(
        self, conditions: list[Any], order_by: list[Any], limit: int, offset: int
    ) -> tuple[list[Track], int]:
        count_stmt = select(func.count(TrackModel.id)).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar() or 0
        stmt = (
            _select_tracks()
            .where(*conditions)
            .order_by(*order_by)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return _tracks_from(result), total

    # Listen up, search mirrors a word-based text search: every whitespace-separated word is
    # matched case-insensitively against title, artist and album, and a track matches when ANY
    # word hits. Genre is a case-insensitive substring match. LIKE wildcards in user input are
    # escaped so "100%" looks for a literal percent sign.
    async def list_catalog(self, query: CatalogQuery) -> tuple[list[Track], int]:
        """List public tracks for a catalog query."""
        conditions: list[Any] = [_public_filter()]
        if query.search:
            word_matches = []
            for word in query.search.split():
                pattern = _like_pattern(word)
                word_matches.extend(
                    [
                        TrackModel.title.ilike(pattern, escape="\\"),
                        TrackModel.artist.ilike(pattern, escape="\\"),
                        TrackModel.album.ilike(pattern, escape="\\"),
                    ]
                )
            if word_matches:
                conditions.append(or_(*word_matches))
        if query.genre:
            conditions.append(TrackModel.genre.ilike(_like_pattern(query.genre), escape="\\"))
        if query.language is not None:
            conditions.append(TrackModel.language == query.language.value)

        column = _TRACK_SORT_COLUMNS[query.sort_by]
        primary = column.asc() if query.sort_order == "asc" else column.desc()
        order_by = [primary, TrackModel.created_at.desc(), TrackModel.id]
        return await self._page(conditions, order_by, query.limit, query.offset)

    async def list_featured(self, limit: int = 10) -> list[Track]:
        """Public featured tracks, most recently featured first."""
        stmt = (
            _select_tracks()
            .where(_public_filter(), TrackModel.is_featured.is_(True))
            .order_by(TrackModel.featured_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return _tracks_from(result)

    async def list_popular(self, limit: int = 10) -> list[Track]:
        """Public tracks by play count, ties broken by favorite count."""
        stmt = (
            _select_tracks()
            .where(_public_filter())
            .order_by(TrackModel.play_count.desc(), TrackModel.favorite_count.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return _tracks_from(result)

    async def list_recent(self, limit: int = 10) -> list[Track]:
        """Public tracks newest first."""
        stmt = (
            _select_tracks()
            .where(_public_filter())
            .order_by(TrackModel.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return _tracks_from(result)

    async def list_by_status(
        self, status: TrackStatus, limit: int = 20, offset: int = 0
    ) -> tuple[list[Track], int]:
        """Active tracks in a moderation status, oldest first (moderation queue order)."""
        conditions = [TrackModel.status == status.value, TrackModel.is_active.is_(True)]
        order_by = [TrackModel.created_at.asc(), TrackModel.id]
        return await self._page(conditions, order_by, limit, offset)

    async def list_by_uploader(
        self,
        user_id: UserId,
        status: TrackStatus | None = TrackStatus.APPROVED,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Track], int]:
        """Active tracks of one uploader, newest first."""
        conditions: list[Any] = [
            TrackModel.uploaded_by == str(user_id),
            TrackModel.is_active.is_(True),
        ]
        if status is not None:
            conditions.append(TrackModel.status == status.value)
        order_by = [TrackModel.created_at.desc(), TrackModel.id]
        return await self._page(conditions, order_by, limit, offset)

    async def count_by_uploader(
        self, user_id: UserId, status: TrackStatus | None = None
    ) -> int:
        """Count active tracks of one uploader."""
        stmt = select(func.count(TrackModel.id)).where(
            TrackModel.uploaded_by == str(user_id), TrackModel.is_active.is_(True)
        )
        if status is not None:
            stmt = stmt.where(TrackModel.status == status.value)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def aggregate_uploader_stats(self, user_id: UserId) -> UploaderStats:
        """Upload counts per status plus engagement sums over approved tracks."""
        per_status = (
            select(TrackModel.status, func.count(TrackModel.id))
            .where(TrackModel.uploaded_by == str(user_id), TrackModel.is_active.is_(True))
            .group_by(TrackModel.status)
        )
        counts = {row[0]: row[1] for row in (await self.session.execute(per_status)).all()}

        engagement = select(
            func.coalesce(func.sum(TrackModel.play_count), 0),
            func.coalesce(func.sum(TrackModel.favorite_count), 0),
            func.coalesce(func.avg(TrackModel.average_rating), 0.0),
        ).where(TrackModel.uploaded_by == str(user_id), _public_filter())
        plays, favorites, rating = (await self.session.execute(engagement)).one()

        return UploaderStats(
            total=sum(counts.values()),
            approved=counts.get(TrackStatus.APPROVED.value, 0),
            pending=counts.get(TrackStatus.PENDING.value, 0),
            rejected=counts.get(TrackStatus.REJECTED.value, 0),
            total_play_count=int(plays),
            total_favorite_count=int(favorites),
            average_rating=float(rating),
        )

    # Hey future me, play counting is ONE UPDATE statement - `play_count = play_count + 1` is
    # evaluated by the database, so N concurrent plays always end at +N. The follow-up SELECT
    # runs in the same transaction and sees our own write.
    async def increment_play_count(self, track_id: TrackId) -> int | None:
        """Atomically count one play on a public track."""
        stmt = (
            update(TrackModel)
            .where(TrackModel.id == str(track_id), _public_filter())
            .values(
                play_count=TrackModel.play_count + 1,
                last_played=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None
        count_stmt = select(TrackModel.play_count).where(TrackModel.id == str(track_id))
        return (await self.session.execute(count_stmt)).scalar_one()

    # Yo, the rating aggregate is folded in SQL with the running weighted mean
    # (avg*count + r) / (count + 1). Both SET expressions read the OLD row values, so
    # average and count move together in one statement.
    async def add_rating(self, track_id: TrackId, rating: int) -> tuple[float, int] | None:
        """Atomically fold a rating into a public track."""
        stmt = (
            update(TrackModel)
            .where(TrackModel.id == str(track_id), _public_filter())
            .values(
                average_rating=(
                    TrackModel.average_rating * TrackModel.rating_count + float(rating)
                )
                / (TrackModel.rating_count + 1),
                rating_count=TrackModel.rating_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None
        stats_stmt = select(TrackModel.average_rating, TrackModel.rating_count).where(
            TrackModel.id == str(track_id)
        )
        average, count = (await self.session.execute(stats_stmt)).one()
        return float(average), int(count)

    async def deactivate_by_uploader(self, user_id: UserId) -> int:
        """Mark every track of an uploader inactive."""
        stmt = (
            update(TrackModel)
            .where(TrackModel.uploaded_by == str(user_id), TrackModel.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0  # type: ignore[attr-defined]
