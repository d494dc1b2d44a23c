"""Unit tests for TrackService."""

from unittest.mock import AsyncMock

import pytest

from soundshelf.application.services import TrackMetadata, TrackService
from soundshelf.domain.entities import FileDescriptor, Track, TrackStatus, User, UserRole
from soundshelf.domain.exceptions import EntityNotFoundException, ValidationException
from soundshelf.domain.ports import ITrackRepository, IUserRepository
from soundshelf.domain.value_objects import TrackId, UserId

AUDIO = FileDescriptor(
    filename="a-1-2.mp3", original_name="a.mp3", mime_type="audio/mpeg", size=1000, url="/u/a"
)


def make_user(role: UserRole) -> User:
    return User(
        id=UserId.generate(), name="Uploader", email="up@example.com", password_hash="h", role=role
    )


def make_track(status: TrackStatus = TrackStatus.PENDING) -> Track:
    return Track(
        id=TrackId.generate(),
        title="Song",
        artist="Artist",
        audio_file=AUDIO,
        uploaded_by=UserId.generate(),
        status=status,
    )


@pytest.fixture
def tracks() -> AsyncMock:
    return AsyncMock(spec=ITrackRepository)


@pytest.fixture
def users() -> AsyncMock:
    return AsyncMock(spec=IUserRepository)


@pytest.fixture
def service(tracks: AsyncMock, users: AsyncMock) -> TrackService:
    return TrackService(tracks, users)


class TestCreateFromUpload:
    async def test_admin_upload_is_approved(
        self, service: TrackService, tracks: AsyncMock, users: AsyncMock
    ) -> None:
        admin = make_user(UserRole.ADMIN)

        track = await service.create_from_upload(
            admin, TrackMetadata(title="Song", artist="Artist", tags=["rock"]), AUDIO
        )

        assert track.status == TrackStatus.APPROVED
        assert track.tags == ["rock"]
        tracks.add.assert_awaited_once_with(track)
        users.increment_stat.assert_awaited_once_with(admin.id, "songs_uploaded")

    async def test_contributor_upload_is_pending(self, service: TrackService) -> None:
        track = await service.create_from_upload(
            make_user(UserRole.CONTRIBUTOR), TrackMetadata(title="Song", artist="Artist"), AUDIO
        )

        assert track.status == TrackStatus.PENDING


class TestVisibility:
    async def test_public_read_of_hidden_track_is_not_found(
        self, service: TrackService, tracks: AsyncMock
    ) -> None:
        tracks.get_by_id.return_value = None

        with pytest.raises(EntityNotFoundException) as exc_info:
            await service.get_for_viewer(TrackId.generate(), None)

        assert exc_info.value.error == "Song not found"
        assert tracks.get_by_id.await_args.kwargs == {"public_only": True}

    async def test_admin_reads_without_public_filter(
        self, service: TrackService, tracks: AsyncMock
    ) -> None:
        track = make_track()
        tracks.get_by_id.return_value = track

        result = await service.get_for_viewer(track.id, make_user(UserRole.ADMIN))

        assert result is track
        tracks.get_by_id.assert_awaited_once_with(track.id)


class TestEngagement:
    async def test_play_by_listener_bumps_their_counter(
        self, service: TrackService, tracks: AsyncMock, users: AsyncMock
    ) -> None:
        tracks.increment_play_count.return_value = 7
        listener = make_user(UserRole.STANDARD)

        assert await service.record_play(TrackId.generate(), listener) == 7
        users.increment_stat.assert_awaited_once_with(listener.id, "songs_played")

    async def test_anonymous_play(
        self, service: TrackService, tracks: AsyncMock, users: AsyncMock
    ) -> None:
        tracks.increment_play_count.return_value = 1

        assert await service.record_play(TrackId.generate()) == 1
        users.increment_stat.assert_not_awaited()

    async def test_play_on_non_public_track(self, service: TrackService, tracks: AsyncMock) -> None:
        tracks.increment_play_count.return_value = None

        with pytest.raises(EntityNotFoundException):
            await service.record_play(TrackId.generate())

    async def test_rate_validates_before_touching_storage(
        self, service: TrackService, tracks: AsyncMock
    ) -> None:
        with pytest.raises(ValidationException):
            await service.rate(TrackId.generate(), 6)

        tracks.add_rating.assert_not_awaited()

    async def test_rate_returns_new_aggregate(
        self, service: TrackService, tracks: AsyncMock
    ) -> None:
        tracks.add_rating.return_value = (4.0, 2)

        assert await service.rate(TrackId.generate(), 3) == (4.0, 2)


class TestModeration:
    async def test_approve(self, service: TrackService, tracks: AsyncMock) -> None:
        track = make_track()
        tracks.get_by_id.return_value = track
        admin = make_user(UserRole.ADMIN)

        result = await service.moderate(track.id, admin, "approve", "ok")

        assert result.status == TrackStatus.APPROVED
        assert result.moderated_by == admin.id
        assert result.moderation_notes == "ok"
        tracks.update.assert_awaited_once_with(track)

    async def test_reject_unknown_track(self, service: TrackService, tracks: AsyncMock) -> None:
        tracks.get_by_id.return_value = None

        with pytest.raises(EntityNotFoundException):
            await service.moderate(TrackId.generate(), make_user(UserRole.ADMIN), "reject")

    async def test_soft_delete_marks_inactive(
        self, service: TrackService, tracks: AsyncMock
    ) -> None:
        track = make_track(TrackStatus.APPROVED)
        tracks.get_by_id.return_value = track

        await service.soft_delete(track.id)

        assert track.is_active is False
        tracks.update.assert_awaited_once_with(track)

    async def test_pending_pages_the_queue(self, service: TrackService, tracks: AsyncMock) -> None:
        tracks.list_by_status.return_value = ([make_track()], 21)

        page = await service.pending(page=2, limit=20)

        tracks.list_by_status.assert_awaited_once_with(TrackStatus.PENDING, limit=20, offset=20)
        assert page.total_pages == 2
        assert page.has_prev is True
        assert page.has_next is False
