"""Repository tests against a real SQLite database file.

Hey future me - these run the actual SQL (aiosqlite), because the interesting parts are SQL:
the atomic counter UPDATEs, the public filter, LIKE escaping and the uploader join.
"""

from collections.abc import AsyncIterator
from datetime import timedelta
from pathlib import Path

import pytest

from soundshelf.config import DatabaseSettings, Settings
from soundshelf.domain.entities import (
    FileDescriptor,
    Track,
    TrackLanguage,
    TrackStatus,
    User,
    UserRole,
    utc_now,
)
from soundshelf.domain.exceptions import DuplicateEntityException
from soundshelf.domain.ports import CatalogQuery
from soundshelf.domain.value_objects import TrackId, UserId
from soundshelf.infrastructure.persistence import Database, TrackRepository, UserRepository


@pytest.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    settings = Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'repo.db'}")
    )
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.drop_tables()
    await db.close()


def make_user(email: str = "owner@example.com", role: UserRole = UserRole.CONTRIBUTOR) -> User:
    return User(
        id=UserId.generate(), name="Owner Name", email=email, password_hash="h", role=role
    )


def make_track(
    owner: User,
    title: str = "Song",
    artist: str = "Artist",
    status: TrackStatus = TrackStatus.APPROVED,
    **kwargs,
) -> Track:
    return Track(
        id=TrackId.generate(),
        title=title,
        artist=artist,
        audio_file=FileDescriptor(
            filename=f"{title}.mp3",
            original_name=f"{title}.mp3",
            mime_type="audio/mpeg",
            size=1000,
            url=f"/uploads/audio/{title}.mp3",
        ),
        uploaded_by=owner.id,
        status=status,
        **kwargs,
    )


async def seed(db: Database, owner: User, *tracks: Track) -> None:
    async with db.session_scope() as session:
        await UserRepository(session).add(owner)
        for track in tracks:
            await TrackRepository(session).add(track)


class TestUserRepository:
    async def test_add_and_read_back(self, database: Database) -> None:
        user = make_user("Mixed@Example.com")
        user.profile.bio = "hello"
        await seed(database, user)

        async with database.session_scope() as session:
            repo = UserRepository(session)
            by_id = await repo.get_by_id(user.id)
            by_email = await repo.get_by_email("  MIXED@example.COM")

        assert by_id is not None and by_email is not None
        assert by_id.id == by_email.id == user.id
        assert by_id.email == "mixed@example.com"
        assert by_id.profile.bio == "hello"
        assert by_id.created_at.tzinfo is not None

    async def test_duplicate_email(self, database: Database) -> None:
        await seed(database, make_user("dup@example.com"))

        with pytest.raises(DuplicateEntityException):
            async with database.session_scope() as session:
                await UserRepository(session).add(make_user("DUP@example.com"))

    async def test_increment_stat_is_additive(self, database: Database) -> None:
        user = make_user()
        await seed(database, user)

        async with database.session_scope() as session:
            repo = UserRepository(session)
            await repo.increment_stat(user.id, "songs_played")
            await repo.increment_stat(user.id, "songs_played", amount=2)
        async with database.session_scope() as session:
            loaded = await UserRepository(session).get_by_id(user.id)

        assert loaded is not None
        assert loaded.stats.songs_played == 3

    async def test_increment_unknown_stat(self, database: Database) -> None:
        async with database.session_scope() as session:
            with pytest.raises(ValueError):
                await UserRepository(session).increment_stat(UserId.generate(), "password")

    async def test_count_and_list_filters(self, database: Database) -> None:
        admin = make_user("admin@example.com", UserRole.ADMIN)
        inactive = make_user("gone@example.com", UserRole.STANDARD)
        inactive.is_active = False
        await seed(database, admin)
        await seed(database, inactive)

        async with database.session_scope() as session:
            repo = UserRepository(session)
            assert await repo.count() == 2
            assert await repo.count(role=UserRole.ADMIN) == 1
            assert await repo.count(is_active=False) == 1
            assert await repo.count(created_since=utc_now() + timedelta(days=1)) == 0
            listed = await repo.list(is_active=True)

        assert [user.id for user in listed] == [admin.id]


class TestTrackReads:
    async def test_public_filter(self, database: Database) -> None:
        owner = make_user()
        pending = make_track(owner, "Pending", status=TrackStatus.PENDING)
        deleted = make_track(owner, "Deleted", is_active=False)
        public = make_track(owner, "Public")
        await seed(database, owner, pending, deleted, public)

        async with database.session_scope() as session:
            repo = TrackRepository(session)
            assert await repo.get_by_id(pending.id, public_only=True) is None
            assert await repo.get_by_id(deleted.id, public_only=True) is None
            assert await repo.get_by_id(pending.id) is not None
            loaded = await repo.get_by_id(public.id, public_only=True)
            owner_id = await repo.get_owner_id(public.id)

        assert loaded is not None
        assert loaded.uploader_name == "Owner Name"
        assert loaded.cover_image is None
        assert owner_id == owner.id

    async def test_catalog_search_matches_any_word(self, database: Database) -> None:
        owner = make_user()
        await seed(
            database,
            owner,
            make_track(owner, "Blue Moon", "Singer"),
            make_track(owner, "Red Sun", "Band"),
            make_track(owner, "Green Field", "Moonlight Trio"),
        )

        async with database.session_scope() as session:
            tracks, total = await TrackRepository(session).list_catalog(
                CatalogQuery(search="moon sun", sort_by="title", sort_order="asc")
            )

        assert total == 3
        assert [track.title for track in tracks] == ["Blue Moon", "Green Field", "Red Sun"]

    async def test_catalog_search_escapes_wildcards(self, database: Database) -> None:
        owner = make_user()
        await seed(
            database,
            owner,
            make_track(owner, "100% Pure"),
            make_track(owner, "1000 Miles"),
        )

        async with database.session_scope() as session:
            tracks, total = await TrackRepository(session).list_catalog(
                CatalogQuery(search="100%")
            )

        assert total == 1
        assert tracks[0].title == "100% Pure"

    async def test_catalog_filters_and_paging(self, database: Database) -> None:
        owner = make_user()
        await seed(
            database,
            owner,
            make_track(owner, "A", genre="Rock", language=TrackLanguage.ZH),
            make_track(owner, "B", genre="rock"),
            make_track(owner, "C", genre="Jazz"),
            make_track(owner, "D", genre="Rock", status=TrackStatus.PENDING),
        )

        async with database.session_scope() as session:
            repo = TrackRepository(session)
            rock, rock_total = await repo.list_catalog(CatalogQuery(genre="ROCK"))
            chinese, _ = await repo.list_catalog(CatalogQuery(language=TrackLanguage.ZH))
            second_page, total = await repo.list_catalog(
                CatalogQuery(page=2, limit=2, sort_by="title", sort_order="asc")
            )

        assert rock_total == 2
        assert {track.title for track in rock} == {"A", "B"}
        assert [track.title for track in chinese] == ["A"]
        assert total == 3
        assert [track.title for track in second_page] == ["C"]

    async def test_moderation_queue_is_oldest_first(self, database: Database) -> None:
        owner = make_user()
        now = utc_now()
        newer = make_track(owner, "Newer", status=TrackStatus.PENDING, created_at=now)
        older = make_track(
            owner, "Older", status=TrackStatus.PENDING, created_at=now - timedelta(hours=1)
        )
        await seed(database, owner, newer, older)

        async with database.session_scope() as session:
            tracks, total = await TrackRepository(session).list_by_status(TrackStatus.PENDING)

        assert total == 2
        assert [track.title for track in tracks] == ["Older", "Newer"]


class TestTrackCounters:
    async def test_play_count_only_on_public_tracks(self, database: Database) -> None:
        owner = make_user()
        public = make_track(owner, "Public")
        pending = make_track(owner, "Pending", status=TrackStatus.PENDING)
        await seed(database, owner, public, pending)

        async with database.session_scope() as session:
            repo = TrackRepository(session)
            assert await repo.increment_play_count(public.id) == 1
            assert await repo.increment_play_count(public.id) == 2
            assert await repo.increment_play_count(pending.id) is None
            assert await repo.increment_play_count(TrackId.generate()) is None

    async def test_ratings_fold_into_running_average(self, database: Database) -> None:
        owner = make_user()
        track = make_track(owner)
        await seed(database, owner, track)

        async with database.session_scope() as session:
            repo = TrackRepository(session)
            assert await repo.add_rating(track.id, 5) == (5.0, 1)
            assert await repo.add_rating(track.id, 3) == (4.0, 2)

    async def test_update_never_overwrites_counters(self, database: Database) -> None:
        owner = make_user()
        track = make_track(owner)
        await seed(database, owner, track)

        async with database.session_scope() as session:
            await TrackRepository(session).increment_play_count(track.id)
        # A stale entity (play_count still 0) is saved afterwards
        track.set_featured(True)
        async with database.session_scope() as session:
            await TrackRepository(session).update(track)
        async with database.session_scope() as session:
            loaded = await TrackRepository(session).get_by_id(track.id)

        assert loaded is not None
        assert loaded.is_featured is True
        assert loaded.stats.play_count == 1

    async def test_deactivate_by_uploader_and_stats(self, database: Database) -> None:
        owner = make_user()
        await seed(
            database,
            owner,
            make_track(owner, "One"),
            make_track(owner, "Two"),
            make_track(owner, "Three", status=TrackStatus.PENDING),
            make_track(owner, "Four", status=TrackStatus.REJECTED),
        )

        async with database.session_scope() as session:
            stats = await TrackRepository(session).aggregate_uploader_stats(owner.id)
        assert (stats.total, stats.approved, stats.pending, stats.rejected) == (4, 2, 1, 1)

        async with database.session_scope() as session:
            repo = TrackRepository(session)
            assert await repo.deactivate_by_uploader(owner.id) == 4
            assert await repo.count_by_uploader(owner.id) == 0
