"""Integration tests for /api/users: profiles, per-user songs and stats, administration."""

from collections.abc import Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from soundshelf.config import Settings
from soundshelf.domain.entities import utc_now

USERS = "/api/users"
PNG = ("me.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 32, "image/png")


class TestProfiles:
    def test_public_profile_hides_private_fields(
        self, client: TestClient, create_account: Callable, upload_song: Callable
    ) -> None:
        admin = create_account("admin")
        upload_song(admin)
        upload_song(admin)

        response = client.get(f"{USERS}/{admin.id}")

        assert response.status_code == 200
        user = response.json()["data"]["user"]
        assert user["songsCount"] == 2
        assert "email" not in user
        assert "preferences" not in user

    def test_unknown_user(self, client: TestClient) -> None:
        response = client.get(f"{USERS}/00000000-0000-4000-8000-000000000000")

        assert response.status_code == 404
        assert response.json()["error"] == "User not found"

    def test_update_own_profile(self, client: TestClient, create_account: Callable) -> None:
        user = create_account("standard")

        response = client.put(
            f"{USERS}/{user.id}",
            headers=user.headers,
            json={"name": "New Name", "bio": "I like music", "birthYear": utc_now().year - 20},
        )

        assert response.status_code == 200
        body = response.json()["data"]["user"]
        assert body["name"] == "New Name"
        assert body["profile"]["bio"] == "I like music"
        assert body["age"] == 20

    def test_cannot_update_someone_else(self, client: TestClient, create_account: Callable) -> None:
        user, other = create_account("standard"), create_account("standard")

        response = client.put(f"{USERS}/{other.id}", headers=user.headers, json={"bio": "hacked"})

        assert response.status_code == 403
        assert response.json()["message"] == "You can only edit your own profile"

    def test_admin_can_update_anyone(self, client: TestClient, create_account: Callable) -> None:
        admin, user = create_account("admin"), create_account("standard")

        response = client.put(f"{USERS}/{user.id}", headers=admin.headers, json={"bio": "edited"})

        assert response.status_code == 200

    def test_birth_year_in_the_future(self, client: TestClient, create_account: Callable) -> None:
        user = create_account("standard")

        response = client.put(
            f"{USERS}/{user.id}", headers=user.headers, json={"birthYear": utc_now().year + 1}
        )

        assert response.status_code == 400

    def test_avatar_upload(self, client: TestClient, create_account: Callable) -> None:
        user = create_account("standard")

        response = client.post(
            f"{USERS}/{user.id}/avatar", headers=user.headers, files={"avatar": PNG}
        )

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["avatarUrl"].startswith("/uploads/images/me-")
        assert data["user"]["profile"]["avatar"] == data["avatarUrl"]

    def test_owner_may_spell_own_id_in_upper_case(
        self, client: TestClient, create_account: Callable
    ) -> None:
        user = create_account("standard")

        response = client.put(
            f"{USERS}/{user.id.upper()}", headers=user.headers, json={"bio": "Loud"}
        )

        assert response.status_code == 200, response.text
        assert response.json()["data"]["user"]["profile"]["bio"] == "Loud"

    def test_avatar_removed_when_commit_fails(
        self,
        app: FastAPI,
        settings: Settings,
        create_account: Callable,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        user = create_account("standard")

        async def locked(self: AsyncSession) -> None:
            raise RuntimeError("database is locked")

        monkeypatch.setattr(AsyncSession, "commit", locked)
        failing_client = TestClient(app, raise_server_exceptions=False)

        response = failing_client.post(
            f"{USERS}/{user.id}/avatar", headers=user.headers, files={"avatar": PNG}
        )

        assert response.status_code == 500
        images = settings.storage.upload_path / "images"
        assert [path for path in images.rglob("*") if path.is_file()] == []

    def test_avatar_must_be_an_image(self, client: TestClient, create_account: Callable) -> None:
        user = create_account("standard")

        response = client.post(
            f"{USERS}/{user.id}/avatar",
            headers=user.headers,
            files={"avatar": ("song.mp3", b"ID3", "audio/mpeg")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Image upload failed"


class TestUserSongsAndStats:
    def test_pending_songs_only_for_owner_or_admin(
        self, client: TestClient, create_account: Callable, upload_song: Callable
    ) -> None:
        contributor = create_account("contributor")
        upload_song(contributor, title="Waiting")
        url = f"{USERS}/{contributor.id}/songs"

        anonymous = client.get(url, params={"status": "pending"})
        stranger = client.get(
            url, params={"status": "pending"}, headers=create_account("standard").headers
        )
        own = client.get(url, params={"status": "pending"}, headers=contributor.headers)
        public = client.get(url)

        assert anonymous.status_code == 403
        assert stranger.status_code == 403
        assert [song["title"] for song in own.json()["data"]["songs"]] == ["Waiting"]
        assert public.json()["data"]["songs"] == []

    def test_stats(
        self, client: TestClient, create_account: Callable, upload_song: Callable
    ) -> None:
        contributor = create_account("contributor")
        admin = create_account("admin")
        first = upload_song(contributor).json()["data"]["song"]["id"]
        second = upload_song(contributor).json()["data"]["song"]["id"]
        upload_song(contributor)
        client.put(f"/api/songs/{first}/approve", headers=admin.headers)
        client.put(f"/api/songs/{second}/reject", headers=admin.headers)
        client.put(f"/api/songs/{first}/play")
        client.post(f"/api/songs/{first}/rate", headers=admin.headers, json={"rating": 4})

        response = client.get(f"{USERS}/{contributor.id}/stats", headers=contributor.headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["uploads"] == {"total": 3, "approved": 1, "pending": 1, "rejected": 1}
        assert data["engagement"] == {
            "totalPlayCount": 1,
            "totalFavoriteCount": 0,
            "averageRating": 4.0,
        }
        assert data["user"]["memberSince"]

    def test_stats_of_someone_else(self, client: TestClient, create_account: Callable) -> None:
        user, other = create_account("standard"), create_account("standard")

        response = client.get(f"{USERS}/{other.id}/stats", headers=user.headers)

        assert response.status_code == 403
        assert response.json()["message"] == "You can only view your own statistics"


class TestAdministration:
    def test_list_users_is_admin_only(self, client: TestClient, create_account: Callable) -> None:
        admin = create_account("admin")
        user = create_account("standard")

        assert client.get(USERS, headers=user.headers).status_code == 403
        response = client.get(USERS, headers=admin.headers, params={"role": "standard"})

        data = response.json()["data"]
        assert [item["id"] for item in data["users"]] == [user.id]
        assert data["pagination"]["totalUsers"] == 1

    def test_deactivated_user_is_locked_out(
        self, client: TestClient, create_account: Callable
    ) -> None:
        admin, user = create_account("admin"), create_account("standard")

        response = client.put(
            f"{USERS}/{user.id}/status", headers=admin.headers, json={"isActive": False}
        )

        assert response.json()["message"] == "User deactivated successfully"
        me = client.get("/api/auth/me", headers=user.headers)
        assert me.status_code == 401
        assert me.json()["error"] == "Account deactivated"
        login = client.post(
            "/api/auth/login", json={"email": user.user["email"], "password": user.password}
        )
        assert login.json()["error"] == "Account deactivated"
        assert client.get(f"{USERS}/{user.id}").status_code == 404

    def test_admin_cannot_deactivate_self(
        self, client: TestClient, create_account: Callable
    ) -> None:
        admin = create_account("admin")

        response = client.put(
            f"{USERS}/{admin.id}/status", headers=admin.headers, json={"isActive": False}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Cannot deactivate yourself"

    def test_promote_to_contributor_allows_uploads(
        self, client: TestClient, create_account: Callable, upload_song: Callable
    ) -> None:
        admin, user = create_account("admin"), create_account("standard")
        assert upload_song(user).status_code == 403

        response = client.put(
            f"{USERS}/{user.id}/role", headers=admin.headers, json={"role": "contributor"}
        )

        assert response.json()["data"]["user"]["role"] == "contributor"
        assert upload_song(user).status_code == 201

    def test_role_changes_are_validated(
        self, client: TestClient, create_account: Callable
    ) -> None:
        admin, user = create_account("admin"), create_account("standard")

        own = client.put(
            f"{USERS}/{admin.id}/role", headers=admin.headers, json={"role": "standard"}
        )
        bogus = client.put(f"{USERS}/{user.id}/role", headers=admin.headers, json={"role": "owner"})

        assert own.status_code == 400
        assert own.json()["error"] == "Cannot change own role"
        assert bogus.status_code == 400

    def test_deleting_account_hides_its_songs(
        self, client: TestClient, create_account: Callable, upload_song: Callable
    ) -> None:
        admin = create_account("admin")
        contributor = create_account("contributor")
        song_id = upload_song(contributor).json()["data"]["song"]["id"]
        client.put(f"/api/songs/{song_id}/approve", headers=admin.headers)
        assert client.get(f"/api/songs/{song_id}").status_code == 200

        response = client.delete(f"{USERS}/{contributor.id}", headers=contributor.headers)

        assert response.json() == {"message": "Account deleted successfully"}
        assert client.get(f"/api/songs/{song_id}").status_code == 404
        assert client.get("/api/auth/me", headers=contributor.headers).status_code == 401

    def test_admin_cannot_delete_own_account(
        self, client: TestClient, create_account: Callable
    ) -> None:
        admin = create_account("admin")

        response = client.delete(f"{USERS}/{admin.id}", headers=admin.headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Cannot delete admin account"
