"""Shared fixtures: isolated settings, the booted application and account helpers.

Hey future me - every test gets its OWN SQLite file and upload directory under tmp_path, so
tests never see each other's users or files. The client fixture enters TestClient as a context
manager, which runs the lifespan (logging, upload dirs, tables) exactly like a real start.
"""

import itertools
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from soundshelf.application.services import AuthService, PasswordHasher, TokenService
from soundshelf.config import (
    AuthSettings,
    DatabaseSettings,
    RateLimitSettings,
    Settings,
    StorageSettings,
)
from soundshelf.infrastructure.persistence import UserRepository
from soundshelf.main import create_app

TEST_SECRET = "test-signing-secret-that-is-long-enough-for-hs256"
DEFAULT_PASSWORD = "secret123"

# A few bytes are enough, nothing inspects the audio content
AUDIO_BYTES = b"ID3\x04\x00\x00\x00\x00\x00\x00" + b"\x00" * 256
IMAGE_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@dataclass
class Account:
    """A logged-in test account."""

    token: str
    user: dict[str, Any]
    password: str = DEFAULT_PASSWORD

    @property
    def id(self) -> str:
        return str(self.user["id"])

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway database and upload directory."""
    return Settings(
        environment="test",
        log_level="WARNING",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
        auth=AuthSettings(secret=TEST_SECRET, password_hash_rounds=4),
        storage=StorageSettings(upload_path=tmp_path / "uploads"),
        rate_limit=RateLimitSettings(enabled=False),
    )


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Test client with the lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def create_account(
    client: TestClient, app: FastAPI, settings: Settings
) -> Callable[..., Account]:
    """Factory creating a user of the given role and logging it in.

    standard and contributor accounts go through POST /auth/register. Admins can't register,
    so they are bootstrapped straight into the database the way scripts/create_admin.py does.
    """
    counter = itertools.count(1)

    def _create(
        role: str = "standard",
        name: str | None = None,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
    ) -> Account:
        number = next(counter)
        name = name or f"{role.title()} User {number}"
        email = email or f"{role}{number}@example.com"

        if role != "admin":
            response = client.post(
                "/api/auth/register",
                json={"name": name, "email": email, "password": password, "role": role},
            )
            assert response.status_code == 201, response.text
            body = response.json()
            return Account(token=body["token"], user=body["user"], password=password)

        async def _bootstrap() -> None:
            async with app.state.db.session_scope() as session:
                service = AuthService(
                    UserRepository(session),
                    PasswordHasher(rounds=settings.auth.password_hash_rounds),
                    TokenService.from_settings(settings.auth),
                )
                await service.bootstrap_admin(name, email, password)

        client.portal.call(_bootstrap)
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        body = response.json()
        return Account(token=body["token"], user=body["user"], password=password)

    return _create


@pytest.fixture
def upload_song(client: TestClient) -> Callable[..., httpx.Response]:
    """Post a multipart song upload as ``account``; returns the raw response."""

    def _upload(
        account: Account | None,
        title: str = "Test Song",
        artist: str = "Test Artist",
        audio: tuple[str, bytes, str] | None = ("song.mp3", AUDIO_BYTES, "audio/mpeg"),
        cover: tuple[str, bytes, str] | None = None,
        **fields: Any,
    ) -> httpx.Response:
        files: dict[str, tuple[str, bytes, str]] = {}
        if audio is not None:
            files["audio"] = audio
        if cover is not None:
            files["coverImage"] = cover
        data = {"title": title, "artist": artist, **fields}
        return client.post(
            "/api/songs",
            headers=account.headers if account else {},
            data=data,
            files=files or None,
        )

    return _upload


@pytest.fixture
def approved_song(
    create_account: Callable[..., Account], upload_song: Callable[..., httpx.Response]
) -> dict[str, Any]:
    """A public song uploaded (and therefore auto-approved) by an admin."""
    admin = create_account("admin")
    response = upload_song(admin, title="Public Song", artist="Known Artist")
    assert response.status_code == 201, response.text
    return dict(response.json()["data"]["song"])
