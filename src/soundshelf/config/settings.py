"""Application settings loaded from the environment."""

import re
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Hey future me - this is the documented weak spot! When JWT_SECRET is not set we still
# sign tokens, but with this fixed key. Anyone who reads this file can forge tokens, so
# lifecycle.py logs a loud warning when it is in use outside development.
DEFAULT_JWT_SECRET = "soundshelf-insecure-default-secret"

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: Any) -> timedelta:
    """Parse a token lifetime like ``7d``, ``12h``, ``30m``, ``45s`` or ``3600``.

    Raises:
        ValueError: If the value is not a recognised duration
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, int | float):
        return timedelta(seconds=value)
    match = _DURATION_PATTERN.match(str(value))
    if not match:
        raise ValueError(
            f"Invalid duration '{value}'. Use a number followed by s, m, h or d (e.g. 7d)"
        )
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _DURATION_UNITS[unit.lower()])


class DatabaseSettings(BaseSettings):
    """Database connection settings (DATABASE_*)."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_", env_file=".env", extra="ignore"
    )

    url: str = "sqlite+aiosqlite:///./soundshelf.db"
    echo: bool = False
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600
    # Dev/test convenience - production deployments run `alembic upgrade head` instead
    auto_create_tables: bool = True


class AuthSettings(BaseSettings):
    """Token signing and password hashing settings (JWT_*)."""

    model_config = SettingsConfigDict(env_prefix="JWT_", env_file=".env", extra="ignore")

    secret: str = DEFAULT_JWT_SECRET
    expire: timedelta = timedelta(days=7)
    algorithm: str = "HS256"
    password_hash_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        validation_alias=AliasChoices("password_hash_rounds", "PASSWORD_HASH_ROUNDS"),
    )

    @field_validator("expire", mode="before")
    @classmethod
    def _parse_expire(cls, value: Any) -> timedelta:
        return parse_duration(value)

    @property
    def uses_default_secret(self) -> bool:
        """Whether tokens are signed with the built-in fallback key."""
        return self.secret == DEFAULT_JWT_SECRET


class ApiSettings(BaseSettings):
    """HTTP server settings (API_*)."""

    model_config = SettingsConfigDict(env_prefix="API_", env_file=".env", extra="ignore")

    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("port", "API_PORT", "PORT"))
    prefix: str = "/api"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class StorageSettings(BaseSettings):
    """Upload storage settings (STORAGE_*)."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_", env_file=".env", extra="ignore"
    )

    upload_path: Path = Path("uploads")
    public_prefix: str = "/uploads"

    @property
    def audio_path(self) -> Path:
        return self.upload_path / "audio"

    @property
    def image_path(self) -> Path:
        return self.upload_path / "images"

    @property
    def temp_path(self) -> Path:
        return self.upload_path / "temp"


class ObservabilitySettings(BaseSettings):
    """Logging settings (OBSERVABILITY_*)."""

    model_config = SettingsConfigDict(
        env_prefix="OBSERVABILITY_", env_file=".env", extra="ignore"
    )

    log_json_format: bool = False


class RateLimitSettings(BaseSettings):
    """Per-client request budget (RATE_LIMIT_*)."""

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_", env_file=".env", extra="ignore"
    )

    enabled: bool = True
    max_requests: int = Field(default=100, ge=1)
    window_seconds: float = Field(default=900.0, gt=0)


class Settings(BaseSettings):
    """Top-level application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "soundshelf"
    environment: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def ensure_directories(self) -> None:
        """Create the upload directory tree if it does not exist yet."""
        for path in (
            self.storage.upload_path,
            self.storage.audio_path,
            self.storage.image_path,
            self.storage.temp_path,
        ):
            path.mkdir(parents=True, exist_ok=True)

    def sqlite_db_path(self) -> Path | None:
        """Return the SQLite file path, or None for other databases / in-memory SQLite."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path.startswith(":memory:"):
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
