"""
Application configuration models and helpers.

Centralizes settings management so the token store backends and the operator
tooling share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_BACKENDS = ("mongodb", "sqlite")


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()


class MongoSettings(BaseSettings):
    """Connection settings for the MongoDB token collections."""

    uri: str = Field("mongodb://localhost:27017", validation_alias="MONGODB_URI")
    database: str = Field("passport", validation_alias="MONGODB_DATABASE")
    access_token_collection: str = Field(
        "OAuth2AccessToken",
        validation_alias="MONGODB_ACCESS_TOKEN_COLLECTION",
    )
    refresh_token_collection: str = Field(
        "OAuth2RefreshToken",
        validation_alias="MONGODB_REFRESH_TOKEN_COLLECTION",
    )
    server_selection_timeout_ms: int = Field(
        5000,
        validation_alias="MONGODB_SERVER_SELECTION_TIMEOUT_MS",
        description="How long pymongo waits for a reachable server before failing.",
    )


class TokenStoreSettings(BaseSettings):
    """Selects and configures the token persistence backend."""

    backend: str = Field("mongodb", validation_alias="TOKEN_STORE_BACKEND")
    sqlite_path: str = Field(
        "data/passport.db",
        validation_alias="TOKEN_STORE_SQLITE_PATH",
        description="Database file used when the sqlite backend is selected.",
    )
    ensure_indexes: bool = Field(True, validation_alias="TOKEN_STORE_ENSURE_INDEXES")

    @field_validator("backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: str) -> str:
        normalized = str(value).strip().lower()
        if normalized not in SUPPORTED_BACKENDS:
            raise ValueError(
                f"Unsupported token store backend {value!r}; "
                f"expected one of {', '.join(SUPPORTED_BACKENDS)}."
            )
        return normalized


class AppSettings(BaseSettings):
    """Root settings object for the passport token store."""

    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    mongodb: MongoSettings = Field(default_factory=MongoSettings)
    token_store: TokenStoreSettings = Field(default_factory=TokenStoreSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "MongoSettings",
    "SUPPORTED_BACKENDS",
    "TokenStoreSettings",
    "get_settings",
]
