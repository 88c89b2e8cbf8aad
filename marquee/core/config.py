from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="MARQUEE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    youtube_api_key: Optional[str] = Field(default=None, description="YouTube Data API v3 key used by the metadata resolver.")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the Marquee ingestion API."""

    model_config = SettingsConfigDict(
        env_prefix="MARQUEE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Marquee API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./marquee.db",
        description="SQLAlchemy compatible DSN for the catalog store.",
    )

    media_root: Path = Field(default_factory=lambda: Path("media"), description="Root for stored blobs.")
    storage_backend: Literal["local"] = Field(default="local", description="Active blob store implementation.")
    local_storage_base_path: Path | None = Field(
        default=None,
        description="Override base path for local storage (defaults to media_root).",
    )
    public_media_base_url: str = Field(default="/media", description="Prefix used to build public blob URLs.")

    max_upload_size_bytes: int = Field(default=2 * 1024 * 1024 * 1024, description="Hard limit for direct video uploads.")

    youtube_api_base_url: str = Field(
        default="https://www.googleapis.com/youtube/v3",
        description="Base URL of the external metadata API.",
    )
    http_timeout_s: float = Field(default=15.0, description="Transport timeout for outbound HTTP calls.")
    thumbnail_chunk_size: int = Field(default=64 * 1024, description="Chunk size used when streaming thumbnails.")
    freshness_window_days: int = Field(default=30, ge=0, description="Records published within this window are flagged new.")

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def storage_base_path(self) -> Path:
        return Path(self.local_storage_base_path or self.media_root)


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "MARQUEE_ENV": "MARQUEE_ENVIRONMENT",
        "MARQUEE_DB_URL": "MARQUEE_DATABASE_URL",
        "YOUTUBE_API_KEY": "MARQUEE_YOUTUBE_API_KEY",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value and not os.getenv(target):
            os.environ[target] = value

    settings = Settings()

    # In a real deployment the key would come from a secret manager
    # rather than the process environment.
    secrets = Secrets.from_settings(settings)

    if settings.environment_lower == "production" and not secrets.youtube_api_key:
        raise ValueError("Production environment must configure a YouTube API key.")

    settings.secrets = secrets
    return settings


__all__ = ["Secrets", "Settings", "get_settings"]
