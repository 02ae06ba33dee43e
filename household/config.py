"""
Configuration and settings for the household backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible object storage
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_bucket: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    max_upload_bytes: int = Field(default=20 * 1024 * 1024)

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-2.5-flash")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "HOUSEHOLD_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Realtime broker (Redis pub/sub)
    redis_url: Optional[str] = Field(default=None)
    redis_presence_prefix: str = Field(default="household:presence")

    # Auth
    session_ttl_seconds: int = Field(default=30 * 24 * 3600)

    # WebRTC
    ice_servers: str = Field(
        default="stun:stun.l.google.com:19302,stun:stun1.l.google.com:19302",
    )

    # Web push (VAPID)
    vapid_public_key: Optional[str] = Field(default=None)
    vapid_private_key: Optional[str] = Field(default=None)
    vapid_subject: str = Field(default="mailto:admin@example.com")

    # Reminder worker
    reminder_poll_seconds: float = Field(default=30.0)

    def ice_server_urls(self) -> list[str]:
        return [url.strip() for url in self.ice_servers.split(",") if url.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
