"""
Configuration and settings for the menu backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values shipped in sample .env files; treated the same as "not configured".
PLACEHOLDER_CREDENTIALS = frozenset(
    {
        "",
        "changeme",
        "fake_public",
        "your_access_key_id",
        "your_imagekit_public_key",
    }
)


def is_configured(value: Optional[str]) -> bool:
    return value is not None and value.strip() not in PLACEHOLDER_CREDENTIALS


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Session tokens
    jwt_secret: str = Field(default="dev-secret-change-me")
    jwt_expires_days: int = Field(default=7)

    # One-time codes
    otp_ttl_seconds: int = Field(default=500)
    otp_rate_limit: int = Field(default=10)
    otp_rate_window_seconds: int = Field(default=15 * 60)
    allow_direct_login: bool = Field(default=True)
    sms_gateway_url: Optional[str] = Field(default=None)

    # S3-compatible media storage
    media_bucket: Optional[str] = Field(default=None)
    media_region: Optional[str] = Field(default=None)
    media_endpoint: Optional[str] = Field(default=None)
    media_access_key_id: Optional[str] = Field(default=None)
    media_secret_access_key: Optional[str] = Field(default=None)
    media_public_base_url: Optional[str] = Field(default=None)
    media_prefix: str = Field(default="menus")

    # Web push (VAPID)
    vapid_public_key: Optional[str] = Field(default=None)
    vapid_private_key: Optional[str] = Field(default=None)
    vapid_subject: str = Field(default="mailto:admin@example.com")

    # Queue (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="menuboard:notify")

    @property
    def media_configured(self) -> bool:
        return bool(self.media_bucket) and is_configured(self.media_access_key_id)

    @property
    def push_configured(self) -> bool:
        return is_configured(self.vapid_public_key) and is_configured(
            self.vapid_private_key
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
