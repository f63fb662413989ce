"""Application settings loaded from the environment."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the bot and its collaborators.

    Every field can be overridden with an environment variable carrying the
    ``LEETSTREAK_`` prefix, e.g. ``LEETSTREAK_DATABASE_URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEETSTREAK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Discord
    discord_bot_token: str = ""

    # Database
    database_url: str = "postgresql+asyncpg://localhost/leetstreak"
    database_echo: bool = False

    # LeetCode submission source
    leetcode_api_base_url: str = "https://leetcode-api-pied.vercel.app"
    leetcode_request_timeout: float = Field(default=10.0, gt=0)
    leetcode_max_retries: int = Field(default=2, ge=0)
    leetcode_retry_backoff: float = Field(default=1.0, ge=0)
    leetcode_submission_limit: int = Field(default=20, ge=1)

    # Checks
    check_max_concurrency: int = Field(default=5, ge=1)
    timezone: str = "UTC"

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get the cached application settings."""
    return Settings()
