"""Configuration.

Values come from, highest priority first:
1. environment variables (``THREADSYNC_*``)
2. a ``.env`` file in the working directory
3. the defaults below
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "http://localhost:3000/api"


class ThreadSyncSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="THREADSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)
    mock_mode: bool = False

    poll_interval: float = Field(default=2.0, ge=0)
    max_poll_attempts: int = Field(default=150, ge=1)
    stream_handshake_timeout: float = Field(default=30.0, gt=0)
    max_concurrent_fetches: int = Field(default=8, ge=1)

    environment: Literal["development", "staging", "production", "test"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"


@lru_cache
def get_settings() -> ThreadSyncSettings:
    """Return the process-wide settings, loaded once."""
    return ThreadSyncSettings()
