"""
Configuration management for Trigger Mail.

Uses pydantic-settings to load configuration from environment variables
and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Trigger Configuration
    triggers_path: Path = Path("triggers")
    flush_interval: float = 300.0  # seconds

    # Mail Configuration
    mailhost: str = ""  # user:password@host:port
    mail_queue_size: int = 32
    mail_enqueue_timeout: float = 30.0  # seconds
    smtp_timeout: float = 30.0  # seconds

    # Message server (passed through, unused by the mail pipeline)
    message_server: Optional[str] = None
    message_token: Optional[str] = None

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("triggers_path", mode="before")
    @classmethod
    def _strip_triggers_path(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("mail_queue_size")
    @classmethod
    def _positive_queue_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("mail_queue_size must be at least 1")
        return value

    def get_triggers_path(self) -> Path:
        """Return the trigger definitions directory as an absolute path."""
        return self.triggers_path.expanduser().absolute()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
