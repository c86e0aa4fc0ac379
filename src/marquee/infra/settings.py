"""
Application settings for Marquee.

This module defines all configuration settings for Marquee using Pydantic BaseSettings.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main application settings using Pydantic BaseSettings."""

    # Configuration source
    configuration_id: str = Field(default="", alias="MARQUEE_CONFIGURATION_ID")
    publisher_url: str = Field(
        default="http://localhost:8080/screen/",
        alias="MARQUEE_PUBLISHER_URL",
    )
    fetch_timeout_s: float = Field(default=15.0, alias="MARQUEE_FETCH_TIMEOUT")

    # Cadences
    evaluation_interval_s: float = Field(default=30.0, alias="MARQUEE_EVALUATION_INTERVAL")
    poll_interval_s: float = Field(default=300.0, alias="MARQUEE_POLL_INTERVAL")

    # Playback
    advance_delay_s: float = Field(default=0.1, alias="MARQUEE_ADVANCE_DELAY")
    image_load_timeout_s: float = Field(default=30.0, alias="MARQUEE_IMAGE_LOAD_TIMEOUT")
    default_duration_s: float = Field(default=10.0, alias="MARQUEE_DEFAULT_DURATION")

    # Warm start
    snapshot_dir: str = Field(default="", alias="MARQUEE_SNAPSHOT_DIR")

    # Recurrence evaluation timezone (IANA name)
    timezone: str = Field(default="UTC", alias="MARQUEE_TIMEZONE")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")
    env: str = Field(default="dev", alias="ENV")  # dev|prod|test

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator(
        "evaluation_interval_s",
        "poll_interval_s",
        "image_load_timeout_s",
        "default_duration_s",
    )
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("advance_delay_s")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must be non-negative")
        return value


def _resolve_env_file() -> str | None:
    # 1) Explicit override
    explicit = os.getenv("MARQUEE_ENV_FILE")
    if explicit and Path(explicit).is_file():
        return explicit

    # 2) CWD .env
    cwd_env = Path.cwd() / ".env"
    if cwd_env.is_file():
        return str(cwd_env)

    return None


# Global settings instance (load from best-effort .env discovery)
_env_file = _resolve_env_file()
settings = Settings(_env_file=_env_file) if _env_file else Settings()  # type: ignore[call-arg]
