"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

import pendulum
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Task graph engine settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Scheduling
    timezone: str = "UTC"
    duration_unit_hours: int = Field(default=24, ge=1)
    default_task_duration: int = Field(default=1, ge=1)

    # Paths
    tasks_file: Path = Path("./tasks.toml")

    @field_validator("timezone")
    @classmethod
    def timezone_must_be_known(cls, v: str) -> str:
        """Reject time zone names pendulum cannot resolve."""
        _ = cls
        try:
            pendulum.timezone(v)
        except Exception as exc:
            msg = f"Unknown time zone: {v}"
            raise ValueError(msg) from exc
        return v
