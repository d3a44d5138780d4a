from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .times import Time


class Settings(BaseSettings):
    """Application runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="DAYSHEET_", case_sensitive=False)

    app_name: str = "Daysheet"
    environment: str = "development"
    host: str = os.getenv("DAYSHEET_HOST", "127.0.0.1")
    port: int = int(os.getenv("DAYSHEET_PORT", "8080"))
    log_level: str = os.getenv("DAYSHEET_LOG_LEVEL", "INFO")

    sqlite_path: Path = Path(os.getenv("DAYSHEET_SQLITE_PATH", "./data/daysheet.db"))
    export_dir: Path = Path(os.getenv("DAYSHEET_EXPORT_DIR", "./data/exports"))

    resolution_minutes: int = Field(default=15, gt=0)
    combine_bookings: bool = True
    add_break: bool = True
    min_breaks_minutes: int = Field(default=45, ge=0)
    min_work_time_minutes: int = Field(default=6 * 60, ge=0)
    default_break_start: str = "12:00"
    default_break_end: str = "12:45"

    # how many previous days are searched for location and open issue of a new day
    carry_over_days: int = Field(default=7, ge=0)

    @field_validator("default_break_start", "default_break_end")
    @classmethod
    def _canonical_time(cls, value: str) -> str:
        return str(Time.parse(value))


settings = Settings()

# Ensure essential directories exist
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
settings.export_dir.mkdir(parents=True, exist_ok=True)
