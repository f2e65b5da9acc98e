"""
Questline Planner: centralized configuration.

Settings are read from the environment (and an optional .env file) at the
application edge. The core never reads them directly: it receives a frozen
PlannerConfig built from Settings and passed in at construction time.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

# .env at the project root (one level up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"

DEFAULT_TIMEZONE = "UTC"
DEFAULT_ROLLOVER_HOUR = 4


def check_rollover_hour(hour: int) -> int:
    """Return hour unchanged if it is a valid rollover hour (0-23)."""
    if not 0 <= hour <= 23:
        raise ValueError(f"rollover hour must be 0-23, got: {hour}")
    return hour


def check_timezone(name: str) -> str:
    """Return name unchanged if it resolves to an IANA timezone."""
    if not name or not name.strip():
        raise ValueError("timezone must not be empty")
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name!r}") from exc
    return name


class PlannerConfig(BaseModel):
    """Default day-window configuration injected into the planner core."""

    model_config = ConfigDict(frozen=True)

    timezone: str = DEFAULT_TIMEZONE
    rollover_hour: int = DEFAULT_ROLLOVER_HOUR
    day_cache_max_size: int = 0   # 0 → unbounded

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return check_timezone(v)

    @field_validator("rollover_hour")
    @classmethod
    def validate_rollover_hour(cls, v: int) -> int:
        return check_rollover_hour(v)

    @field_validator("day_cache_max_size")
    @classmethod
    def validate_cache_size(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"day_cache_max_size must be >= 0, got: {v}")
        return v


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite
    DATABASE_PATH: str = "data/quests.db"

    # Day windows
    TIMEZONE: str = DEFAULT_TIMEZONE
    ROLLOVER_HOUR: int = DEFAULT_ROLLOVER_HOUR
    DAY_CACHE_MAX_SIZE: int = 0

    # User processed by the daily maintenance run
    DEFAULT_USER_KEY: str = "local"

    # Weekdays (0=Sunday .. 6=Saturday) of the "workday" schedule template
    WORKDAYS: list[int] = []

    @field_validator("ROLLOVER_HOUR", "DAY_CACHE_MAX_SIZE", mode="before")
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)

    @field_validator("WORKDAYS", mode="before")
    @classmethod
    def parse_workdays(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            days = v
        elif isinstance(v, str) and v.strip():
            days = [int(d.strip()) for d in v.split(",") if d.strip()]
        else:
            days = []
        for day in days:
            if not 0 <= day <= 6:
                raise ValueError(f"workday must be 0-6, got: {day}")
        return days

    def planner_config(self) -> PlannerConfig:
        """Build the immutable config record handed to the planner core."""
        return PlannerConfig(
            timezone=self.TIMEZONE,
            rollover_hour=self.ROLLOVER_HOUR,
            day_cache_max_size=self.DAY_CACHE_MAX_SIZE,
        )


def load_settings(env_path: Path | None = None) -> Settings:
    """Load settings from environment, validating them.

    Exits the process on invalid configuration: a bad timezone or
    rollover hour must never be silently defaulted.
    """
    load_dotenv(env_path or _ENV_PATH)

    try:
        settings = Settings(
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/quests.db"),
            TIMEZONE=os.getenv("TIMEZONE", DEFAULT_TIMEZONE),
            ROLLOVER_HOUR=os.getenv("ROLLOVER_HOUR", str(DEFAULT_ROLLOVER_HOUR)),
            DAY_CACHE_MAX_SIZE=os.getenv("DAY_CACHE_MAX_SIZE", "0"),
            DEFAULT_USER_KEY=os.getenv("DEFAULT_USER_KEY", "local"),
            WORKDAYS=os.getenv("WORKDAYS", ""),
        )
        settings.planner_config()
    except (ValidationError, ValueError) as exc:
        print(f"ERROR: invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    return settings
