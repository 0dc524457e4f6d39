"""
Process-wide configuration with environment variable overrides.

Every value is read from ``BOOKING_*`` environment variables (or a ``.env``
file) and validated once. Complex values such as ``BOOKING_WORKING_BLOCKS``
are given as JSON, e.g. ``[{"start": "08:30:00", "end": "11:30:00"}]``.
"""

import logging
from datetime import time
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class WorkingBlock(BaseModel):
    """A contiguous local time-of-day window in which appointments may run."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @model_validator(mode="after")
    def _end_after_start(self) -> "WorkingBlock":
        if self.end <= self.start:
            raise ValueError(
                f"working block must end after it starts, got {self.start}-{self.end}"
            )
        return self


DEFAULT_WORKING_BLOCKS: tuple[WorkingBlock, ...] = (
    WorkingBlock(start=time(8, 30), end=time(11, 30)),
    WorkingBlock(start=time(16, 30), end=time(18, 30)),
    WorkingBlock(start=time(20, 30), end=time(22, 0)),
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BOOKING_",
        env_file=".env",
        extra="ignore",
    )

    timezone: str = "Asia/Jerusalem"
    working_blocks: list[WorkingBlock] = Field(
        default_factory=lambda: list(DEFAULT_WORKING_BLOCKS)
    )
    slot_step_minutes: int = 5
    # datetime.weekday() numbering, Monday == 0
    weekend_days: list[int] = Field(default_factory=lambda: [4, 5])
    max_overlapping: int = 2
    search_horizon_days: int = 30
    database_url: str | None = None
    log_level: str = "INFO"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value!r}") from None
        return value

    @field_validator("working_blocks")
    @classmethod
    def _at_least_one_block(cls, value: list[WorkingBlock]) -> list[WorkingBlock]:
        if not value:
            raise ValueError("at least one working block is required")
        return sorted(value, key=lambda b: b.start)

    @field_validator("slot_step_minutes", "max_overlapping")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"must be >= 1, got {value}")
        return value

    @field_validator("search_horizon_days")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"must be >= 0, got {value}")
        return value

    @field_validator("weekend_days")
    @classmethod
    def _valid_weekdays(cls, value: list[int]) -> list[int]:
        bad = [d for d in value if not 0 <= d <= 6]
        if bad:
            raise ValueError(f"weekday numbers must be between 0 and 6, got {bad}")
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded: zone=%s blocks=%d store=%s",
        settings.timezone,
        len(settings.working_blocks),
        settings.database_url or "memory",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
