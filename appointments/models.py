"""
Domain models plus the conversions applied at the HTTP/storage boundary.
"""

import json
from datetime import datetime, timedelta, tzinfo
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from appointments.errors import InvalidRequest


class TimeInterval(BaseModel):
    """Half-open interval [start, end) between two zone-aware timestamps."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_bounds(self) -> "TimeInterval":
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("interval bounds must be timezone-aware")
        if self.end <= self.start:
            raise ValueError("interval must end after it starts")
        return self

    @classmethod
    def starting_at(cls, start: datetime, minutes: int) -> "TimeInterval":
        return cls(start=start, end=start + timedelta(minutes=minutes))

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "TimeInterval") -> bool:
        # adjacency ([a, b) followed by [b, c)) is not an overlap
        return self.end > other.start and self.start < other.end


class ServiceRequest(BaseModel):
    service_type: str
    details: dict[str, Any] = Field(default_factory=dict)
    explicit_start: datetime | None = None


class Booking(BaseModel):
    id: int
    service_type: str
    details: dict[str, Any] = Field(default_factory=dict)
    interval: TimeInterval
    created_at: datetime
    contact_info: str | None = None
    done: bool = False

    def to_public(self, zone: tzinfo) -> dict[str, Any]:
        return {
            "id": self.id,
            "serviceType": self.service_type,
            "details": self.details,
            "startTime": format_timestamp(self.interval.start, zone),
            "endTime": format_timestamp(self.interval.end, zone),
            "created_at": format_timestamp(self.created_at, zone),
            "phone": self.contact_info,
            "done": self.done,
        }


def parse_details(raw: Any) -> dict[str, Any]:
    """
    Lenient details parsing: a mapping is taken as is, a JSON object string
    is decoded, anything else (including malformed JSON) becomes ``{}``.
    """
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str) and raw.strip():
        try:
            decoded = json.loads(raw)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


def parse_timestamp(raw: str, zone: tzinfo) -> datetime:
    """
    Parse an ISO-8601 timestamp. Strings without an offset are read as local
    wall-clock time in ``zone``; the result is always expressed in ``zone``.
    """
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except (AttributeError, ValueError):
        raise InvalidRequest(f"Malformed timestamp: {raw!r}") from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=zone)
    return parsed.astimezone(zone)


def format_timestamp(moment: datetime, zone: tzinfo) -> str:
    return moment.astimezone(zone).isoformat()
