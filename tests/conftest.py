from collections.abc import Callable
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from appointments.config import DEFAULT_WORKING_BLOCKS
from appointments.conflicts import ConflictChecker
from appointments.database import InMemoryBookingStore
from appointments.scheduler import Scheduler
from appointments.working_calendar import WorkingCalendar

ZONE = ZoneInfo("Asia/Jerusalem")

# week of 2026-10-19: Monday..Thursday working, Friday/Saturday weekend
MONDAY = date(2026, 10, 19)
THURSDAY = date(2026, 10, 22)
FRIDAY = date(2026, 10, 23)
SATURDAY = date(2026, 10, 24)
SUNDAY = date(2026, 10, 25)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """Local wall-clock time in the booking zone."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=ZONE)


@pytest.fixture
def calendar() -> WorkingCalendar:
    return WorkingCalendar(DEFAULT_WORKING_BLOCKS, ZONE)


@pytest.fixture
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture
def make_scheduler(
    calendar: WorkingCalendar, store: InMemoryBookingStore
) -> Callable[..., Scheduler]:
    def _make(now: datetime, *, max_overlapping: int = 2, **kwargs) -> Scheduler:
        return Scheduler(
            store,
            calendar,
            checker=ConflictChecker(max_overlapping=max_overlapping),
            now_fn=lambda: now,
            **kwargs,
        )

    return _make
