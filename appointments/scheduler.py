import asyncio
import logging
from collections.abc import Callable, Iterator, Mapping
from datetime import date, datetime, timedelta
from typing import Any

from appointments.config import Settings
from appointments.conflicts import Admissibility, ConflictChecker
from appointments.database import BookingStore
from appointments.durations import duration_minutes
from appointments.errors import Conflict, InvalidInterval, InvalidRequest, NoAvailability
from appointments.models import Booking, ServiceRequest, TimeInterval
from appointments.services import DEFAULT_CATALOG, ServiceCatalog, normalize_service_type
from appointments.working_calendar import WorkingCalendar

logger = logging.getLogger(__name__)

NowFn = Callable[[], datetime]


class Scheduler:
    """
    Books requests either at an explicitly requested time or at the earliest
    admissible slot found by searching forward day by day.

    Every candidate is re-checked against freshly read bookings and inserted
    while ``_write_lock`` is held, so two concurrent callers cannot both pass
    the admissibility check for the same window.
    """

    def __init__(
        self,
        store: BookingStore,
        calendar: WorkingCalendar,
        *,
        catalog: ServiceCatalog = DEFAULT_CATALOG,
        checker: ConflictChecker | None = None,
        now_fn: NowFn | None = None,
        max_days_horizon: int = 30,
    ) -> None:
        self.store = store
        self.calendar = calendar
        self.catalog = catalog
        self.checker = checker or ConflictChecker(catalog)
        self.now_fn = now_fn or (lambda: datetime.now(calendar.zone))
        self.max_days_horizon = max_days_horizon
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: BookingStore,
        *,
        catalog: ServiceCatalog = DEFAULT_CATALOG,
        now_fn: NowFn | None = None,
    ) -> "Scheduler":
        return cls(
            store,
            WorkingCalendar.from_settings(settings),
            catalog=catalog,
            checker=ConflictChecker(catalog, max_overlapping=settings.max_overlapping),
            now_fn=now_fn,
            max_days_horizon=settings.search_horizon_days,
        )

    def duration_for(self, service_type: str, details: Mapping[str, Any]) -> int:
        return duration_minutes(service_type, details, self.catalog)

    async def book_explicit(
        self,
        request: ServiceRequest,
        *,
        contact_info: str | None = None,
        done: bool = False,
    ) -> Booking:
        self._require_service_type(request)
        if request.explicit_start is None:
            raise InvalidRequest("An explicit start time is required")

        start = request.explicit_start
        if start.tzinfo is None:
            start = start.replace(tzinfo=self.calendar.zone)
        minutes = self.duration_for(request.service_type, request.details)
        outside = InvalidInterval(
            "The requested time is outside working hours "
            "or does not fit inside a single working block"
        )
        # longer than every block never fits; checked before computing the end
        # so huge unit counts cannot overflow the timestamp
        if minutes > self.calendar.longest_block_minutes:
            raise outside
        interval = TimeInterval.starting_at(
            start.astimezone(self.calendar.zone), minutes
        )
        if not self.calendar.fits_within_block(interval):
            raise outside

        booking, decision = await self._commit(request, interval, contact_info, done)
        if booking is None:
            raise Conflict(decision.reason or "The requested time is not available")
        return booking

    async def book_auto(
        self,
        request: ServiceRequest,
        *,
        search_from: datetime | None = None,
        same_day_only: bool | None = None,
        max_days_horizon: int | None = None,
        contact_info: str | None = None,
        done: bool = False,
    ) -> Booking:
        self._require_service_type(request)
        if request.explicit_start is not None:
            raise InvalidRequest("Auto-scheduling does not take an explicit start time")

        now = self.now_fn()
        if same_day_only is None:
            same_day_only = self.catalog.same_day_only(request.service_type)
        if max_days_horizon is None:
            max_days_horizon = self.max_days_horizon
        minutes = self.duration_for(request.service_type, request.details)

        first_day = self.calendar.local_day(search_from or now)
        day_count = 1 if same_day_only else max_days_horizon + 1
        for offset in range(day_count):
            day = first_day + timedelta(days=offset)
            for interval in self._candidates(day, minutes, now):
                booking, _ = await self._commit(request, interval, contact_info, done)
                if booking is not None:
                    return booking

        logger.info(
            "No availability for %r within %d day(s) from %s",
            request.service_type,
            day_count,
            first_day,
        )
        raise NoAvailability("No availability in the coming weeks")

    async def list_availability(
        self, service_type: str, details: Mapping[str, Any], day: date
    ) -> list[datetime]:
        """Every admissible start on ``day``. Nothing is persisted."""
        now = self.now_fn()
        minutes = self.duration_for(service_type, details)
        available: list[datetime] = []
        for interval in self._candidates(day, minutes, now):
            overlaps = await self.store.query_overlapping(interval.start, interval.end)
            if self.checker.check(interval, service_type, details, overlaps).admissible:
                available.append(interval.start)
        return available

    def _candidates(
        self, day: date, minutes: int, now: datetime
    ) -> Iterator[TimeInterval]:
        if minutes > self.calendar.longest_block_minutes:
            return
        for start in self.calendar.slots_for_day(day):
            if start < now:
                continue
            interval = TimeInterval.starting_at(start, minutes)
            if self.calendar.fits_within_block(interval):
                yield interval

    async def _commit(
        self,
        request: ServiceRequest,
        interval: TimeInterval,
        contact_info: str | None,
        done: bool,
    ) -> tuple[Booking | None, Admissibility]:
        async with self._write_lock:
            overlaps = await self.store.query_overlapping(interval.start, interval.end)
            decision = self.checker.check(
                interval, request.service_type, request.details, overlaps
            )
            if not decision.admissible:
                logger.debug(
                    "Rejected %r at %s: %s",
                    request.service_type,
                    interval.start.isoformat(),
                    decision.reason,
                )
                return None, decision
            booking = await self.store.insert_booking(
                request.service_type,
                request.details,
                interval,
                contact_info,
                done,
                created_at=self.now_fn(),
            )

        logger.info(
            "Booked #%d %r [%s, %s)",
            booking.id,
            booking.service_type,
            interval.start.isoformat(),
            interval.end.isoformat(),
        )
        return booking, decision

    @staticmethod
    def _require_service_type(request: ServiceRequest) -> None:
        if not normalize_service_type(request.service_type):
            raise InvalidRequest("Missing serviceType")
