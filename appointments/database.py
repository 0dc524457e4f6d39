import itertools
from collections.abc import Mapping, MutableMapping
from datetime import datetime
from typing import Any, Protocol

from appointments.models import Booking, TimeInterval


class BookingStore(Protocol):
    """
    What the scheduler needs from persistence. Implementations report their
    own I/O errors as ``StoreFailure``.
    """

    async def query_overlapping(
        self, start: datetime, end: datetime
    ) -> list[Booking]: ...

    async def insert_booking(
        self,
        service_type: str,
        details: Mapping[str, Any],
        interval: TimeInterval,
        contact_info: str | None,
        done: bool,
        *,
        created_at: datetime,
    ) -> Booking: ...

    async def list_all_bookings(self) -> list[Booking]: ...

    async def delete_booking(self, booking_id: int) -> bool: ...

    async def set_done(self, booking_id: int, done: bool) -> Booking | None: ...


class InMemoryBookingStore:
    """
    Simple in-memory booking store.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[int, Booking] = {}
        self._ids = itertools.count(1)

    async def query_overlapping(self, start: datetime, end: datetime) -> list[Booking]:
        return sorted(
            (
                b
                for b in self._store.values()
                if b.interval.end > start and b.interval.start < end
            ),
            key=_start_key,
        )

    async def insert_booking(
        self,
        service_type: str,
        details: Mapping[str, Any],
        interval: TimeInterval,
        contact_info: str | None = None,
        done: bool = False,
        *,
        created_at: datetime,
    ) -> Booking:
        booking = Booking(
            id=next(self._ids),
            service_type=service_type,
            details=dict(details),
            interval=interval,
            created_at=created_at,
            contact_info=contact_info,
            done=done,
        )
        self._store[booking.id] = booking
        return booking

    async def list_all_bookings(self) -> list[Booking]:
        return sorted(self._store.values(), key=_start_key)

    async def delete_booking(self, booking_id: int) -> bool:
        return self._store.pop(booking_id, None) is not None

    async def set_done(self, booking_id: int, done: bool) -> Booking | None:
        booking = self._store.get(booking_id)
        if booking is None:
            return None
        booking = booking.model_copy(update={"done": done})
        self._store[booking_id] = booking
        return booking

    def get(self, booking_id: int) -> Booking | None:
        return self._store.get(booking_id)

    def __len__(self) -> int:
        return len(self._store)


def _start_key(booking: Booking) -> tuple[datetime, int]:
    return booking.interval.start, booking.id
