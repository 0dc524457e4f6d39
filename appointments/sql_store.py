"""
Durable booking store on SQLAlchemy's asyncio extension.

Timestamps are written as naive UTC so that range comparisons behave the
same on every backend, and converted back into the calendar zone on read.
"""

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime, tzinfo
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from appointments.errors import StoreFailure
from appointments.models import Booking, TimeInterval

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class BookingRow(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_type: Mapped[str] = mapped_column(String, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    contact_info: Mapped[str | None] = mapped_column(String, nullable=True)
    done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


def _to_utc_naive(moment: datetime) -> datetime:
    return moment.astimezone(UTC).replace(tzinfo=None)


class SqlBookingStore:
    def __init__(self, database_url: str, zone: tzinfo, *, echo: bool = False) -> None:
        self.zone = zone
        self.engine: AsyncEngine = create_async_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
        )
        self._sessions = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            autoflush=False,
            class_=AsyncSession,
        )

    async def init(self) -> None:
        async with self._guard("create schema"):
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def query_overlapping(self, start: datetime, end: datetime) -> list[Booking]:
        stmt = (
            select(BookingRow)
            .where(
                BookingRow.end_time > _to_utc_naive(start),
                BookingRow.start_time < _to_utc_naive(end),
            )
            .order_by(BookingRow.start_time, BookingRow.id)
        )
        async with self._guard("query overlapping bookings"):
            async with self._sessions() as session:
                rows = (await session.execute(stmt)).scalars().all()
        return [self._to_booking(row) for row in rows]

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
        row = BookingRow(
            service_type=service_type,
            details=dict(details),
            start_time=_to_utc_naive(interval.start),
            end_time=_to_utc_naive(interval.end),
            created_at=_to_utc_naive(created_at),
            contact_info=contact_info,
            done=done,
        )
        async with self._guard("insert booking"):
            async with self._sessions() as session, session.begin():
                session.add(row)
        return self._to_booking(row)

    async def list_all_bookings(self) -> list[Booking]:
        stmt = select(BookingRow).order_by(BookingRow.start_time, BookingRow.id)
        async with self._guard("list bookings"):
            async with self._sessions() as session:
                rows = (await session.execute(stmt)).scalars().all()
        return [self._to_booking(row) for row in rows]

    async def delete_booking(self, booking_id: int) -> bool:
        async with self._guard("delete booking"):
            async with self._sessions() as session, session.begin():
                result = await session.execute(
                    delete(BookingRow).where(BookingRow.id == booking_id)
                )
        return result.rowcount > 0

    async def set_done(self, booking_id: int, done: bool) -> Booking | None:
        async with self._guard("update booking"):
            async with self._sessions() as session, session.begin():
                row = await session.get(BookingRow, booking_id)
                if row is None:
                    return None
                row.done = done
        return self._to_booking(row)

    def _to_booking(self, row: BookingRow) -> Booking:
        return Booking(
            id=row.id,
            service_type=row.service_type,
            details=row.details or {},
            interval=TimeInterval(
                start=self._from_utc_naive(row.start_time),
                end=self._from_utc_naive(row.end_time),
            ),
            created_at=self._from_utc_naive(row.created_at),
            contact_info=row.contact_info,
            done=row.done,
        )

    def _from_utc_naive(self, moment: datetime) -> datetime:
        return moment.replace(tzinfo=UTC).astimezone(self.zone)

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.exception("Booking store failed to %s", operation)
            raise StoreFailure(f"Booking store failed to {operation}") from exc
