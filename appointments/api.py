import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from appointments.config import Settings, configure_logging, get_settings
from appointments.database import BookingStore, InMemoryBookingStore
from appointments.errors import InvalidRequest, SchedulingError
from appointments.models import (
    ServiceRequest,
    format_timestamp,
    parse_details,
    parse_timestamp,
)
from appointments.scheduler import Scheduler
from appointments.services import DEFAULT_CATALOG, ServiceCatalog
from appointments.sql_store import SqlBookingStore

logger = logging.getLogger(__name__)

router = APIRouter()

NowFn = Callable[[], datetime]


class BookingIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service_type: str | None = Field(default=None, alias="serviceType")
    start_time: str | None = Field(default=None, alias="startTime")
    details: Any = None
    # some clients send phone numbers as bare digits
    phone: str | None = Field(default=None, coerce_numbers_to_str=True)
    done: bool = False


class DoneUpdate(BaseModel):
    done: bool


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/services")
async def list_services(request: Request) -> list[dict]:
    scheduler: Scheduler = request.app.state.scheduler
    return [service.to_public() for service in scheduler.catalog]


@router.get("/book")
async def list_bookings(request: Request) -> list[dict]:
    store: BookingStore = request.app.state.store
    zone = request.app.state.settings.zone
    return [b.to_public(zone) for b in await store.list_all_bookings()]


@router.post("/book")
async def create_booking(payload: BookingIn, request: Request) -> dict:
    scheduler: Scheduler = request.app.state.scheduler
    zone = request.app.state.settings.zone

    if not payload.service_type or not payload.service_type.strip():
        raise InvalidRequest("Missing serviceType")

    service_request = ServiceRequest(
        service_type=payload.service_type,
        details=parse_details(payload.details),
        explicit_start=(
            parse_timestamp(payload.start_time, zone) if payload.start_time else None
        ),
    )

    if service_request.explicit_start is not None:
        booking = await scheduler.book_explicit(
            service_request, contact_info=payload.phone, done=payload.done
        )
        message = "The appointment was booked successfully"
    else:
        booking = await scheduler.book_auto(
            service_request, contact_info=payload.phone, done=payload.done
        )
        message = "The appointment was assigned successfully"

    return {
        "success": True,
        "message": message,
        "id": booking.id,
        "startTime": format_timestamp(booking.interval.start, zone),
        "endTime": format_timestamp(booking.interval.end, zone),
    }


@router.delete("/book/{booking_id}")
async def cancel_booking(booking_id: int, request: Request) -> dict:
    store: BookingStore = request.app.state.store
    if not await store.delete_booking(booking_id):
        raise HTTPException(status_code=404, detail="Booking not found")
    logger.info("Booking cancelled: #%d", booking_id)
    return {"success": True, "message": "The appointment was cancelled"}


@router.patch("/book/{booking_id}")
async def update_booking_done(
    booking_id: int, update: DoneUpdate, request: Request
) -> dict:
    store: BookingStore = request.app.state.store
    booking = await store.set_done(booking_id, update.done)
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    logger.info("Booking #%d marked done=%s", booking_id, update.done)
    return booking.to_public(request.app.state.settings.zone)


@router.get("/availability")
async def availability(
    request: Request,
    date: str | None = None,
    service_type: str = Query(default="", alias="serviceType"),
    details: str = "{}",
) -> dict:
    scheduler: Scheduler = request.app.state.scheduler
    zone = request.app.state.settings.zone
    if not date:
        raise InvalidRequest("Missing date")

    day = parse_timestamp(date, zone).date()
    starts = await scheduler.list_availability(
        service_type, parse_details(details), day
    )
    return {
        "success": True,
        "available": [format_timestamp(start, zone) for start in starts],
    }


async def scheduling_error_handler(
    request: Request, exc: SchedulingError
) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(
    settings: Settings | None = None,
    *,
    store: BookingStore | None = None,
    now_fn: NowFn | None = None,
    catalog: ServiceCatalog = DEFAULT_CATALOG,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    if store is None:
        if settings.database_url:
            store = SqlBookingStore(settings.database_url, settings.zone)
        else:
            store = InMemoryBookingStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if isinstance(store, SqlBookingStore):
            await store.init()
        yield
        if isinstance(store, SqlBookingStore):
            await store.dispose()

    app = FastAPI(title="Appointments API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.now_fn = now_fn or (lambda: datetime.now(settings.zone))
    # read through app.state so the clock can be swapped after startup
    app.state.scheduler = Scheduler.from_settings(
        settings, store, catalog=catalog, now_fn=lambda: app.state.now_fn()
    )

    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    app.include_router(router)
    return app
