from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from kalbook.clients.store import BookingStoreClient, HttpBookingStore
from kalbook.config import Settings, get_settings
from kalbook.services import (
    ActivityLogService,
    AppointmentService,
    AvailabilityService,
    RescheduleService,
)
from kalbook.services.clock import Clock, SystemClock
from kalbook.services.mock_store import get_mock_store
from kalbook.services.store import BookingStore


@lru_cache(maxsize=1)
def get_http_store_cached() -> HttpBookingStore:
    settings = get_settings()
    return HttpBookingStore(
        BookingStoreClient(
            settings.store_base_url,
            timeout=settings.store_timeout,
            token=settings.store_token,
        )
    )


def uses_mock_store(settings: Settings) -> bool:
    return settings.use_mock_data or not settings.store_base_url


def get_store(settings: Settings = Depends(get_settings)) -> BookingStore:
    if uses_mock_store(settings):
        return get_mock_store()
    return get_http_store_cached()


async def get_clock(
    settings: Settings = Depends(get_settings),
    store: BookingStore = Depends(get_store),
) -> Clock:
    """Clock in the business timezone, falling back to ``KALBOOK_BUSINESS_TIMEZONE``."""

    business = await store.get_business_settings()
    return SystemClock(business.timezone or settings.business_timezone)


def get_activity_service(
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> ActivityLogService:
    return ActivityLogService(store, clock)


def get_availability_service(
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> AvailabilityService:
    return AvailabilityService(
        store,
        clock,
        lead_time_minutes=settings.lead_time_minutes,
        horizon_days=settings.booking_horizon_days,
    )


def get_appointment_service(
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> AppointmentService:
    return AppointmentService(store, clock, lead_time_minutes=settings.lead_time_minutes)


def get_reschedule_service(
    store: BookingStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
) -> RescheduleService:
    return RescheduleService(store, clock)
