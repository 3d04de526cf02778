from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Sequence

from kalbook.schemas.availability import (
    AvailabilityRequest,
    AvailabilityResponse,
    AvailableDatesRequest,
    AvailableDatesResponse,
    GroupSessionRequest,
    GroupSessionResponse,
    GroupSessionSummary,
)
from kalbook.schemas.scheduling import Appointment, Service, Worker
from kalbook.services.calendar import WorkingCalendar, format_hhmm, minute_of_day
from kalbook.services.clock import Clock
from kalbook.services.conflicts import ConflictDetector, group_capacity, participant_count
from kalbook.services.exceptions import NotFoundError, ServiceInactive
from kalbook.services.store import BookingStore

logger = logging.getLogger(__name__)

DEFAULT_LEAD_TIME_MINUTES = 15


class AvailabilityResolver:
    """Computes the bookable start times for a service on one date.

    The result is advisory: it is recomputed on every call and the booking
    path re-validates the chosen slot before committing.
    """

    def __init__(
        self,
        calendar: WorkingCalendar,
        clock: Clock,
        *,
        detector: ConflictDetector | None = None,
        lead_time_minutes: int = DEFAULT_LEAD_TIME_MINUTES,
    ) -> None:
        self._calendar = calendar
        self._clock = clock
        self._detector = detector or ConflictDetector()
        self._lead_time_minutes = lead_time_minutes

    def resolve(
        self,
        service: Service,
        day: date,
        worker: Optional[Worker] = None,
        *,
        workers: Iterable[Worker] = (),
        appointments: Sequence[Appointment] = (),
    ) -> List[str]:
        today = self._clock.now().date()
        if day < today or not self._calendar.is_working_day(day):
            return []

        window = self._calendar.working_window()
        if window is None:
            return []
        _, window_end = window

        if worker is not None:
            candidates = [worker] if worker.active and worker.offers(service.id) else []
        else:
            candidates = [w for w in workers if w.active and w.offers(service.id)]
        if not candidates:
            return []

        earliest = None
        if day == today:
            earliest = minute_of_day(self._clock.now()) + self._lead_time_minutes

        slots: List[str] = []
        for slot_minute in self._calendar.slot_minutes():
            if slot_minute + service.duration_minutes > window_end:
                continue
            if earliest is not None and slot_minute < earliest:
                continue
            start = self._slot_start(day, slot_minute)
            if any(
                not self._detector.has_conflict(
                    start,
                    service.duration_minutes,
                    candidate.id,
                    appointments,
                    service=service,
                )
                for candidate in candidates
            ):
                slots.append(format_hhmm(slot_minute))
        return slots

    def _slot_start(self, day: date, slot_minute: int) -> datetime:
        return datetime.combine(day, time(), tzinfo=self._clock.tz) + timedelta(minutes=slot_minute)


class AvailabilityService:
    """Loads what the resolver needs from the store and lists bookable slots."""

    def __init__(
        self,
        store: BookingStore,
        clock: Clock,
        *,
        lead_time_minutes: int = DEFAULT_LEAD_TIME_MINUTES,
        horizon_days: int = 30,
    ) -> None:
        self._store = store
        self._clock = clock
        self._lead_time_minutes = lead_time_minutes
        self._horizon_days = horizon_days

    async def _calendar(self) -> WorkingCalendar:
        settings = await self._store.get_business_settings()
        return WorkingCalendar(settings.calendar, self._clock)

    async def list_availability(self, request: AvailabilityRequest) -> AvailabilityResponse:
        logger.info(
            "Listing availability for service %s on %s (worker=%s)",
            request.service_id,
            request.date,
            request.worker_id,
        )
        service = await self._store.get_service(request.service_id)
        if service is None:
            raise NotFoundError(f"Service {request.service_id} not found")
        if not service.active:
            raise ServiceInactive(f"Service {service.name} is not active")

        worker: Optional[Worker] = None
        workers: List[Worker] = []
        if request.worker_id:
            worker = await self._store.get_worker(request.worker_id)
            if worker is None:
                raise NotFoundError(f"Worker {request.worker_id} not found")
        else:
            workers = await self._store.list_workers(service_id=service.id)

        calendar = await self._calendar()
        if not calendar.is_working_day(request.date):
            return AvailabilityResponse(
                service_id=service.id,
                date=request.date,
                worker_id=request.worker_id,
                slots=[],
                message="Requested date is not a working day",
            )

        appointments = await self._store.list_appointments(on_date=request.date)
        resolver = AvailabilityResolver(
            calendar, self._clock, lead_time_minutes=self._lead_time_minutes
        )
        slots = resolver.resolve(
            service,
            request.date,
            worker,
            workers=workers,
            appointments=appointments,
        )
        return AvailabilityResponse(
            service_id=service.id,
            date=request.date,
            worker_id=request.worker_id,
            slots=slots,
        )

    async def available_dates(self, request: AvailableDatesRequest) -> AvailableDatesResponse:
        calendar = await self._calendar()
        horizon = request.horizon_days or self._horizon_days
        return AvailableDatesResponse(dates=calendar.available_dates(horizon))

    async def list_group_sessions(self, request: GroupSessionRequest) -> GroupSessionResponse:
        """Upcoming group sessions of a service that still have free spots."""

        service = await self._store.get_service(request.service_id)
        if service is None:
            raise NotFoundError(f"Service {request.service_id} not found")
        if not service.is_group:
            return GroupSessionResponse(service_id=service.id, is_group_service=False)

        appointments = await self._store.list_appointments(
            service_id=service.id,
            worker_id=request.worker_id,
            date_from=request.date_from,
            date_to=request.date_to,
        )
        sessions = []
        for appointment in appointments:
            if appointment.is_cancelled or not appointment.is_group_appointment:
                continue
            capacity = group_capacity(appointment, service)
            current = participant_count(appointment)
            if current >= capacity:
                continue
            sessions.append(
                GroupSessionSummary(
                    appointment_id=appointment.id,
                    worker_id=appointment.worker_id,
                    start=appointment.start,
                    end=appointment.end,
                    current_participants=current,
                    max_capacity=capacity,
                    available_spots=capacity - current,
                )
            )
        sessions.sort(key=lambda session: session.start)
        return GroupSessionResponse(service_id=service.id, is_group_service=True, sessions=sessions)
