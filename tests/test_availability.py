import asyncio
import os
import sys
from datetime import date, datetime, timedelta, timezone

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kalbook.schemas.availability import (
    AvailabilityRequest,
    AvailableDatesRequest,
    GroupSessionRequest,
)
from kalbook.schemas.scheduling import Appointment, Service, Worker
from kalbook.schemas.settings import BusinessSettings, CalendarSettings, WorkingHours
from kalbook.services.availability import AvailabilityResolver, AvailabilityService
from kalbook.services.calendar import WorkingCalendar
from kalbook.services.clock import FixedClock
from kalbook.services.exceptions import NotFoundError, ServiceInactive
from kalbook.services.mock_store import InMemoryBookingStore

MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
FRIDAY = date(2026, 10, 23)

HAIRCUT = Service(id="svc-haircut", name="Haircut", duration_minutes=30)
COLOR = Service(id="svc-color", name="Color", duration_minutes=90)
PILATES = Service(
    id="svc-pilates", name="Pilates", duration_minutes=60, is_group_service=True, max_capacity=3
)
DANA = Worker(id="wrk-dana", name="Dana", service_ids={"svc-haircut", "svc-color"})
NOA = Worker(id="wrk-noa", name="Noa", service_ids={"svc-haircut", "svc-pilates"})

MORNING = CalendarSettings(working_hours=WorkingHours(start="09:00", end="12:00"))


def _resolver(now: datetime, config: CalendarSettings = MORNING) -> AvailabilityResolver:
    clock = FixedClock(now)
    return AvailabilityResolver(WorkingCalendar(config, clock), clock)


def _booking(appointment_id: str, worker: Worker, hour: int, minute: int = 0, **fields) -> Appointment:
    start = datetime(2026, 10, 19, hour, minute, tzinfo=timezone.utc)
    minutes = fields.pop("minutes", 30)
    return Appointment(
        id=appointment_id,
        service_id=fields.pop("service_id", "svc-haircut"),
        worker_id=worker.id,
        customer_id="CUS-00001",
        start=start,
        end=start + timedelta(minutes=minutes),
        **fields,
    )


def test_every_slot_fits_inside_working_hours() -> None:
    resolver = _resolver(datetime(2026, 10, 18, 8, 0))

    slots = resolver.resolve(COLOR, MONDAY, workers=[DANA])

    assert slots == ["09:00", "09:30", "10:00", "10:30"]


def test_lead_time_applies_only_to_today() -> None:
    config = CalendarSettings(slot_gap_minutes=5)
    resolver = _resolver(datetime(2026, 10, 19, 14, 50), config)

    today = resolver.resolve(HAIRCUT, MONDAY, workers=[DANA])
    tomorrow = resolver.resolve(HAIRCUT, TUESDAY, workers=[DANA])

    assert today[0] == "15:05"
    assert "15:00" not in today
    assert tomorrow[0] == "09:00"


def test_lead_time_with_default_grid_skips_to_next_slot() -> None:
    resolver = _resolver(datetime(2026, 10, 19, 14, 50), CalendarSettings())

    assert resolver.resolve(HAIRCUT, MONDAY, workers=[DANA])[0] == "15:30"


def test_past_and_non_working_days_have_no_slots() -> None:
    resolver = _resolver(datetime(2026, 10, 20, 8, 0))

    assert resolver.resolve(HAIRCUT, MONDAY, workers=[DANA]) == []
    assert resolver.resolve(HAIRCUT, FRIDAY, workers=[DANA]) == []


def test_slot_stays_open_while_any_worker_is_free() -> None:
    resolver = _resolver(datetime(2026, 10, 18, 8, 0))
    one_booked = [_booking("APT-1", DANA, 9)]
    both_booked = one_booked + [_booking("APT-2", NOA, 9)]

    assert "09:00" in resolver.resolve(HAIRCUT, MONDAY, workers=[DANA, NOA], appointments=one_booked)
    assert "09:00" not in resolver.resolve(
        HAIRCUT, MONDAY, workers=[DANA, NOA], appointments=both_booked
    )
    assert "09:00" not in resolver.resolve(HAIRCUT, MONDAY, DANA, appointments=one_booked)


def test_specific_worker_must_be_active_and_offer_service() -> None:
    resolver = _resolver(datetime(2026, 10, 18, 8, 0))
    inactive = DANA.model_copy(update={"active": False})

    assert resolver.resolve(HAIRCUT, MONDAY, inactive) == []
    assert resolver.resolve(PILATES, MONDAY, DANA) == []


def test_group_session_slot_open_until_full() -> None:
    resolver = _resolver(datetime(2026, 10, 18, 8, 0))

    def session(participants: int) -> Appointment:
        return _booking(
            "APT-G",
            NOA,
            9,
            minutes=60,
            service_id="svc-pilates",
            is_group_appointment=True,
            current_participants=participants,
            max_capacity=3,
        )

    assert "09:00" in resolver.resolve(PILATES, MONDAY, NOA, appointments=[session(2)])
    assert "09:00" not in resolver.resolve(PILATES, MONDAY, NOA, appointments=[session(3)])
    # Overlapping but not the same start: blocked either way.
    assert "09:30" not in resolver.resolve(PILATES, MONDAY, NOA, appointments=[session(1)])


def _service(now: datetime = datetime(2026, 10, 18, 8, 0)) -> tuple:
    store = InMemoryBookingStore()
    store.set_business_settings(BusinessSettings(calendar=MORNING))
    return AvailabilityService(store, FixedClock(now)), store


def test_service_lists_slots_across_workers() -> None:
    service, _ = _service()

    response = asyncio.run(
        service.list_availability(AvailabilityRequest(service_id="svc-haircut", date=MONDAY))
    )

    assert response.slots == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
    assert response.message is None


def test_service_explains_non_working_day() -> None:
    service, _ = _service()

    response = asyncio.run(
        service.list_availability(AvailabilityRequest(service_id="svc-haircut", date=FRIDAY))
    )

    assert response.slots == []
    assert response.message == "Requested date is not a working day"


def test_service_rejects_unknown_and_inactive_services() -> None:
    service, _ = _service()

    with pytest.raises(NotFoundError):
        asyncio.run(service.list_availability(AvailabilityRequest(service_id="nope", date=MONDAY)))
    with pytest.raises(ServiceInactive):
        asyncio.run(
            service.list_availability(AvailabilityRequest(service_id="svc-keratin", date=MONDAY))
        )
    with pytest.raises(NotFoundError):
        asyncio.run(
            service.list_availability(
                AvailabilityRequest(service_id="svc-haircut", date=MONDAY, worker_id="wrk-ghost")
            )
        )


def test_available_dates_use_horizon() -> None:
    service, _ = _service()

    response = asyncio.run(service.available_dates(AvailableDatesRequest(horizon_days=3)))

    assert response.dates == [date(2026, 10, 18), MONDAY, TUESDAY]


def test_group_sessions_list_only_sessions_with_room() -> None:
    service, store = _service()
    for appointment_id, participants in (("APT-A", 2), ("APT-B", 3)):
        store.appointments[appointment_id] = _booking(
            appointment_id,
            NOA,
            9 if appointment_id == "APT-A" else 11,
            minutes=60,
            service_id="svc-pilates",
            is_group_appointment=True,
            current_participants=participants,
            max_capacity=3,
        )

    response = asyncio.run(service.list_group_sessions(GroupSessionRequest(service_id="svc-pilates")))

    assert response.is_group_service
    assert [session.appointment_id for session in response.sessions] == ["APT-A"]
    assert response.sessions[0].available_spots == 1


def test_group_sessions_for_individual_service_are_empty() -> None:
    service, _ = _service()

    response = asyncio.run(service.list_group_sessions(GroupSessionRequest(service_id="svc-haircut")))

    assert not response.is_group_service
    assert response.sessions == []
