import asyncio
import os
import sys
from datetime import datetime

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kalbook.schemas.appointment import AppointmentRequest, CancelRequest
from kalbook.schemas.reschedule import (
    RescheduleCreateRequest,
    RescheduleDecisionRequest,
    RescheduleRejectRequest,
)
from kalbook.schemas.scheduling import ActivityStatus, ActivityType, RescheduleStatus
from kalbook.schemas.settings import (
    DEFAULT_REJECTION_MESSAGE,
    BusinessSettings,
    RescheduleSettings,
)
from kalbook.services.appointment import AppointmentService
from kalbook.services.clock import FixedClock
from kalbook.services.exceptions import (
    AppointmentCancelledError,
    ApprovalConflict,
    NoOpReschedule,
    RequestAlreadyProcessed,
    RescheduleNotAllowed,
    SlotNoLongerAvailable,
    ValidationError,
)
from kalbook.services.locks import KeyedLocks
from kalbook.services.mock_store import InMemoryBookingStore
from kalbook.services.reschedule import RescheduleService


class Harness:
    def __init__(self, **reschedule_settings) -> None:
        self.store = InMemoryBookingStore()
        self.store.set_business_settings(
            BusinessSettings(reschedule=RescheduleSettings(**reschedule_settings))
        )
        self.clock = FixedClock(datetime(2026, 10, 19, 8, 0))
        locks = KeyedLocks()
        self.appointments = AppointmentService(self.store, self.clock, locks=locks)
        self.reschedules = RescheduleService(self.store, self.clock, locks=locks)

    def book(self, start: str = "2026-10-19T09:00:00", customer_id: str = "CUS-00001"):
        return asyncio.run(
            self.appointments.book(
                AppointmentRequest(
                    service_id="svc-haircut",
                    worker_id="wrk-dana",
                    start=start,
                    customer_id=customer_id,
                )
            )
        )

    def request(self, appointment_id: str, start: str, end: str):
        return asyncio.run(
            self.reschedules.request(
                RescheduleCreateRequest(
                    appointment_id=appointment_id, requested_start=start, requested_end=end
                )
            )
        )


def test_same_start_is_a_noop() -> None:
    harness = Harness()
    appointment = harness.book()

    with pytest.raises(NoOpReschedule):
        harness.request(appointment.id, "2026-10-19T09:00:00", "2026-10-19T09:30:00")
    assert harness.store.reschedule_requests == {}


def test_approval_required_leaves_appointment_untouched() -> None:
    harness = Harness(require_approval=True)
    appointment = harness.book()

    outcome = harness.request(appointment.id, "2026-10-19T10:00:00", "2026-10-19T10:30:00")

    assert outcome.outcome == "pending"
    assert outcome.request.status == RescheduleStatus.PENDING
    assert outcome.request.original_start == appointment.start
    assert harness.store.appointments[appointment.id].start == appointment.start
    last = harness.store.activity[-1]
    assert last.activity_type == ActivityType.RESCHEDULE_REQUESTED
    assert last.status == ActivityStatus.PENDING


def test_approve_moves_appointment_once() -> None:
    harness = Harness()
    appointment = harness.book()
    pending = harness.request(appointment.id, "2026-10-19T10:00:00", "2026-10-19T10:30:00").request

    result = asyncio.run(
        harness.reschedules.approve(RescheduleDecisionRequest(request_id=pending.id))
    )

    assert result.appointment.start.hour == 10
    assert result.request.status == RescheduleStatus.APPROVED
    assert result.request.resolved_at is not None
    assert harness.store.activity[-1].activity_type == ActivityType.RESCHEDULE_APPROVED
    with pytest.raises(RequestAlreadyProcessed):
        asyncio.run(harness.reschedules.approve(RescheduleDecisionRequest(request_id=pending.id)))


def test_approval_conflict_keeps_request_pending() -> None:
    harness = Harness()
    appointment = harness.book()
    pending = harness.request(appointment.id, "2026-10-19T10:00:00", "2026-10-19T10:30:00").request
    blocker = harness.book("2026-10-19T10:00:00")

    with pytest.raises(ApprovalConflict) as excinfo:
        asyncio.run(harness.reschedules.approve(RescheduleDecisionRequest(request_id=pending.id)))

    assert excinfo.value.conflicting_appointment_id == blocker.id
    assert isinstance(excinfo.value, SlotNoLongerAvailable)
    stored = harness.store.reschedule_requests[pending.id]
    assert stored.status == RescheduleStatus.PENDING
    assert stored.conflict_detected_at is not None
    assert harness.store.appointments[appointment.id].start == appointment.start


def test_reject_uses_default_message() -> None:
    harness = Harness()
    appointment = harness.book()
    pending = harness.request(appointment.id, "2026-10-19T10:00:00", "2026-10-19T10:30:00").request

    rejected = asyncio.run(
        harness.reschedules.reject(RescheduleRejectRequest(request_id=pending.id))
    )

    assert rejected.status == RescheduleStatus.REJECTED
    assert rejected.rejection_message == DEFAULT_REJECTION_MESSAGE
    assert harness.store.appointments[appointment.id].start == appointment.start
    with pytest.raises(RequestAlreadyProcessed):
        asyncio.run(harness.reschedules.approve(RescheduleDecisionRequest(request_id=pending.id)))


def test_reject_keeps_custom_message() -> None:
    harness = Harness()
    appointment = harness.book()
    pending = harness.request(appointment.id, "2026-10-19T10:00:00", "2026-10-19T10:30:00").request

    rejected = asyncio.run(
        harness.reschedules.reject(
            RescheduleRejectRequest(request_id=pending.id, message="Fully booked that day")
        )
    )

    assert rejected.rejection_message == "Fully booked that day"
    assert harness.store.activity[-1].status == ActivityStatus.REJECTED


def test_without_approval_reschedule_applies_directly() -> None:
    harness = Harness(require_approval=False)
    appointment = harness.book()

    outcome = harness.request(appointment.id, "2026-10-19T11:00:00", "2026-10-19T11:30:00")

    assert outcome.outcome == "applied"
    assert outcome.appointment.start.hour == 11
    assert harness.store.appointments[appointment.id].start.hour == 11
    assert harness.store.reschedule_requests == {}


def test_direct_reschedule_into_taken_slot_fails() -> None:
    harness = Harness(require_approval=False)
    appointment = harness.book()
    harness.book("2026-10-19T11:00:00")

    with pytest.raises(SlotNoLongerAvailable):
        harness.request(appointment.id, "2026-10-19T11:00:00", "2026-10-19T11:30:00")
    assert harness.store.appointments[appointment.id].start.hour == 9


def test_moving_within_own_slot_is_allowed() -> None:
    harness = Harness(require_approval=False)
    appointment = harness.book()

    outcome = harness.request(appointment.id, "2026-10-19T09:15:00", "2026-10-19T09:45:00")

    assert outcome.appointment.start.minute == 15


def test_disabled_reschedule_persists_nothing() -> None:
    harness = Harness(allow_customer_reschedule=False)
    appointment = harness.book()

    with pytest.raises(RescheduleNotAllowed):
        harness.request(appointment.id, "2026-10-19T10:00:00", "2026-10-19T10:30:00")
    assert harness.store.reschedule_requests == {}


def test_cancelled_appointment_cannot_be_rescheduled() -> None:
    harness = Harness()
    appointment = harness.book()
    asyncio.run(harness.appointments.cancel(CancelRequest(appointment_id=appointment.id)))

    with pytest.raises(AppointmentCancelledError):
        harness.request(appointment.id, "2026-10-19T10:00:00", "2026-10-19T10:30:00")


@pytest.mark.parametrize(
    "start,end",
    [
        ("2026-10-19T10:00:00", "2026-10-19T10:00:00"),
        ("2026-10-19T10:00:00", "2026-10-19T11:00:00"),
        ("2026-10-19T07:00:00", "2026-10-19T07:30:00"),
        ("2026-10-23T10:00:00", "2026-10-23T10:30:00"),
        ("not-a-date", "2026-10-19T10:30:00"),
    ],
)
def test_invalid_requested_times(start: str, end: str) -> None:
    harness = Harness()
    appointment = harness.book()

    with pytest.raises(ValidationError):
        harness.request(appointment.id, start, end)


def test_requested_end_is_normalised_to_service_duration() -> None:
    harness = Harness()
    appointment = harness.book()

    pending = harness.request(appointment.id, "2026-10-19T10:00:00", "2026-10-19T10:33:00").request

    assert pending.requested_end.minute == 30


def test_only_one_pending_request_per_appointment() -> None:
    harness = Harness()
    appointment = harness.book()
    harness.request(appointment.id, "2026-10-19T10:00:00", "2026-10-19T10:30:00")

    with pytest.raises(ValidationError):
        harness.request(appointment.id, "2026-10-19T11:00:00", "2026-10-19T11:30:00")


def test_pending_queue_is_oldest_first() -> None:
    harness = Harness()
    first = harness.book()
    second = harness.book("2026-10-19T09:30:00")
    harness.request(first.id, "2026-10-19T10:00:00", "2026-10-19T10:30:00")
    harness.clock.advance_to(datetime(2026, 10, 19, 8, 5))
    harness.request(second.id, "2026-10-19T11:00:00", "2026-10-19T11:30:00")

    queue = asyncio.run(harness.reschedules.list_pending())

    assert queue.total == 2
    assert [item.appointment_id for item in queue.items] == [first.id, second.id]
