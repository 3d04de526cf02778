"""Reschedule requests: applied directly or queued for admin approval.

A request moves from ``pending`` to exactly one of ``approved`` or
``rejected`` and never leaves a terminal state. The slot is re-validated
every time an appointment is actually moved.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from kalbook.schemas.reschedule import (
    PendingRescheduleResponse,
    RescheduleCreateRequest,
    RescheduleDecisionRequest,
    RescheduleOutcome,
    RescheduleRejectRequest,
)
from kalbook.schemas.scheduling import (
    ActivityStatus,
    ActivityType,
    Appointment,
    CreatedBy,
    RescheduleRequest,
    RescheduleStatus,
    Service,
)
from kalbook.schemas.settings import DEFAULT_REJECTION_MESSAGE
from kalbook.services.activity import ActivityLogService
from kalbook.services.calendar import WorkingCalendar
from kalbook.services.clock import Clock, parse_instant
from kalbook.services.conflicts import ConflictCheck, ConflictDetector
from kalbook.services.exceptions import (
    AppointmentCancelledError,
    ApprovalConflict,
    NoOpReschedule,
    NotFoundError,
    RequestAlreadyProcessed,
    RescheduleNotAllowed,
    SlotNoLongerAvailable,
    ValidationError,
)
from kalbook.services.locks import (
    KeyedLocks,
    appointment_key,
    default_locks,
    reschedule_key,
    slot_key,
)
from kalbook.services.store import BookingStore

logger = logging.getLogger(__name__)

DURATION_TOLERANCE = timedelta(minutes=5)


class RescheduleService:
    def __init__(
        self,
        store: BookingStore,
        clock: Clock,
        *,
        locks: KeyedLocks | None = None,
        detector: ConflictDetector | None = None,
        activity: ActivityLogService | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._locks = locks or default_locks()
        self._detector = detector or ConflictDetector()
        self._activity = activity or ActivityLogService(store, clock)

    async def request(self, request: RescheduleCreateRequest) -> RescheduleOutcome:
        """Ask to move an appointment to a new start time.

        Returns ``outcome="applied"`` with the moved appointment when the
        business does not require approval, otherwise ``outcome="pending"``
        with the queued request.
        """

        logger.info(
            "Reschedule requested for %s to %s", request.appointment_id, request.requested_start
        )
        async with self._locks.hold(appointment_key(request.appointment_id)):
            appointment = await self._appointment(request.appointment_id)
            settings = await self._store.get_business_settings()
            if not settings.reschedule.allow_customer_reschedule:
                logger.warning("Customer reschedule disabled; refusing %s", appointment.id)
                raise RescheduleNotAllowed("This business does not allow customers to reschedule")
            if appointment.is_cancelled:
                raise AppointmentCancelledError(f"Appointment {appointment.id} is cancelled")

            start = parse_instant(request.requested_start, self._clock.tz)
            end = parse_instant(request.requested_end, self._clock.tz)
            if end <= start:
                raise ValidationError("Requested end must be after requested start")

            service = await self._service(appointment.service_id)
            duration = timedelta(minutes=service.duration_minutes)
            if abs((end - start) - duration) > DURATION_TOLERANCE:
                raise ValidationError(
                    f"Requested slot must last {service.duration_minutes} minutes"
                )
            end = start + duration

            if start < self._clock.now():
                raise ValidationError("Cannot reschedule to a time in the past")
            calendar = WorkingCalendar(settings.calendar, self._clock)
            if not calendar.fits_working_hours(start, end):
                raise ValidationError("Requested time is outside working hours")
            _ensure_movable(appointment, start)

            pending = await self._store.list_reschedule_requests(
                appointment_id=appointment.id, status=RescheduleStatus.PENDING
            )
            if pending:
                raise ValidationError(
                    f"Appointment {appointment.id} already has a pending reschedule request"
                )

            if not settings.reschedule.require_approval:
                moved = await self._apply(appointment, service, start, end, conflict=SlotNoLongerAvailable)
                created = None
            else:
                # Advisory only: the slot is checked again when an admin approves.
                check = await self._check_slot(appointment, service, start)
                if check.has_conflict:
                    raise SlotNoLongerAvailable(conflicting_appointment_id=check.conflicting.id)

                moved = None
                created = await self._store.insert_reschedule_request(
                    RescheduleRequest(
                        id=self._store.next_id("reschedule"),
                        appointment_id=appointment.id,
                        customer_id=appointment.customer_id,
                        original_start=appointment.start,
                        original_end=appointment.end,
                        requested_start=start,
                        requested_end=end,
                        status=RescheduleStatus.PENDING,
                        created_at=self._clock.now(),
                    )
                )

        if created is None:
            await self._activity.record(
                ActivityType.RESCHEDULE_APPROVED,
                customer_id=appointment.customer_id,
                appointment_id=appointment.id,
                created_by=CreatedBy.CUSTOMER,
                status=ActivityStatus.APPROVED,
                metadata=_move_metadata(appointment, start, end, auto_approved=True),
            )
            return RescheduleOutcome(outcome="applied", appointment=moved)

        await self._activity.record(
            ActivityType.RESCHEDULE_REQUESTED,
            customer_id=appointment.customer_id,
            appointment_id=appointment.id,
            created_by=CreatedBy.CUSTOMER,
            status=ActivityStatus.PENDING,
            metadata=_move_metadata(appointment, start, end, request_id=created.id),
        )
        return RescheduleOutcome(outcome="pending", request=created)

    async def approve(self, request: RescheduleDecisionRequest) -> RescheduleOutcome:
        logger.info("Approving reschedule request %s", request.request_id)
        # The request never changes appointment, so its id is safe to read unlocked.
        unlocked = await self._pending_request(request.request_id)
        keys = (appointment_key(unlocked.appointment_id), reschedule_key(request.request_id))
        async with self._locks.hold(*keys):
            pending = await self._pending_request(request.request_id)
            appointment = await self._appointment(pending.appointment_id)
            service = await self._service(appointment.service_id)

            try:
                moved = await self._apply(
                    appointment,
                    service,
                    pending.requested_start,
                    pending.requested_end,
                    conflict=ApprovalConflict,
                )
            except ApprovalConflict:
                await self._store.update_reschedule_request(
                    pending.model_copy(update={"conflict_detected_at": self._clock.now()})
                )
                raise

            approved = await self._store.update_reschedule_request(
                pending.model_copy(
                    update={
                        "status": RescheduleStatus.APPROVED,
                        "resolved_at": self._clock.now(),
                    }
                )
            )

        await self._activity.record(
            ActivityType.RESCHEDULE_APPROVED,
            customer_id=appointment.customer_id,
            appointment_id=appointment.id,
            created_by=CreatedBy.ADMIN,
            status=ActivityStatus.APPROVED,
            metadata=_move_metadata(
                appointment, approved.requested_start, approved.requested_end, request_id=approved.id
            ),
        )
        return RescheduleOutcome(outcome="applied", appointment=moved, request=approved)

    async def reject(self, request: RescheduleRejectRequest) -> RescheduleRequest:
        logger.info("Rejecting reschedule request %s", request.request_id)
        message = (request.message or "").strip() or DEFAULT_REJECTION_MESSAGE
        async with self._locks.hold(reschedule_key(request.request_id)):
            pending = await self._pending_request(request.request_id)
            rejected = await self._store.update_reschedule_request(
                pending.model_copy(
                    update={
                        "status": RescheduleStatus.REJECTED,
                        "rejection_message": message,
                        "resolved_at": self._clock.now(),
                    }
                )
            )

        await self._activity.record(
            ActivityType.RESCHEDULE_REJECTED,
            customer_id=rejected.customer_id,
            appointment_id=rejected.appointment_id,
            created_by=CreatedBy.ADMIN,
            status=ActivityStatus.REJECTED,
            metadata={"request_id": rejected.id, "message": message},
        )
        return rejected

    async def list_pending(self) -> PendingRescheduleResponse:
        pending = await self._store.list_reschedule_requests(status=RescheduleStatus.PENDING)
        pending.sort(key=lambda item: (item.created_at or datetime.min.replace(tzinfo=self._clock.tz), item.id))
        return PendingRescheduleResponse(total=len(pending), items=pending)

    async def _apply(
        self,
        appointment: Appointment,
        service: Service,
        start: datetime,
        end: datetime,
        *,
        conflict: type,
    ) -> Appointment:
        """Move ``appointment`` to ``[start, end)``; callers hold its appointment lock."""

        keys = {
            slot_key(appointment.worker_id, appointment.start.date()),
            slot_key(appointment.worker_id, start.date()),
        }
        async with self._locks.hold(*keys):
            # Joins only hold slot locks, so the stored record is read again here.
            current = await self._appointment(appointment.id)
            _ensure_movable(current, start)
            check = await self._check_slot(current, service, start)
            if check.has_conflict:
                logger.warning(
                    "Cannot move %s to %s: conflicts with %s",
                    current.id,
                    start.isoformat(),
                    check.conflicting.id,
                )
                raise conflict(conflicting_appointment_id=check.conflicting.id)
            return await self._store.update_appointment(
                current.model_copy(
                    update={"start": start, "end": end, "updated_at": self._clock.now()}
                )
            )

    async def _check_slot(
        self, appointment: Appointment, service: Service, start: datetime
    ) -> ConflictCheck:
        existing = await self._store.list_appointments(
            worker_id=appointment.worker_id, on_date=start.date()
        )
        # Moving a booking never joins another session, so group rules do not apply.
        return self._detector.find_conflict(
            start,
            service.duration_minutes,
            appointment.worker_id,
            existing,
            exclude_appointment_id=appointment.id,
        )

    async def _appointment(self, appointment_id: str) -> Appointment:
        appointment = await self._store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    async def _service(self, service_id: str) -> Service:
        service = await self._store.get_service(service_id)
        if service is None:
            raise NotFoundError(f"Service {service_id} not found")
        return service

    async def _pending_request(self, request_id: str) -> RescheduleRequest:
        found: Optional[RescheduleRequest] = await self._store.get_reschedule_request(request_id)
        if found is None:
            raise NotFoundError(f"Reschedule request {request_id} not found")
        if found.status != RescheduleStatus.PENDING:
            raise RequestAlreadyProcessed(
                f"Reschedule request {request_id} was already {found.status.value}"
            )
        return found


def _move_metadata(
    appointment: Appointment,
    start: datetime,
    end: datetime,
    **extra,
) -> dict:
    return {
        "original_start": appointment.start.isoformat(),
        "original_end": appointment.end.isoformat(),
        "requested_start": start.isoformat(),
        "requested_end": end.isoformat(),
        **extra,
    }


def _ensure_movable(appointment: Appointment, start: datetime) -> None:
    if appointment.is_cancelled:
        raise AppointmentCancelledError(f"Appointment {appointment.id} is cancelled")
    if start == appointment.start:
        raise NoOpReschedule("Please choose a different time than the current one")
    if appointment.is_group_appointment and len(appointment.participant_ids) > 1:
        raise ValidationError("A group session with other participants cannot be moved")
