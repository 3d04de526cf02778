from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional

from kalbook.schemas.appointment import (
    AppointmentListRequest,
    AppointmentListResponse,
    AppointmentRequest,
    CancelRequest,
    CustomerDetails,
    LeaveGroupRequest,
)
from kalbook.schemas.scheduling import (
    ActivityType,
    Appointment,
    AppointmentStatus,
    CreatedBy,
    Customer,
    RescheduleStatus,
    Service,
    Worker,
)
from kalbook.services.activity import ActivityLogService
from kalbook.services.availability import DEFAULT_LEAD_TIME_MINUTES
from kalbook.services.calendar import WorkingCalendar
from kalbook.services.clock import Clock, parse_instant
from kalbook.services.conflicts import ConflictDetector, group_capacity, participant_count
from kalbook.services.exceptions import (
    NotFoundError,
    ServiceInactive,
    SlotNoLongerAvailable,
    ValidationError,
    WorkerInactive,
)
from kalbook.services.locks import (
    KeyedLocks,
    appointment_key,
    default_locks,
    phone_key,
    reschedule_key,
    slot_key,
)
from kalbook.services.store import BookingStore, normalize_phone

logger = logging.getLogger(__name__)

CANCELLED_REQUEST_MESSAGE = "The appointment was cancelled."


async def require_service(store: BookingStore, service_id: str) -> Service:
    service = await store.get_service(service_id)
    if service is None:
        raise NotFoundError(f"Service {service_id} not found")
    if not service.active:
        raise ServiceInactive(f"Service {service.name} is not active")
    return service


async def require_worker(store: BookingStore, worker_id: str, service: Service) -> Worker:
    worker = await store.get_worker(worker_id)
    if worker is None:
        raise NotFoundError(f"Worker {worker_id} not found")
    if not worker.active:
        raise WorkerInactive(f"Worker {worker.name} is not active")
    if not worker.offers(service.id):
        raise ValidationError(f"Worker {worker.name} does not offer {service.name}")
    return worker


class AppointmentService:
    """Creates and cancels appointments.

    Availability listings are advisory, so every booking re-checks the slot
    against the store while holding the ``(worker, date)`` lock. Two
    concurrent bookings of one slot therefore resolve to one success and one
    :class:`SlotNoLongerAvailable`.
    """

    def __init__(
        self,
        store: BookingStore,
        clock: Clock,
        *,
        locks: KeyedLocks | None = None,
        detector: ConflictDetector | None = None,
        activity: ActivityLogService | None = None,
        lead_time_minutes: int = DEFAULT_LEAD_TIME_MINUTES,
    ) -> None:
        self._store = store
        self._clock = clock
        self._locks = locks or default_locks()
        self._detector = detector or ConflictDetector()
        self._activity = activity or ActivityLogService(store, clock)
        self._lead_time_minutes = lead_time_minutes

    async def book(self, request: AppointmentRequest) -> Appointment:
        logger.info(
            "Booking %s with %s at %s", request.service_id, request.worker_id, request.start
        )
        service = await require_service(self._store, request.service_id)
        worker = await require_worker(self._store, request.worker_id, service)

        start = parse_instant(request.start, self._clock.tz)
        end = start + timedelta(minutes=service.duration_minutes)
        if start < self._clock.now():
            raise ValidationError("Cannot create appointments in the past")

        settings = await self._store.get_business_settings()
        calendar = WorkingCalendar(settings.calendar, self._clock)
        if not calendar.fits_working_hours(start, end):
            raise ValidationError("Appointment time is outside working hours")
        if not calendar.is_slot_start(start):
            raise ValidationError(
                f"Appointments start on the {settings.calendar.slot_gap_minutes} minute slot grid"
            )
        if start < self._clock.now() + timedelta(minutes=self._lead_time_minutes):
            raise ValidationError(
                f"Appointments must be booked at least {self._lead_time_minutes} minutes ahead"
            )

        known_customer = await self._known_customer(request.customer_id)
        details = None if known_customer else _require_details(request.customer)

        keys = [slot_key(worker.id, start.date())]
        if details is not None:
            keys.append(phone_key(normalize_phone(details.phone)))

        async with self._locks.hold(*keys):
            existing = await self._store.list_appointments(worker_id=worker.id, on_date=start.date())
            check = self._detector.find_conflict(
                start, service.duration_minutes, worker.id, existing, service=service
            )
            if check.has_conflict:
                logger.warning(
                    "Slot %s for worker %s conflicts with %s",
                    start.isoformat(),
                    worker.id,
                    check.conflicting.id,
                )
                raise SlotNoLongerAvailable(conflicting_appointment_id=check.conflicting.id)

            customer = known_customer or await self._lookup_or_create(details)
            now = self._clock.now()
            if check.joinable is not None:
                appointment = await self._join(check.joinable, customer, service, now)
            else:
                appointment = await self._store.insert_appointment(
                    Appointment(
                        id=self._store.next_id("appointment"),
                        service_id=service.id,
                        worker_id=worker.id,
                        customer_id=customer.id,
                        start=start,
                        end=end,
                        status=AppointmentStatus.CONFIRMED,
                        created_by=request.created_by,
                        is_group_appointment=service.is_group,
                        current_participants=1 if service.is_group else None,
                        max_capacity=service.max_capacity if service.is_group else None,
                        participant_ids=[customer.id],
                        created_at=now,
                        updated_at=now,
                    )
                )

        await self._activity.record(
            ActivityType.APPOINTMENT_CREATED,
            customer_id=customer.id,
            appointment_id=appointment.id,
            created_by=request.created_by,
            metadata={
                "service_id": service.id,
                "worker_id": worker.id,
                "start": appointment.start.isoformat(),
                "group": appointment.is_group_appointment,
            },
        )
        return appointment

    async def _known_customer(self, customer_id: Optional[str]) -> Optional[Customer]:
        if not customer_id:
            return None
        customer = await self._store.get_customer(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        if customer.blocked:
            raise ValidationError("Customer is blocked from booking")
        return customer

    async def _lookup_or_create(self, details: CustomerDetails) -> Customer:
        customer = await self._store.find_customer_by_phone(details.phone)
        if customer is not None:
            if customer.blocked:
                raise ValidationError("Customer is blocked from booking")
            return customer
        logger.info("Creating customer record for %s", details.name)
        return await self._store.create_customer(
            name=details.name, email=details.email, phone=details.phone
        )

    async def _join(self, session: Appointment, customer: Customer, service: Service, now) -> Appointment:
        if customer.id in session.participant_ids or customer.id == session.customer_id:
            raise ValidationError("Customer is already registered for this session")
        participants = participant_count(session) + 1
        logger.info(
            "Joining group session %s (%s/%s)",
            session.id,
            participants,
            group_capacity(session, service),
        )
        return await self._store.update_appointment(
            session.model_copy(
                update={
                    "current_participants": participants,
                    "participant_ids": [*session.participant_ids, customer.id],
                    "max_capacity": group_capacity(session, service),
                    "updated_at": now,
                }
            )
        )

    async def cancel(self, request: CancelRequest) -> Appointment:
        async with self._locks.hold(appointment_key(request.appointment_id)):
            appointment = await self.get(request.appointment_id)
            if appointment.is_cancelled:
                logger.info("Appointment %s already cancelled", appointment.id)
                return appointment

            logger.info("Cancelling appointment %s", appointment.id)
            now = self._clock.now()
            async with self._locks.hold(slot_key(appointment.worker_id, appointment.start.date())):
                # Joins only hold the slot lock, so the roster is read again here.
                current = await self.get(appointment.id)
                cancelled = await self._store.update_appointment(
                    current.model_copy(
                        update={"status": AppointmentStatus.CANCELLED, "updated_at": now}
                    )
                )
            await self._reject_pending_requests(cancelled.id, now)

        await self._activity.record(
            ActivityType.APPOINTMENT_CANCELLED,
            customer_id=cancelled.customer_id,
            appointment_id=cancelled.id,
            created_by=request.created_by,
        )
        return cancelled

    async def _reject_pending_requests(self, appointment_id: str, now) -> None:
        pending = await self._store.list_reschedule_requests(
            appointment_id=appointment_id, status=RescheduleStatus.PENDING
        )
        for candidate in pending:
            async with self._locks.hold(reschedule_key(candidate.id)):
                reschedule = await self._store.get_reschedule_request(candidate.id)
                if reschedule is None or reschedule.status != RescheduleStatus.PENDING:
                    continue
                logger.info("Rejecting reschedule request %s of cancelled appointment", reschedule.id)
                await self._store.update_reschedule_request(
                    reschedule.model_copy(
                        update={
                            "status": RescheduleStatus.REJECTED,
                            "rejection_message": CANCELLED_REQUEST_MESSAGE,
                            "resolved_at": now,
                        }
                    )
                )

    async def leave_group(self, request: LeaveGroupRequest) -> Appointment:
        async with self._locks.hold(appointment_key(request.appointment_id)):
            appointment = await self.get(request.appointment_id)
            if not appointment.is_group_appointment:
                raise ValidationError("Only group sessions have participants to remove")
            if appointment.is_cancelled:
                return appointment

            async with self._locks.hold(slot_key(appointment.worker_id, appointment.start.date())):
                # Re-read under the lock; a concurrent join may have changed the roster.
                appointment = await self.get(request.appointment_id)
                if request.customer_id not in appointment.participant_ids:
                    raise NotFoundError(
                        f"Customer {request.customer_id} is not part of session {appointment.id}"
                    )
                remaining = [pid for pid in appointment.participant_ids if pid != request.customer_id]
                update = {
                    "participant_ids": remaining,
                    "current_participants": max(participant_count(appointment) - 1, 0),
                    "updated_at": self._clock.now(),
                }
                if not remaining:
                    update["status"] = AppointmentStatus.CANCELLED
                elif appointment.customer_id == request.customer_id:
                    update["customer_id"] = remaining[0]
                updated = await self._store.update_appointment(appointment.model_copy(update=update))

        logger.info(
            "Customer %s left session %s (%s remaining)",
            request.customer_id,
            updated.id,
            updated.current_participants,
        )
        if updated.is_cancelled:
            await self._activity.record(
                ActivityType.APPOINTMENT_CANCELLED,
                customer_id=request.customer_id,
                appointment_id=updated.id,
                created_by=CreatedBy.CUSTOMER,
                metadata={"reason": "last participant left"},
            )
        return updated

    async def get(self, appointment_id: str) -> Appointment:
        appointment = await self._store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    async def list(self, request: AppointmentListRequest) -> AppointmentListResponse:
        logger.info("Listing appointments (worker=%s, customer=%s)", request.worker_id, request.customer_id)
        appointments: List[Appointment] = await self._store.list_appointments(
            worker_id=request.worker_id,
            service_id=request.service_id,
            customer_id=request.customer_id,
            date_from=request.date_from,
            date_to=request.date_to,
        )
        if request.status is not None:
            appointments = [apt for apt in appointments if apt.status == request.status]

        start = (request.page - 1) * request.page_size
        end = start + request.page_size
        return AppointmentListResponse(
            total=len(appointments),
            page=request.page,
            page_size=request.page_size,
            items=appointments[start:end],
        )


def _require_details(details: Optional[CustomerDetails]) -> CustomerDetails:
    missing = [
        field
        for field in ("name", "email", "phone")
        if details is None or not (getattr(details, field) or "").strip()
    ]
    if missing:
        raise ValidationError(f"Missing customer details: {', '.join(missing)}")
    if not normalize_phone(details.phone):
        raise ValidationError("Customer phone number is invalid")
    return details
