"""Single source of truth for "is this slot free" for a worker.

Intervals are half-open, ``[start, end)``: an appointment ending at 09:30 and
one starting at 09:30 share a boundary but do not overlap.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from kalbook.schemas.scheduling import Appointment, Service


@dataclass(frozen=True)
class ConflictCheck:
    conflicting: Optional[Appointment] = None
    joinable: Optional[Appointment] = None

    @property
    def has_conflict(self) -> bool:
        return self.conflicting is not None


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    return start_a < end_b and end_a > start_b


def _local_date(moment: datetime, reference: datetime):
    if moment.tzinfo is not None and reference.tzinfo is not None:
        return moment.astimezone(reference.tzinfo).date()
    return moment.date()


def group_capacity(appointment: Appointment, service: Service) -> int:
    return appointment.max_capacity or service.max_capacity or 1


def participant_count(appointment: Appointment) -> int:
    """Booked participants; a session stored without a count holds its owner."""

    if appointment.current_participants is None:
        return 1
    return appointment.current_participants


def has_free_capacity(appointment: Appointment, service: Service) -> bool:
    return participant_count(appointment) < group_capacity(appointment, service)


class ConflictDetector:
    """Pure overlap check against the existing appointments of one worker."""

    def find_conflict(
        self,
        candidate_start: datetime,
        duration_minutes: int,
        worker_id: str,
        existing: Iterable[Appointment],
        *,
        service: Optional[Service] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> ConflictCheck:
        candidate_end = candidate_start + timedelta(minutes=duration_minutes)
        group_service = service is not None and service.is_group
        joinable: Optional[Appointment] = None

        for appointment in existing:
            if appointment.worker_id != worker_id or appointment.is_cancelled:
                continue
            if exclude_appointment_id and appointment.id == exclude_appointment_id:
                continue
            if _local_date(appointment.start, candidate_start) != candidate_start.date():
                continue
            if not intervals_overlap(
                candidate_start, candidate_end, appointment.start, appointment.end
            ):
                continue

            if (
                group_service
                and appointment.is_group_appointment
                and appointment.service_id == service.id
                and appointment.start == candidate_start
            ):
                if has_free_capacity(appointment, service):
                    joinable = appointment
                    continue
                return ConflictCheck(conflicting=appointment)

            return ConflictCheck(conflicting=appointment)

        return ConflictCheck(joinable=joinable)

    def has_conflict(
        self,
        candidate_start: datetime,
        duration_minutes: int,
        worker_id: str,
        existing: Iterable[Appointment],
        *,
        service: Optional[Service] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> bool:
        return self.find_conflict(
            candidate_start,
            duration_minutes,
            worker_id,
            existing,
            service=service,
            exclude_appointment_id=exclude_appointment_id,
        ).has_conflict
