"""Data-access capability the scheduling core is parameterised by.

Both the in-memory store used in mock mode and the HTTP-backed store that
talks to the persistence service implement this protocol.
"""
from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol

from kalbook.schemas.scheduling import (
    ActivityLogEntry,
    Appointment,
    Customer,
    RescheduleRequest,
    RescheduleStatus,
    Service,
    Worker,
)
from kalbook.schemas.settings import BusinessSettings


class BookingStore(Protocol):
    async def get_business_settings(self) -> BusinessSettings: ...

    async def get_service(self, service_id: str) -> Optional[Service]: ...

    async def get_worker(self, worker_id: str) -> Optional[Worker]: ...

    async def list_workers(self, *, service_id: Optional[str] = None) -> List[Worker]: ...

    async def get_customer(self, customer_id: str) -> Optional[Customer]: ...

    async def find_customer_by_phone(self, phone: str) -> Optional[Customer]: ...

    async def create_customer(
        self, *, name: str, email: Optional[str], phone: str
    ) -> Customer: ...

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]: ...

    async def list_appointments(
        self,
        *,
        worker_id: Optional[str] = None,
        service_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        on_date: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[Appointment]: ...

    async def insert_appointment(self, appointment: Appointment) -> Appointment: ...

    async def update_appointment(self, appointment: Appointment) -> Appointment: ...

    async def insert_reschedule_request(self, request: RescheduleRequest) -> RescheduleRequest: ...

    async def get_reschedule_request(self, request_id: str) -> Optional[RescheduleRequest]: ...

    async def update_reschedule_request(self, request: RescheduleRequest) -> RescheduleRequest: ...

    async def list_reschedule_requests(
        self,
        *,
        appointment_id: Optional[str] = None,
        status: Optional[RescheduleStatus] = None,
    ) -> List[RescheduleRequest]: ...

    async def append_activity(self, entry: ActivityLogEntry) -> ActivityLogEntry: ...

    async def list_activity(self) -> List[ActivityLogEntry]: ...

    def next_id(self, kind: str) -> str: ...


def normalize_phone(phone: str) -> str:
    """Strip formatting so ``"050-123 4567"`` and ``"0501234567"`` match."""

    return "".join(ch for ch in phone.strip() if ch.isdigit() or ch == "+")
