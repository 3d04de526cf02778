from __future__ import annotations

import itertools
from collections import defaultdict
from datetime import date
from typing import DefaultDict, Dict, Iterable, List, Optional

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
from kalbook.services.store import normalize_phone

_ID_PREFIXES = {
    "appointment": "APT",
    "customer": "CUS",
    "reschedule": "RSR",
    "activity": "ACT",
}


class InMemoryBookingStore:
    """Booking store kept in process memory, used when running with mock data.

    Records are copied on the way in and out so callers never share mutable
    state with the store.
    """

    def __init__(
        self,
        *,
        settings: BusinessSettings | None = None,
        seed: bool = True,
    ) -> None:
        self._settings = settings or BusinessSettings()
        self._counters: DefaultDict[str, itertools.count] = defaultdict(
            lambda: itertools.count(1)
        )
        self.services: Dict[str, Service] = {}
        self.workers: Dict[str, Worker] = {}
        self.customers: Dict[str, Customer] = {}
        self.appointments: Dict[str, Appointment] = {}
        self.reschedule_requests: Dict[str, RescheduleRequest] = {}
        self.activity: List[ActivityLogEntry] = []
        if seed:
            self._seed_defaults()

    def _seed_defaults(self) -> None:
        self.add_services(
            [
                Service(
                    id="svc-haircut",
                    name="Haircut",
                    description="Wash, cut and style",
                    duration_minutes=30,
                    price=80.0,
                ),
                Service(
                    id="svc-color",
                    name="Hair Coloring",
                    description="Full color treatment",
                    duration_minutes=90,
                    price=250.0,
                ),
                Service(
                    id="svc-pilates",
                    name="Pilates Group Class",
                    duration_minutes=60,
                    price=60.0,
                    is_group_service=True,
                    max_capacity=3,
                ),
                Service(
                    id="svc-keratin",
                    name="Keratin Treatment",
                    duration_minutes=120,
                    price=400.0,
                    active=False,
                ),
            ]
        )
        self.add_workers(
            [
                Worker(
                    id="wrk-dana",
                    name="Dana",
                    service_ids={"svc-haircut", "svc-color", "svc-keratin"},
                ),
                Worker(
                    id="wrk-noa",
                    name="Noa",
                    service_ids={"svc-haircut", "svc-pilates"},
                ),
                Worker(
                    id="wrk-yossi",
                    name="Yossi",
                    active=False,
                    service_ids={"svc-haircut"},
                ),
            ]
        )
        self.add_customers(
            [
                Customer(
                    id=self.next_id("customer"),
                    name="Maya Cohen",
                    email="maya@example.com",
                    phone="0501234567",
                ),
            ]
        )

    # -- seeding helpers ---------------------------------------------------

    def set_business_settings(self, settings: BusinessSettings) -> None:
        self._settings = settings

    def add_services(self, services: Iterable[Service]) -> None:
        for service in services:
            self.services[service.id] = service.model_copy(deep=True)

    def add_workers(self, workers: Iterable[Worker]) -> None:
        for worker in workers:
            self.workers[worker.id] = worker.model_copy(deep=True)

    def add_customers(self, customers: Iterable[Customer]) -> None:
        for customer in customers:
            self.customers[customer.id] = customer.model_copy(deep=True)

    def next_id(self, kind: str) -> str:
        prefix = _ID_PREFIXES.get(kind, kind.upper()[:3])
        return f"{prefix}-{next(self._counters[kind]):05d}"

    # -- BookingStore ------------------------------------------------------

    async def get_business_settings(self) -> BusinessSettings:
        return self._settings.model_copy(deep=True)

    async def get_service(self, service_id: str) -> Optional[Service]:
        service = self.services.get(service_id)
        return service.model_copy(deep=True) if service is not None else None

    async def get_worker(self, worker_id: str) -> Optional[Worker]:
        worker = self.workers.get(worker_id)
        return worker.model_copy(deep=True) if worker is not None else None

    async def list_workers(self, *, service_id: Optional[str] = None) -> List[Worker]:
        return [
            worker.model_copy(deep=True)
            for worker in self.workers.values()
            if service_id is None or worker.offers(service_id)
        ]

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        customer = self.customers.get(customer_id)
        return customer.model_copy(deep=True) if customer is not None else None

    async def find_customer_by_phone(self, phone: str) -> Optional[Customer]:
        normalized = normalize_phone(phone)
        for customer in self.customers.values():
            if customer.phone and normalize_phone(customer.phone) == normalized:
                return customer.model_copy(deep=True)
        return None

    async def create_customer(
        self, *, name: str, email: Optional[str], phone: str
    ) -> Customer:
        customer = Customer(
            id=self.next_id("customer"),
            name=name,
            email=email,
            phone=normalize_phone(phone),
        )
        self.customers[customer.id] = customer
        return customer.model_copy(deep=True)

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        appointment = self.appointments.get(appointment_id)
        return appointment.model_copy(deep=True) if appointment is not None else None

    async def list_appointments(
        self,
        *,
        worker_id: Optional[str] = None,
        service_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        on_date: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[Appointment]:
        matches = []
        for appointment in self.appointments.values():
            day = appointment.start.date()
            if worker_id is not None and appointment.worker_id != worker_id:
                continue
            if service_id is not None and appointment.service_id != service_id:
                continue
            if customer_id is not None and not (
                appointment.customer_id == customer_id
                or customer_id in appointment.participant_ids
            ):
                continue
            if on_date is not None and day != on_date:
                continue
            if date_from is not None and day < date_from:
                continue
            if date_to is not None and day > date_to:
                continue
            matches.append(appointment.model_copy(deep=True))
        matches.sort(key=lambda appointment: appointment.start)
        return matches

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        if appointment.id in self.appointments:
            raise KeyError(f"Appointment {appointment.id} already exists")
        self.appointments[appointment.id] = appointment.model_copy(deep=True)
        return appointment.model_copy(deep=True)

    async def update_appointment(self, appointment: Appointment) -> Appointment:
        if appointment.id not in self.appointments:
            raise KeyError(f"Appointment {appointment.id} not found")
        self.appointments[appointment.id] = appointment.model_copy(deep=True)
        return appointment.model_copy(deep=True)

    async def insert_reschedule_request(self, request: RescheduleRequest) -> RescheduleRequest:
        self.reschedule_requests[request.id] = request.model_copy(deep=True)
        return request.model_copy(deep=True)

    async def get_reschedule_request(self, request_id: str) -> Optional[RescheduleRequest]:
        request = self.reschedule_requests.get(request_id)
        return request.model_copy(deep=True) if request is not None else None

    async def update_reschedule_request(self, request: RescheduleRequest) -> RescheduleRequest:
        if request.id not in self.reschedule_requests:
            raise KeyError(f"Reschedule request {request.id} not found")
        self.reschedule_requests[request.id] = request.model_copy(deep=True)
        return request.model_copy(deep=True)

    async def list_reschedule_requests(
        self,
        *,
        appointment_id: Optional[str] = None,
        status: Optional[RescheduleStatus] = None,
    ) -> List[RescheduleRequest]:
        return [
            request.model_copy(deep=True)
            for request in self.reschedule_requests.values()
            if (appointment_id is None or request.appointment_id == appointment_id)
            and (status is None or request.status == status)
        ]

    async def append_activity(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        self.activity.append(entry.model_copy(deep=True))
        return entry.model_copy(deep=True)

    async def list_activity(self) -> List[ActivityLogEntry]:
        return [entry.model_copy(deep=True) for entry in self.activity]


_mock_store: Optional[InMemoryBookingStore] = None


def get_mock_store() -> InMemoryBookingStore:
    global _mock_store
    if _mock_store is None:
        _mock_store = InMemoryBookingStore()
    return _mock_store


def reset_mock_store() -> None:
    global _mock_store
    _mock_store = None
