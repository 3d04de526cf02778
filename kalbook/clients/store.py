from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel

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
from kalbook.services.exceptions import PersistenceError
from kalbook.services.store import normalize_phone

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_ID_PREFIXES = {
    "appointment": "apt",
    "customer": "cus",
    "reschedule": "rsr",
    "activity": "act",
}


class BookingStoreClient:
    """Async HTTP client for the persistence service's CRUD API."""

    def __init__(
        self,
        base_url: str | None,
        *,
        timeout: float = 10.0,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("A base URL is required for the booking store client")
        self._base_url = str(base_url).rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._client: Optional[httpx.AsyncClient] = None

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
        payload: Dict[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> Any:
        client = self._ensure_client()
        try:
            response = await client.request(method, path, params=params, json=payload)
            if allow_missing and response.status_code == 404:
                return None
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.exception("Booking store returned error %s for %s %s", exc.response.status_code, method, path)
            raise PersistenceError(
                "Booking store returned an error response",
                status_code=exc.response.status_code,
                cause=exc,
            ) from exc
        except httpx.RequestError as exc:
            logger.exception("Unable to reach booking store: %s", exc)
            raise PersistenceError(
                "Unable to reach booking store", status_code=None, cause=exc
            ) from exc
        except ValueError as exc:
            logger.exception("Booking store sent a non-JSON body for %s %s", method, path)
            raise PersistenceError("Booking store sent an invalid response", cause=exc) from exc

    async def get(self, path: str, params: Dict[str, Any] | None = None, *, allow_missing: bool = False) -> Any:
        return await self.request("GET", path, params=params, allow_missing=allow_missing)

    async def post(self, path: str, payload: Dict[str, Any]) -> Any:
        return await self.request("POST", path, payload=payload)

    async def patch(self, path: str, payload: Dict[str, Any]) -> Any:
        return await self.request("PATCH", path, payload=payload)


def _params(**values: Any) -> Dict[str, Any]:
    params = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, date):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        params[key] = value
    return params


def _items(data: Any) -> List[Dict[str, Any]]:
    if data is None:
        return []
    if isinstance(data, dict):
        return list(data.get("items") or [])
    return list(data)


def _parse(model: Type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValueError as exc:
        raise PersistenceError(f"Booking store sent an invalid {model.__name__}", cause=exc) from exc


def _parse_optional(model: Type[ModelT], data: Any) -> Optional[ModelT]:
    return None if data is None else _parse(model, data)


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json")


class HttpBookingStore:
    """``BookingStore`` backed by the remote persistence service."""

    def __init__(self, client: BookingStoreClient) -> None:
        self._client = client

    @property
    def client(self) -> BookingStoreClient:
        return self._client

    async def close(self) -> None:
        await self._client.close()

    def next_id(self, kind: str) -> str:
        prefix = _ID_PREFIXES.get(kind, kind[:3])
        return f"{prefix}_{uuid.uuid4().hex}"

    async def get_business_settings(self) -> BusinessSettings:
        data = await self._client.get("/settings", allow_missing=True)
        return BusinessSettings.from_raw(data)

    async def get_service(self, service_id: str) -> Optional[Service]:
        return _parse_optional(Service, await self._client.get(f"/services/{service_id}", allow_missing=True))

    async def get_worker(self, worker_id: str) -> Optional[Worker]:
        return _parse_optional(Worker, await self._client.get(f"/workers/{worker_id}", allow_missing=True))

    async def list_workers(self, *, service_id: Optional[str] = None) -> List[Worker]:
        data = await self._client.get("/workers", _params(service_id=service_id))
        return [_parse(Worker, item) for item in _items(data)]

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        return _parse_optional(Customer, await self._client.get(f"/customers/{customer_id}", allow_missing=True))

    async def find_customer_by_phone(self, phone: str) -> Optional[Customer]:
        data = await self._client.get("/customers", _params(phone=normalize_phone(phone)))
        items = _items(data)
        return _parse(Customer, items[0]) if items else None

    async def create_customer(self, *, name: str, email: Optional[str], phone: str) -> Customer:
        customer = Customer(
            id=self.next_id("customer"), name=name, email=email, phone=normalize_phone(phone)
        )
        return _parse(Customer, await self._client.post("/customers", _dump(customer)))

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        data = await self._client.get(f"/appointments/{appointment_id}", allow_missing=True)
        return _parse_optional(Appointment, data)

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
        data = await self._client.get(
            "/appointments",
            _params(
                worker_id=worker_id,
                service_id=service_id,
                customer_id=customer_id,
                date=on_date,
                date_from=date_from,
                date_to=date_to,
            ),
        )
        appointments = [_parse(Appointment, item) for item in _items(data)]
        appointments.sort(key=lambda appointment: appointment.start)
        return appointments

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        return _parse(Appointment, await self._client.post("/appointments", _dump(appointment)))

    async def update_appointment(self, appointment: Appointment) -> Appointment:
        data = await self._client.patch(f"/appointments/{appointment.id}", _dump(appointment))
        return _parse(Appointment, data)

    async def insert_reschedule_request(self, request: RescheduleRequest) -> RescheduleRequest:
        return _parse(RescheduleRequest, await self._client.post("/reschedule-requests", _dump(request)))

    async def get_reschedule_request(self, request_id: str) -> Optional[RescheduleRequest]:
        data = await self._client.get(f"/reschedule-requests/{request_id}", allow_missing=True)
        return _parse_optional(RescheduleRequest, data)

    async def update_reschedule_request(self, request: RescheduleRequest) -> RescheduleRequest:
        data = await self._client.patch(f"/reschedule-requests/{request.id}", _dump(request))
        return _parse(RescheduleRequest, data)

    async def list_reschedule_requests(
        self,
        *,
        appointment_id: Optional[str] = None,
        status: Optional[RescheduleStatus] = None,
    ) -> List[RescheduleRequest]:
        data = await self._client.get(
            "/reschedule-requests", _params(appointment_id=appointment_id, status=status)
        )
        return [_parse(RescheduleRequest, item) for item in _items(data)]

    async def append_activity(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        return _parse(ActivityLogEntry, await self._client.post("/activity-logs", _dump(entry)))

    async def list_activity(self) -> List[ActivityLogEntry]:
        data = await self._client.get("/activity-logs")
        return [_parse(ActivityLogEntry, item) for item in _items(data)]
