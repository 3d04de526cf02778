import asyncio
import json
import os
import sys
from datetime import date, datetime, timezone

import httpx
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kalbook.clients.store import BookingStoreClient, HttpBookingStore
from kalbook.schemas.scheduling import Appointment
from kalbook.services.exceptions import PersistenceError

BASE_URL = "https://store.example.test/api"


def _store(handler) -> HttpBookingStore:
    client = BookingStoreClient(
        BASE_URL, timeout=2.0, token="secret", transport=httpx.MockTransport(handler)
    )
    return HttpBookingStore(client)


def test_lookup_returns_none_on_404() -> None:
    store = _store(lambda request: httpx.Response(404, json={"detail": "missing"}))

    assert asyncio.run(store.get_service("svc-missing")) is None


def test_lookup_parses_record_and_sends_token() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["path"] = request.url.path
        return httpx.Response(
            200,
            json={"id": "svc-haircut", "name": "Haircut", "duration_minutes": 30},
        )

    service = asyncio.run(_store(handler).get_service("svc-haircut"))

    assert service.duration_minutes == 30
    assert seen == {"auth": "Bearer secret", "path": "/api/services/svc-haircut"}


def test_settings_document_is_parsed_with_defaults() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "calendar": {"workingDays": [0, 1, 2], "workingHours": None, "timeSlotGap": 15},
                "reschedule": {"requireApproval": False},
            },
        )

    settings = asyncio.run(_store(handler).get_business_settings())

    assert settings.calendar.working_days == {0, 1, 2}
    assert settings.calendar.working_hours.start == "09:00"
    assert settings.calendar.slot_gap_minutes == 15
    assert settings.reschedule.require_approval is False
    assert settings.reschedule.allow_customer_reschedule is True


def test_server_error_becomes_persistence_error() -> None:
    store = _store(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(PersistenceError) as excinfo:
        asyncio.run(store.list_workers(service_id="svc-haircut"))

    assert excinfo.value.status_code == 500


def test_transport_error_becomes_persistence_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PersistenceError) as excinfo:
        asyncio.run(_store(handler).get_appointment("APT-1"))

    assert excinfo.value.status_code is None


def test_invalid_record_becomes_persistence_error() -> None:
    store = _store(lambda request: httpx.Response(200, json={"id": "svc-bad"}))

    with pytest.raises(PersistenceError):
        asyncio.run(store.get_service("svc-bad"))


def test_list_appointments_sends_filters_and_sorts() -> None:
    seen = {}

    def record(start_hour: int, appointment_id: str) -> dict:
        start = datetime(2026, 10, 19, start_hour, tzinfo=timezone.utc)
        return Appointment(
            id=appointment_id,
            service_id="svc-haircut",
            worker_id="wrk-dana",
            customer_id="CUS-1",
            start=start,
            end=start.replace(minute=30),
        ).model_dump(mode="json")

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json={"items": [record(11, "APT-2"), record(9, "APT-1")]})

    appointments = asyncio.run(
        _store(handler).list_appointments(worker_id="wrk-dana", on_date=date(2026, 10, 19))
    )

    assert seen == {"worker_id": "wrk-dana", "date": "2026-10-19"}
    assert [appointment.id for appointment in appointments] == ["APT-1", "APT-2"]


def test_insert_posts_json_payload() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json=captured["body"])

    store = _store(handler)
    customer = asyncio.run(store.create_customer(name="Avi", email=None, phone="052-123 4567"))

    assert captured["method"] == "POST"
    assert captured["body"]["phone"] == "0521234567"
    assert customer.id.startswith("cus_")
