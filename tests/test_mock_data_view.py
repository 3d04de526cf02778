from __future__ import annotations

import asyncio
import os
import sys
from datetime import datetime

from fastapi.testclient import TestClient

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kalbook.main import app
from kalbook.schemas.appointment import AppointmentRequest, CustomerDetails
from kalbook.services.appointment import AppointmentService
from kalbook.services.clock import FixedClock
from kalbook.services.mock_store import get_mock_store, reset_mock_store


def test_mock_data_view_renders_seed_data() -> None:
    reset_mock_store()
    client = TestClient(app)

    response = client.get("/mock-data")
    assert response.status_code == 200
    body = response.text

    assert "Mock Data Overview" in body
    assert "Hair Coloring" in body  # seeded service name
    assert "Maya Cohen" in body  # seeded customer
    assert "No records found." in body  # no appointments yet


def test_mock_data_view_includes_bookings() -> None:
    reset_mock_store()
    store = get_mock_store()
    service = AppointmentService(store, FixedClock(datetime(2026, 10, 19, 8, 0)))

    appointment = asyncio.run(
        service.book(
            AppointmentRequest(
                service_id="svc-haircut",
                worker_id="wrk-noa",
                start="2026-10-19T10:00:00",
                customer=CustomerDetails(name="Test Guest", email="guest@example.com", phone="0549999999"),
            )
        )
    )

    client = TestClient(app)
    response = client.get("/mock-data")
    assert response.status_code == 200

    body = response.text
    assert appointment.id in body
    assert "guest@example.com" in body
    assert "appointment_created" in body


def test_mock_data_cannot_be_deleted() -> None:
    reset_mock_store()
    client = TestClient(app)

    response = client.delete("/mock-data/appointments/APT-00001")

    assert response.status_code in (404, 405)
