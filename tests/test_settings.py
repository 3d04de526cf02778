import asyncio
import os
import sys

import pytest
from pydantic import ValidationError

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kalbook.config import Settings
from kalbook.dependencies.services import get_clock, uses_mock_store
from kalbook.schemas.settings import BusinessSettings
from kalbook.services.mock_store import InMemoryBookingStore


def test_missing_document_uses_defaults() -> None:
    settings = BusinessSettings.from_raw(None)

    assert settings.calendar.working_days == {0, 1, 2, 3, 4}
    assert settings.calendar.working_hours.start == "09:00"
    assert settings.calendar.working_hours.end == "18:00"
    assert settings.calendar.slot_gap_minutes == 30
    assert settings.reschedule.allow_customer_reschedule is True
    assert settings.reschedule.require_approval is True


def test_null_sections_fall_back_to_defaults() -> None:
    settings = BusinessSettings.from_raw(
        {
            "calendar": {"workingDays": None, "workingHours": {"start": "08:00", "end": None}},
            "reschedule": None,
            "timezone": "Asia/Jerusalem",
        }
    )

    assert settings.calendar.working_days == {0, 1, 2, 3, 4}
    assert settings.calendar.working_hours.start == "08:00"
    assert settings.calendar.working_hours.end == "18:00"
    assert settings.reschedule.require_approval is True
    assert settings.timezone == "Asia/Jerusalem"


def test_out_of_range_working_day_is_rejected() -> None:
    with pytest.raises(ValidationError):
        BusinessSettings.from_raw({"calendar": {"workingDays": [1, 7]}})


def test_unknown_business_timezone_is_rejected() -> None:
    with pytest.raises(ValidationError):
        BusinessSettings.from_raw({"timezone": "Mars/Olympus_Mons"})


def test_clock_prefers_business_timezone() -> None:
    store = InMemoryBookingStore()
    store.set_business_settings(BusinessSettings.from_raw({"timezone": "Asia/Jerusalem"}))

    clock = asyncio.run(get_clock(Settings(business_timezone="Europe/London"), store))
    assert clock.tz.key == "Asia/Jerusalem"

    store.set_business_settings(BusinessSettings())
    fallback = asyncio.run(get_clock(Settings(business_timezone="Europe/London"), store))
    assert fallback.tz.key == "Europe/London"


def test_mock_store_is_used_without_store_url() -> None:
    assert uses_mock_store(Settings(use_mock_data=False, store_base_url=None))
    assert not uses_mock_store(
        Settings(use_mock_data=False, store_base_url="https://store.example.test")
    )


def test_settings_read_prefixed_environment(monkeypatch) -> None:
    monkeypatch.setenv("KALBOOK_LEAD_TIME_MINUTES", "20")
    monkeypatch.setenv("KALBOOK_BUSINESS_TIMEZONE", "Asia/Jerusalem")

    settings = Settings()

    assert settings.lead_time_minutes == 20
    assert settings.business_timezone == "Asia/Jerusalem"
