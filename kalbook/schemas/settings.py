"""Business settings consumed from the settings collaborator.

The collaborator hands over a loosely-typed, camelCase document in which any
section may be missing. ``BusinessSettings.from_raw`` is the single place
where that document is read and where every default is resolved; the rest of
the code only ever sees fully-populated models.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Set
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_WORKING_DAYS = frozenset({0, 1, 2, 3, 4})
DEFAULT_WORKING_HOURS_START = "09:00"
DEFAULT_WORKING_HOURS_END = "18:00"
DEFAULT_SLOT_GAP_MINUTES = 30
DEFAULT_REJECTION_MESSAGE = (
    "We're sorry but we could not change the date. If you can't arrive, please cancel."
)


class WorkingHours(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Kept as raw strings: an unparsable value yields an empty slot grid
    # instead of failing the whole settings document.
    start: str = DEFAULT_WORKING_HOURS_START
    end: str = DEFAULT_WORKING_HOURS_END


class CalendarSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    working_days: Set[int] = Field(
        default_factory=lambda: set(DEFAULT_WORKING_DAYS),
        alias="workingDays",
        description="Days of week, 0 = Sunday ... 6 = Saturday",
    )
    working_hours: WorkingHours = Field(default_factory=WorkingHours, alias="workingHours")
    slot_gap_minutes: int = Field(DEFAULT_SLOT_GAP_MINUTES, alias="timeSlotGap")

    @field_validator("working_days")
    def _validate_days(cls, value: Set[int]) -> Set[int]:
        invalid = [day for day in value if day < 0 or day > 6]
        if invalid:
            raise ValueError(f"working days must be between 0 and 6, got {sorted(invalid)}")
        return value


class RescheduleSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allow_customer_reschedule: bool = Field(True, alias="allowCustomerReschedule")
    require_approval: bool = Field(True, alias="requireApproval")


class BusinessSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    calendar: CalendarSettings = Field(default_factory=CalendarSettings)
    reschedule: RescheduleSettings = Field(default_factory=RescheduleSettings)
    timezone: Optional[str] = None

    @field_validator("timezone")
    def _validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        if not value or value.upper() == "UTC":
            return value or None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> "BusinessSettings":
        """Build settings from the collaborator's document, dropping null entries."""

        if not raw:
            return cls()
        return cls.model_validate(_drop_nones(raw))


def _drop_nones(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _drop_nones(item) for key, item in value.items() if item is not None}
    return value
