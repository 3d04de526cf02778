"""Working-day set and per-day slot grid derived from business settings."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from kalbook.schemas.settings import CalendarSettings
from kalbook.services.clock import Clock

MINUTES_PER_DAY = 24 * 60


def parse_hhmm(value: object) -> Optional[int]:
    """Return minutes since midnight for ``"HH:MM"``, or ``None`` when unparsable."""

    if not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        return None
    hours, minutes = int(parts[0]), int(parts[1])
    # "24:00" is accepted as the end of the day.
    if minutes > 59 or hours > 24 or (hours == 24 and minutes):
        return None
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minute_of_day(moment: datetime | time) -> int:
    return moment.hour * 60 + moment.minute


def day_of_week(day: date) -> int:
    """Day number with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


class WorkingCalendar:
    def __init__(self, config: CalendarSettings, clock: Clock) -> None:
        self._config = config
        self._clock = clock

    @property
    def config(self) -> CalendarSettings:
        return self._config

    def today(self) -> date:
        return self._clock.now().date()

    def is_working_day(self, day: date) -> bool:
        return day_of_week(day) in self._config.working_days

    def working_window(self) -> Optional[Tuple[int, int]]:
        """Working hours as ``(start, end)`` minutes, or ``None`` if misconfigured."""

        start = parse_hhmm(self._config.working_hours.start)
        end = parse_hhmm(self._config.working_hours.end)
        if start is None or end is None or end <= start:
            return None
        return start, end

    def slot_minutes(self) -> List[int]:
        window = self.working_window()
        gap = self._config.slot_gap_minutes
        if window is None or gap <= 0:
            return []
        start, end = window
        return list(range(start, end, gap))

    def time_slots(self) -> List[str]:
        return [format_hhmm(minutes) for minutes in self.slot_minutes()]

    def is_slot_start(self, moment: datetime) -> bool:
        if moment.second or moment.microsecond:
            return False
        return minute_of_day(moment) in self.slot_minutes()

    def fits_working_hours(self, start: datetime, end: datetime) -> bool:
        """True when ``[start, end)`` lies on one working day, inside working hours."""

        window = self.working_window()
        if window is None or start.date() != (end - timedelta(microseconds=1)).date():
            return False
        if not self.is_working_day(start.date()):
            return False
        end_minute = minute_of_day(end) if end.date() == start.date() else MINUTES_PER_DAY
        return window[0] <= minute_of_day(start) and end_minute <= window[1]

    def available_dates(self, horizon_days: int = 30) -> List[date]:
        today = self.today()
        days = (today + timedelta(days=offset) for offset in range(horizon_days))
        return [day for day in days if self.is_working_day(day)]
