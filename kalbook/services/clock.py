"""Injectable notion of "now" in the business timezone."""
from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

from kalbook.services.exceptions import ValidationError


class Clock(Protocol):
    @property
    def tz(self) -> tzinfo: ...

    def now(self) -> datetime: ...


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


class SystemClock:
    """Wall clock bound to the business timezone."""

    def __init__(self, tz: tzinfo | str | None = None) -> None:
        self._tz = resolve_timezone(tz) if tz is None or isinstance(tz, str) else tz

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock:
    """Clock frozen at a given instant. Naive instants are read in ``tz``."""

    def __init__(self, instant: datetime, tz: tzinfo | str | None = None) -> None:
        self._tz = resolve_timezone(tz) if tz is None or isinstance(tz, str) else tz
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self._tz)
        self._instant = instant.astimezone(self._tz)

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return self._instant

    def advance_to(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self._tz)
        self._instant = instant.astimezone(self._tz)


def parse_instant(value: str | datetime, tz: tzinfo) -> datetime:
    """Parse an ISO 8601 timestamp into an aware datetime in ``tz``.

    Naive values are taken to be business-local time.
    """

    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"Invalid date format: {value!r}. Use ISO 8601.", cause=exc) from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)
