"""Service package public API definitions.

Service implementations are imported lazily so that importing
``kalbook.services.exceptions`` from the HTTP client does not pull every
service (and, through them, the client itself) in at start up.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "ActivityLogService",
    "AppointmentService",
    "AvailabilityService",
    "RescheduleService",
]

_SERVICE_MODULES = {
    "ActivityLogService": "activity",
    "AppointmentService": "appointment",
    "AvailabilityService": "availability",
    "RescheduleService": "reschedule",
}


def __getattr__(name: str) -> Any:
    if name not in _SERVICE_MODULES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module = import_module(f".{_SERVICE_MODULES[name]}", __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .activity import ActivityLogService as ActivityLogService
    from .appointment import AppointmentService as AppointmentService
    from .availability import AvailabilityService as AvailabilityService
    from .reschedule import RescheduleService as RescheduleService
