from fastapi import HTTPException

from kalbook.services.exceptions import (
    AppointmentCancelledError,
    NoOpReschedule,
    NotFoundError,
    PersistenceError,
    RequestAlreadyProcessed,
    RescheduleNotAllowed,
    ServiceError,
    ServiceInactive,
    SlotNoLongerAvailable,
    ValidationError,
    WorkerInactive,
)

# Checked in order; subclasses (ApprovalConflict) resolve through their base.
_STATUS_CODES = (
    (ValidationError, 400),
    (NoOpReschedule, 400),
    (NotFoundError, 404),
    (RescheduleNotAllowed, 403),
    (AppointmentCancelledError, 409),
    (RequestAlreadyProcessed, 409),
    (SlotNoLongerAvailable, 409),
    (ServiceInactive, 422),
    (WorkerInactive, 422),
    (PersistenceError, 502),
)


def status_for(exc: ServiceError) -> int:
    for exc_type, status in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 502


def to_http_exception(exc: ServiceError) -> HTTPException:
    detail = {"error": exc.code, "message": str(exc), "retryable": exc.retryable}
    conflicting = getattr(exc, "conflicting_appointment_id", None)
    if conflicting:
        detail["conflicting_appointment_id"] = conflicting
    return HTTPException(status_code=status_for(exc), detail=detail)
