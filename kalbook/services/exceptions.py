class ServiceError(Exception):
    """Base exception for service layer failures."""

    code = "service_error"
    retryable = False

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class ValidationError(ServiceError):
    """Raised for malformed input before anything is written."""

    code = "validation_error"


class NotFoundError(ServiceError):
    code = "not_found"


class SlotNoLongerAvailable(ServiceError):
    """Raised when a slot was taken between listing and commit.

    Callers should re-list availability and let the user pick again.
    """

    code = "slot_no_longer_available"
    retryable = True

    def __init__(
        self,
        message: str = "The requested time slot is no longer available",
        *,
        conflicting_appointment_id: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause=cause)
        self.conflicting_appointment_id = conflicting_appointment_id


class ApprovalConflict(SlotNoLongerAvailable):
    """Raised when a pending reschedule can no longer be approved as requested."""

    code = "approval_conflict"


class ServiceInactive(ServiceError):
    code = "service_inactive"


class WorkerInactive(ServiceError):
    code = "worker_inactive"


class NoOpReschedule(ServiceError):
    code = "noop_reschedule"


class RescheduleNotAllowed(ServiceError):
    code = "reschedule_not_allowed"


class AppointmentCancelledError(ServiceError):
    code = "appointment_cancelled"


class RequestAlreadyProcessed(ServiceError):
    code = "request_already_processed"


class PersistenceError(ServiceError):
    """Raised when the backing store returns an error response or is unreachable."""

    code = "persistence_error"

    def __init__(self, message: str, status_code: int | None = None, *, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.status_code = status_code
