from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    CREATED = "created"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class CreatedBy(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class RescheduleStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ActivityType(str, Enum):
    APPOINTMENT_CREATED = "appointment_created"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    RESCHEDULE_REQUESTED = "reschedule_requested"
    RESCHEDULE_APPROVED = "reschedule_approved"
    RESCHEDULE_REJECTED = "reschedule_rejected"


class ActivityStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class Service(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    duration_minutes: int = Field(..., gt=0)
    price: float = 0.0
    active: bool = True
    is_group_service: bool = False
    max_capacity: Optional[int] = None

    @property
    def is_group(self) -> bool:
        """True only for group services that can actually seat more than one customer."""
        return self.is_group_service and (self.max_capacity or 0) > 1


class Worker(BaseModel):
    id: str
    name: str
    active: bool = True
    service_ids: Set[str] = Field(default_factory=set)

    def offers(self, service_id: str) -> bool:
        return service_id in self.service_ids


class Customer(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    blocked: bool = False


class Appointment(BaseModel):
    id: str
    service_id: str
    worker_id: str
    customer_id: str
    start: datetime
    end: datetime
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    created_by: CreatedBy = CreatedBy.CUSTOMER
    is_group_appointment: bool = False
    current_participants: Optional[int] = None
    max_capacity: Optional[int] = None
    participant_ids: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class RescheduleRequest(BaseModel):
    id: str
    appointment_id: str
    customer_id: str
    original_start: datetime
    original_end: datetime
    requested_start: datetime
    requested_end: datetime
    status: RescheduleStatus = RescheduleStatus.PENDING
    rejection_message: Optional[str] = None
    conflict_detected_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class ActivityLogEntry(BaseModel):
    id: str
    appointment_id: Optional[str] = None
    customer_id: str
    activity_type: ActivityType
    created_by: CreatedBy
    status: Optional[ActivityStatus] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
