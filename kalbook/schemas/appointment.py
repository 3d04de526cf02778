from datetime import date

from pydantic import BaseModel, Field
from typing import List, Optional

from kalbook.schemas.scheduling import Appointment, AppointmentStatus, CreatedBy


class CustomerDetails(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class AppointmentRequest(BaseModel):
    service_id: str
    worker_id: str
    start: str = Field(..., description="Start time ISO 8601, e.g. '2026-10-20T09:30:00'")
    customer_id: Optional[str] = Field(None, description="Authenticated customer id")
    customer: Optional[CustomerDetails] = None
    created_by: CreatedBy = CreatedBy.CUSTOMER


class CancelRequest(BaseModel):
    appointment_id: str
    created_by: CreatedBy = CreatedBy.CUSTOMER


class LeaveGroupRequest(BaseModel):
    appointment_id: str
    customer_id: str


class AppointmentListRequest(BaseModel):
    worker_id: Optional[str] = None
    customer_id: Optional[str] = None
    service_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: Optional[AppointmentStatus] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)


class AppointmentListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[Appointment]
