from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AvailabilityRequest(BaseModel):
    service_id: str
    date: date
    worker_id: Optional[str] = None


class AvailabilityResponse(BaseModel):
    service_id: str
    date: date
    worker_id: Optional[str] = None
    slots: List[str] = Field(default_factory=list, description="Bookable start times as HH:MM")
    message: Optional[str] = None


class AvailableDatesRequest(BaseModel):
    horizon_days: Optional[int] = Field(None, ge=1, le=365)


class AvailableDatesResponse(BaseModel):
    dates: List[date]


class GroupSessionRequest(BaseModel):
    service_id: str
    worker_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class GroupSessionSummary(BaseModel):
    appointment_id: str
    worker_id: str
    start: datetime
    end: datetime
    current_participants: int
    max_capacity: int
    available_spots: int


class GroupSessionResponse(BaseModel):
    service_id: str
    is_group_service: bool
    sessions: List[GroupSessionSummary] = Field(default_factory=list)
