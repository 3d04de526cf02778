from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from kalbook.schemas.scheduling import Appointment, RescheduleRequest


class RescheduleCreateRequest(BaseModel):
    appointment_id: str
    requested_start: str = Field(..., description="ISO 8601 start of the new slot")
    requested_end: str = Field(..., description="ISO 8601 end of the new slot")


class RescheduleOutcome(BaseModel):
    """Either the updated appointment (auto-applied) or the pending request."""

    outcome: Literal["applied", "pending"]
    appointment: Optional[Appointment] = None
    request: Optional[RescheduleRequest] = None


class RescheduleDecisionRequest(BaseModel):
    request_id: str


class RescheduleRejectRequest(BaseModel):
    request_id: str
    message: Optional[str] = None


class PendingRescheduleResponse(BaseModel):
    total: int
    items: List[RescheduleRequest]
