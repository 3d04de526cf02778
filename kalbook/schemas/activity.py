from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from kalbook.schemas.scheduling import ActivityLogEntry, ActivityStatus, ActivityType, CreatedBy


class ActivityLogListRequest(BaseModel):
    created_by: CreatedBy = CreatedBy.CUSTOMER
    activity_type: Optional[ActivityType] = None
    status: Optional[ActivityStatus] = None
    customer_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(25, ge=1, le=100)


class ActivityLogListResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[ActivityLogEntry]
