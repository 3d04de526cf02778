from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from kalbook.schemas.activity import ActivityLogListRequest, ActivityLogListResponse
from kalbook.schemas.scheduling import (
    ActivityLogEntry,
    ActivityStatus,
    ActivityType,
    CreatedBy,
)
from kalbook.services.clock import Clock
from kalbook.services.exceptions import PersistenceError
from kalbook.services.store import BookingStore

logger = logging.getLogger(__name__)


class ActivityLogService:
    """Appends and queries the audit trail of customer and admin actions."""

    def __init__(self, store: BookingStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    async def record(
        self,
        activity_type: ActivityType,
        *,
        customer_id: str,
        appointment_id: Optional[str],
        created_by: CreatedBy,
        status: Optional[ActivityStatus] = ActivityStatus.COMPLETED,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[ActivityLogEntry]:
        entry = ActivityLogEntry(
            id=self._store.next_id("activity"),
            appointment_id=appointment_id,
            customer_id=customer_id,
            activity_type=activity_type,
            created_by=created_by,
            status=status,
            metadata=metadata or {},
            created_at=self._clock.now(),
        )
        logger.info(
            "Activity %s for appointment %s by %s",
            activity_type.value,
            appointment_id,
            created_by.value,
        )
        try:
            return await self._store.append_activity(entry)
        except PersistenceError:
            # The audit trail never undoes a committed booking change.
            logger.exception("Failed to record activity %s", activity_type.value)
            return None

    async def list(self, request: ActivityLogListRequest) -> ActivityLogListResponse:
        entries = [
            entry
            for entry in await self._store.list_activity()
            if entry.created_by == request.created_by
            and (request.activity_type is None or entry.activity_type == request.activity_type)
            and (request.status is None or entry.status == request.status)
            and (request.customer_id is None or entry.customer_id == request.customer_id)
            and (request.date_from is None or entry.created_at.date() >= request.date_from)
            and (request.date_to is None or entry.created_at.date() <= request.date_to)
        ]
        # Newest first; insertion order breaks ties between equal timestamps.
        entries = [
            entry
            for _, entry in sorted(
                enumerate(entries),
                key=lambda pair: (pair[1].created_at, pair[0]),
                reverse=True,
            )
        ]

        start = (request.page - 1) * request.page_size
        end = start + request.page_size
        return ActivityLogListResponse(
            total=len(entries),
            page=request.page,
            page_size=request.page_size,
            items=entries[start:end],
        )
