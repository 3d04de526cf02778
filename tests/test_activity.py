import asyncio
import os
import sys
from datetime import date, datetime

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kalbook.schemas.activity import ActivityLogListRequest
from kalbook.schemas.scheduling import ActivityStatus, ActivityType, CreatedBy
from kalbook.services.activity import ActivityLogService
from kalbook.services.clock import FixedClock
from kalbook.services.mock_store import InMemoryBookingStore


def _seed(service: ActivityLogService, clock: FixedClock) -> None:
    entries = [
        (datetime(2026, 10, 18, 9, 0), ActivityType.APPOINTMENT_CREATED, CreatedBy.CUSTOMER, "CUS-1"),
        (datetime(2026, 10, 19, 9, 0), ActivityType.RESCHEDULE_REQUESTED, CreatedBy.CUSTOMER, "CUS-1"),
        (datetime(2026, 10, 19, 9, 0), ActivityType.APPOINTMENT_CREATED, CreatedBy.CUSTOMER, "CUS-2"),
        (datetime(2026, 10, 19, 10, 0), ActivityType.RESCHEDULE_REJECTED, CreatedBy.ADMIN, "CUS-1"),
    ]
    for moment, activity_type, created_by, customer_id in entries:
        clock.advance_to(moment)
        asyncio.run(
            service.record(
                activity_type,
                customer_id=customer_id,
                appointment_id="APT-1",
                created_by=created_by,
                status=ActivityStatus.PENDING
                if activity_type == ActivityType.RESCHEDULE_REQUESTED
                else ActivityStatus.COMPLETED,
            )
        )


def _service():
    clock = FixedClock(datetime(2026, 10, 18, 8, 0))
    service = ActivityLogService(InMemoryBookingStore(), clock)
    _seed(service, clock)
    return service


def test_default_listing_is_customer_actions_newest_first() -> None:
    result = asyncio.run(_service().list(ActivityLogListRequest()))

    assert result.total == 3
    assert [entry.customer_id for entry in result.items] == ["CUS-2", "CUS-1", "CUS-1"]
    assert result.items[-1].activity_type == ActivityType.APPOINTMENT_CREATED


def test_listing_filters_combine() -> None:
    service = _service()

    pending = asyncio.run(service.list(ActivityLogListRequest(status=ActivityStatus.PENDING)))
    by_day = asyncio.run(
        service.list(ActivityLogListRequest(date_from=date(2026, 10, 19), customer_id="CUS-1"))
    )
    admin = asyncio.run(service.list(ActivityLogListRequest(created_by=CreatedBy.ADMIN)))

    assert [entry.activity_type for entry in pending.items] == [ActivityType.RESCHEDULE_REQUESTED]
    assert by_day.total == 1
    assert [entry.activity_type for entry in admin.items] == [ActivityType.RESCHEDULE_REJECTED]


def test_listing_paginates() -> None:
    result = asyncio.run(_service().list(ActivityLogListRequest(page=2, page_size=2)))

    assert result.total == 3
    assert len(result.items) == 1
    assert result.items[0].created_at.day == 18
