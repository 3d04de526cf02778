# kalbook/mcp_server.py
from __future__ import annotations

import logging
import datetime
from typing import List, Literal, Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import BaseModel, Field

from kalbook.config import get_settings
from kalbook.dependencies.services import get_clock, get_store
from kalbook.schemas.appointment import AppointmentRequest, CancelRequest, CustomerDetails
from kalbook.schemas.availability import AvailabilityRequest
from kalbook.schemas.reschedule import (
    RescheduleCreateRequest,
    RescheduleDecisionRequest,
    RescheduleRejectRequest,
)
from kalbook.schemas.scheduling import CreatedBy
from kalbook.services import AppointmentService, AvailabilityService, RescheduleService
from kalbook.services.exceptions import ServiceError

log = logging.getLogger("kalbook.mcp")

# Name shown to clients (ChatGPT Custom Connector etc.)
mcp = FastMCP("kalbook_mcp")

# --------------------------
# JSON-safe models
# --------------------------
class AppointmentOut(BaseModel):
    id: str
    service_id: str
    worker_id: str
    customer_id: str
    start: str  # ISO 8601 string
    end: str
    status: Literal["created", "confirmed", "cancelled"]
    is_group_appointment: bool = False
    current_participants: Optional[int] = None

    @classmethod
    def from_appointment(cls, appointment) -> "AppointmentOut":
        return cls(
            id=appointment.id,
            service_id=appointment.service_id,
            worker_id=appointment.worker_id,
            customer_id=appointment.customer_id,
            start=appointment.start.isoformat(),
            end=appointment.end.isoformat(),
            status=appointment.status.value,
            is_group_appointment=appointment.is_group_appointment,
            current_participants=appointment.current_participants,
        )

# --------------------------
# Tool I/O models
# --------------------------
class AvailabilityListInput(BaseModel):
    service_id: str = Field(..., description="Service ID, e.g. 'svc-haircut'")
    date: datetime.date = Field(..., description="Date as YYYY-MM-DD")
    worker_id: Optional[str] = Field(None, description="Restrict to one worker")

class AvailabilityListOutput(BaseModel):
    slots: List[str]
    message: Optional[str] = None

class AppointmentBookInput(BaseModel):
    service_id: str
    worker_id: str
    start: str = Field(..., description="Start time ISO 8601, e.g. '2026-10-20T09:30:00'")
    customer_id: Optional[str] = Field(None, description="Existing customer id")
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    created_by: Literal["customer", "admin"] = "customer"

class AppointmentCancelInput(BaseModel):
    appointment_id: str
    created_by: Literal["customer", "admin"] = "customer"

class RescheduleRequestInput(BaseModel):
    appointment_id: str
    requested_start: str = Field(..., description="ISO 8601 start of the new slot")
    requested_end: str = Field(..., description="ISO 8601 end of the new slot")

class RescheduleOutput(BaseModel):
    outcome: Literal["applied", "pending", "rejected"]
    appointment: Optional[AppointmentOut] = None
    request_id: Optional[str] = None
    message: Optional[str] = None

class RescheduleRejectInput(BaseModel):
    request_id: str
    message: Optional[str] = None

# --------------------------
# Helpers
# --------------------------
async def _context():
    settings = get_settings()
    store = get_store(settings)
    return store, await get_clock(settings, store), settings


def _tool_error(exc: ServiceError) -> ToolError:
    log.debug("tool failed code=%s message=%s", exc.code, exc)
    return ToolError(f"{exc.code}: {exc}")

# --------------------------
# Tools
# --------------------------
@mcp.tool(name="availability_list", description="List bookable start times for a service on a date")
async def availability_list(input: AvailabilityListInput, ctx: Context) -> AvailabilityListOutput:
    log.debug("availability_list input=%s", input.model_dump())
    store, clock, settings = await _context()
    service = AvailabilityService(
        store,
        clock,
        lead_time_minutes=settings.lead_time_minutes,
        horizon_days=settings.booking_horizon_days,
    )
    try:
        result = await service.list_availability(
            AvailabilityRequest(service_id=input.service_id, date=input.date, worker_id=input.worker_id)
        )
    except ServiceError as exc:
        raise _tool_error(exc) from exc
    out = AvailabilityListOutput(slots=result.slots, message=result.message)
    log.debug("availability_list output=%s", out.model_dump())
    return out

@mcp.tool(name="appointments_book", description="Book an appointment")
async def appointments_book(input: AppointmentBookInput, ctx: Context) -> AppointmentOut:
    log.debug("appointments_book input=%s", input.model_dump(exclude={"customer_phone"}))
    store, clock, settings = await _context()
    customer = None
    if not input.customer_id:
        customer = CustomerDetails(
            name=input.customer_name, email=input.customer_email, phone=input.customer_phone
        )
    try:
        appointment = await AppointmentService(
            store, clock, lead_time_minutes=settings.lead_time_minutes
        ).book(
            AppointmentRequest(
                service_id=input.service_id,
                worker_id=input.worker_id,
                start=input.start,
                customer_id=input.customer_id,
                customer=customer,
                created_by=CreatedBy(input.created_by),
            )
        )
    except ServiceError as exc:
        raise _tool_error(exc) from exc
    out = AppointmentOut.from_appointment(appointment)
    log.debug("appointments_book output=%s", out.model_dump())
    return out

@mcp.tool(name="appointments_cancel", description="Cancel an appointment")
async def appointments_cancel(input: AppointmentCancelInput, ctx: Context) -> AppointmentOut:
    log.debug("appointments_cancel input=%s", input.model_dump())
    store, clock, _ = await _context()
    try:
        appointment = await AppointmentService(store, clock).cancel(
            CancelRequest(appointment_id=input.appointment_id, created_by=CreatedBy(input.created_by))
        )
    except ServiceError as exc:
        raise _tool_error(exc) from exc
    return AppointmentOut.from_appointment(appointment)

@mcp.tool(name="reschedule_request", description="Ask to move an appointment to another time")
async def reschedule_request(input: RescheduleRequestInput, ctx: Context) -> RescheduleOutput:
    log.debug("reschedule_request input=%s", input.model_dump())
    store, clock, _ = await _context()
    try:
        result = await RescheduleService(store, clock).request(
            RescheduleCreateRequest(**input.model_dump())
        )
    except ServiceError as exc:
        raise _tool_error(exc) from exc
    if result.outcome == "applied":
        return RescheduleOutput(
            outcome="applied", appointment=AppointmentOut.from_appointment(result.appointment)
        )
    return RescheduleOutput(
        outcome="pending",
        request_id=result.request.id,
        message="Waiting for business approval",
    )

@mcp.tool(name="reschedule_approve", description="Approve a pending reschedule request")
async def reschedule_approve(request_id: str, ctx: Context) -> RescheduleOutput:
    log.debug("reschedule_approve request_id=%s", request_id)
    store, clock, _ = await _context()
    try:
        result = await RescheduleService(store, clock).approve(
            RescheduleDecisionRequest(request_id=request_id)
        )
    except ServiceError as exc:
        raise _tool_error(exc) from exc
    return RescheduleOutput(
        outcome="applied",
        appointment=AppointmentOut.from_appointment(result.appointment),
        request_id=request_id,
    )

@mcp.tool(name="reschedule_reject", description="Reject a pending reschedule request")
async def reschedule_reject(input: RescheduleRejectInput, ctx: Context) -> RescheduleOutput:
    log.debug("reschedule_reject input=%s", input.model_dump())
    store, clock, _ = await _context()
    try:
        rejected = await RescheduleService(store, clock).reject(
            RescheduleRejectRequest(request_id=input.request_id, message=input.message)
        )
    except ServiceError as exc:
        raise _tool_error(exc) from exc
    return RescheduleOutput(
        outcome="rejected", request_id=rejected.id, message=rejected.rejection_message
    )

@mcp.tool(name="ping", description="Health check")
async def ping(message: str) -> str:
    log.debug("ping %s", message)
    return f"pong: {message}"
