from fastapi import APIRouter, Depends

from kalbook.dependencies.services import get_appointment_service
from kalbook.schemas.appointment import (
    AppointmentListRequest,
    AppointmentListResponse,
    AppointmentRequest,
    CancelRequest,
    LeaveGroupRequest,
)
from kalbook.schemas.scheduling import Appointment
from kalbook.services import AppointmentService
from kalbook.services.exceptions import ServiceError
from kalbook.tools.errors import to_http_exception

router = APIRouter()


@router.post("/book", response_model=Appointment)
async def book_appointment(
    req: AppointmentRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.book(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/cancel", response_model=Appointment)
async def cancel_appointment(
    req: CancelRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.cancel(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/leave", response_model=Appointment)
async def leave_group_session(
    req: LeaveGroupRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.leave_group(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/list", response_model=AppointmentListResponse)
async def list_appointments(
    req: AppointmentListRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.list(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc
