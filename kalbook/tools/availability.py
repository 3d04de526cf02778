from fastapi import APIRouter, Depends

from kalbook.dependencies.services import get_availability_service
from kalbook.schemas.availability import (
    AvailabilityRequest,
    AvailabilityResponse,
    AvailableDatesRequest,
    AvailableDatesResponse,
    GroupSessionRequest,
    GroupSessionResponse,
)
from kalbook.services import AvailabilityService
from kalbook.services.exceptions import ServiceError
from kalbook.tools.errors import to_http_exception

router = APIRouter()


@router.post("/list", response_model=AvailabilityResponse)
async def list_availability(
    req: AvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        return await service.list_availability(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/dates", response_model=AvailableDatesResponse)
async def available_dates(
    req: AvailableDatesRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        return await service.available_dates(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/group", response_model=GroupSessionResponse)
async def list_group_sessions(
    req: GroupSessionRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        return await service.list_group_sessions(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc
