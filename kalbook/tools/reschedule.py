from fastapi import APIRouter, Depends

from kalbook.dependencies.services import get_reschedule_service
from kalbook.schemas.reschedule import (
    PendingRescheduleResponse,
    RescheduleCreateRequest,
    RescheduleDecisionRequest,
    RescheduleOutcome,
    RescheduleRejectRequest,
)
from kalbook.schemas.scheduling import RescheduleRequest
from kalbook.services import RescheduleService
from kalbook.services.exceptions import ServiceError
from kalbook.tools.errors import to_http_exception

router = APIRouter()


@router.post("/request", response_model=RescheduleOutcome)
async def request_reschedule(
    req: RescheduleCreateRequest,
    service: RescheduleService = Depends(get_reschedule_service),
):
    try:
        return await service.request(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/approve", response_model=RescheduleOutcome)
async def approve_reschedule(
    req: RescheduleDecisionRequest,
    service: RescheduleService = Depends(get_reschedule_service),
):
    try:
        return await service.approve(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/reject", response_model=RescheduleRequest)
async def reject_reschedule(
    req: RescheduleRejectRequest,
    service: RescheduleService = Depends(get_reschedule_service),
):
    try:
        return await service.reject(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc


@router.post("/pending", response_model=PendingRescheduleResponse)
async def pending_reschedules(
    service: RescheduleService = Depends(get_reschedule_service),
):
    try:
        return await service.list_pending()
    except ServiceError as exc:
        raise to_http_exception(exc) from exc
