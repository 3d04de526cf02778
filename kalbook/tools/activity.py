from fastapi import APIRouter, Depends

from kalbook.dependencies.services import get_activity_service
from kalbook.schemas.activity import ActivityLogListRequest, ActivityLogListResponse
from kalbook.services import ActivityLogService
from kalbook.services.exceptions import ServiceError
from kalbook.tools.errors import to_http_exception

router = APIRouter()


@router.post("/list", response_model=ActivityLogListResponse)
async def list_activity(
    req: ActivityLogListRequest,
    service: ActivityLogService = Depends(get_activity_service),
):
    try:
        return await service.list(req)
    except ServiceError as exc:
        raise to_http_exception(exc) from exc
