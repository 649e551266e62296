"""FORGE MES — Self-service endpoints: the caller's own stats and work orders."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mes.api.deps import CurrentUser, get_db, require_auth
from mes.schemas.common import ApiResponse
from mes.schemas.report import UserProfileResponse, UserWorkOrderResponse
from mes.services.report_service import ReportService

router = APIRouter()


@router.get("/profile", response_model=ApiResponse[UserProfileResponse])
async def my_profile(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Orders the caller created and work orders assigned to them, by status."""
    stats = await ReportService.user_profile(db, user.id)
    return ApiResponse(data=UserProfileResponse.model_validate(stats))


@router.get("/work-orders", response_model=ApiResponse[list[UserWorkOrderResponse]])
async def my_work_orders(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    rows = await ReportService.user_work_orders(db, user.id)
    return ApiResponse(data=[UserWorkOrderResponse.model_validate(r) for r in rows])
