"""FORGE MES — Work center endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from mes.api.deps import PERM_CATALOG_MANAGE, CurrentUser, get_db, require_auth, require_permission
from mes.schemas.common import ApiResponse
from mes.schemas.product import WorkCenterCreate, WorkCenterResponse, WorkCenterUpdate
from mes.services.work_center_service import WorkCenterService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[WorkCenterResponse]])
async def list_work_centers(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    centers = await WorkCenterService.list_work_centers(db)
    return ApiResponse(data=[WorkCenterResponse.model_validate(wc) for wc in centers])


@router.post("", response_model=ApiResponse[WorkCenterResponse], status_code=status.HTTP_201_CREATED)
async def create_work_center(
    body: WorkCenterCreate,
    user: CurrentUser = Depends(require_permission(PERM_CATALOG_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    wc = await WorkCenterService.create_work_center(db, **body.model_dump())
    return ApiResponse(data=WorkCenterResponse.model_validate(wc))


@router.get("/{wc_id}", response_model=ApiResponse[WorkCenterResponse])
async def get_work_center(
    wc_id: int,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    wc = await WorkCenterService.get_work_center(db, wc_id)
    return ApiResponse(data=WorkCenterResponse.model_validate(wc))


@router.patch("/{wc_id}", response_model=ApiResponse[WorkCenterResponse])
async def update_work_center(
    wc_id: int,
    body: WorkCenterUpdate,
    user: CurrentUser = Depends(require_permission(PERM_CATALOG_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    wc = await WorkCenterService.update_work_center(db, wc_id, **body.model_dump(exclude_unset=True))
    return ApiResponse(data=WorkCenterResponse.model_validate(wc))


@router.delete("/{wc_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_work_center(
    wc_id: int,
    user: CurrentUser = Depends(require_permission(PERM_CATALOG_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    await WorkCenterService.delete_work_center(db, wc_id)
