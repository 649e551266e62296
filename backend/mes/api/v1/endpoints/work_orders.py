"""FORGE MES — Work Order endpoints: list, edit, assign, state transitions."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mes.api.deps import (
    PERM_MO_MANAGE,
    PERM_MO_READ,
    PERM_WO_OPERATE,
    CurrentUser,
    get_db,
    require_permission,
)
from mes.schemas.common import ApiResponse
from mes.schemas.work_order import (
    GenerationResponse,
    ProgressResponse,
    WorkOrderAssign,
    WorkOrderResponse,
    WorkOrderTransitionResponse,
    WorkOrderUpdate,
)
from mes.services.work_order_service import WorkOrderService, WorkOrderTransition

router = APIRouter()


def _transition_to_response(result: WorkOrderTransition) -> WorkOrderTransitionResponse:
    return WorkOrderTransitionResponse(
        work_order=WorkOrderResponse.model_validate(result.work_order),
        previous_status=result.previous_status,
        progress=ProgressResponse.model_validate(result.progress),
    )


@router.get("", response_model=ApiResponse[list[WorkOrderResponse]])
async def list_work_orders(
    mo_id: int | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    work_center_id: int | None = Query(None),
    assigned_to: int | None = Query(None),
    user: CurrentUser = Depends(require_permission(PERM_MO_READ)),
    db: AsyncSession = Depends(get_db),
):
    orders = await WorkOrderService.list_work_orders(
        db, mo_id=mo_id, status=status_filter, work_center_id=work_center_id, assigned_to=assigned_to
    )
    return ApiResponse(data=[WorkOrderResponse.model_validate(wo) for wo in orders])


@router.post("/generate-missing/{mo_id}", response_model=ApiResponse[GenerationResponse])
async def generate_missing(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    """Add work orders for BOM operations the MO does not have yet."""
    result = await WorkOrderService.generate_missing(db, mo_id)
    return ApiResponse(
        data=GenerationResponse(
            status=result.status,
            inserted=result.inserted,
            work_orders=[WorkOrderResponse.model_validate(wo) for wo in result.work_orders],
        )
    )


@router.get("/{wo_id}", response_model=ApiResponse[WorkOrderResponse])
async def get_work_order(
    wo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_READ)),
    db: AsyncSession = Depends(get_db),
):
    wo = await WorkOrderService.get_work_order(db, wo_id)
    return ApiResponse(data=WorkOrderResponse.model_validate(wo))


@router.patch("/{wo_id}", response_model=ApiResponse[WorkOrderResponse])
async def update_work_order(
    wo_id: int,
    body: WorkOrderUpdate,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    wo = await WorkOrderService.update_work_order(db, wo_id, **body.model_dump(exclude_unset=True))
    return ApiResponse(data=WorkOrderResponse.model_validate(wo))


@router.post("/{wo_id}/assign", response_model=ApiResponse[WorkOrderResponse])
async def assign_work_order(
    wo_id: int,
    body: WorkOrderAssign,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    wo = await WorkOrderService.assign(db, wo_id, body.assignee_id)
    return ApiResponse(data=WorkOrderResponse.model_validate(wo))


@router.post("/{wo_id}/start", response_model=ApiResponse[WorkOrderTransitionResponse])
async def start_work_order(
    wo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_WO_OPERATE)),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=_transition_to_response(await WorkOrderService.start(db, wo_id)))


@router.post("/{wo_id}/pause", response_model=ApiResponse[WorkOrderTransitionResponse])
async def pause_work_order(
    wo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_WO_OPERATE)),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=_transition_to_response(await WorkOrderService.pause(db, wo_id)))


@router.post("/{wo_id}/resume", response_model=ApiResponse[WorkOrderTransitionResponse])
async def resume_work_order(
    wo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_WO_OPERATE)),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=_transition_to_response(await WorkOrderService.resume(db, wo_id)))


@router.post("/{wo_id}/complete", response_model=ApiResponse[WorkOrderTransitionResponse])
async def complete_work_order(
    wo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_WO_OPERATE)),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=_transition_to_response(await WorkOrderService.complete(db, wo_id)))


@router.post("/{wo_id}/cancel", response_model=ApiResponse[WorkOrderTransitionResponse])
async def cancel_work_order(
    wo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse(data=_transition_to_response(await WorkOrderService.cancel(db, wo_id)))
