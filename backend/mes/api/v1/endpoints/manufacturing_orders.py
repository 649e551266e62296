"""FORGE MES — Manufacturing Order endpoints: CRUD, lifecycle, cost, availability."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mes.api.deps import (
    PERM_MO_MANAGE,
    PERM_MO_READ,
    CurrentUser,
    get_db,
    require_permission,
)
from mes.models.manufacturing_order import ManufacturingOrder
from mes.schemas.common import ApiResponse, Meta
from mes.schemas.manufacturing_order import (
    ComponentAvailabilityResponse,
    HookOutcomeResponse,
    MOAttachBom,
    MOCostResponse,
    MOCreateByBom,
    MOCreateByProduct,
    MOResponse,
    MOTransitionResponse,
    MOUpdate,
)
from mes.schemas.work_order import ProgressResponse, WorkOrderResponse
from mes.services.manufacturing_order_service import ManufacturingOrderService, TransitionResult
from mes.services.work_order_service import WorkOrderProgress

router = APIRouter()


def _mo_to_response(mo: ManufacturingOrder) -> MOResponse:
    progress = WorkOrderProgress.from_work_orders(mo.id, mo.work_orders)
    return MOResponse(
        id=mo.id,
        reference=mo.reference,
        product_id=mo.product_id,
        product_name=mo.product.name if mo.product is not None else None,
        bom_id=mo.bom_id,
        quantity=mo.quantity,
        status=mo.status,
        component_status=mo.component_status,
        start_date=mo.start_date,
        end_date=mo.end_date,
        assignee_id=mo.assignee_id,
        created_by=mo.created_by,
        created_at=mo.created_at,
        completed_at=mo.completed_at,
        is_late=ManufacturingOrderService.is_late(mo),
        is_unassigned=mo.assignee_id is None,
        is_deletable=ManufacturingOrderService.is_deletable(mo),
        progress=ProgressResponse.model_validate(progress),
        work_orders=[WorkOrderResponse.model_validate(wo) for wo in mo.work_orders],
    )


def _transition_to_response(result: TransitionResult) -> MOTransitionResponse:
    return MOTransitionResponse(
        order=_mo_to_response(result.order),
        previous_status=result.previous_status,
        hooks=[
            HookOutcomeResponse(
                hook=o.hook,
                ok=o.ok,
                error_code=getattr(o.error, "code", "internal_error") if o.error is not None else None,
                message=o.message,
            )
            for o in result.outcomes
        ],
        warnings=result.warnings,
    )


@router.get("", response_model=ApiResponse[list[MOResponse]])
async def list_manufacturing_orders(
    status_filter: str | None = Query(None, alias="status"),
    product_id: int | None = Query(None),
    created_by: int | None = Query(None),
    mine: bool = Query(False, description="Only orders created by the caller"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    user: CurrentUser = Depends(require_permission(PERM_MO_READ)),
    db: AsyncSession = Depends(get_db),
):
    """List manufacturing orders, newest first."""
    orders, total = await ManufacturingOrderService.list_manufacturing_orders(
        db,
        status=status_filter,
        product_id=product_id,
        created_by=user.id if mine else created_by,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return ApiResponse(
        data=[_mo_to_response(mo) for mo in orders],
        meta=Meta(page=page, page_size=page_size, total_count=total),
    )


@router.get("/late", response_model=ApiResponse[list[MOResponse]])
async def list_late_orders(
    mine: bool = Query(False),
    user: CurrentUser = Depends(require_permission(PERM_MO_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Open orders whose end date has passed."""
    orders = await ManufacturingOrderService.list_late(db, created_by=user.id if mine else None)
    return ApiResponse(data=[_mo_to_response(mo) for mo in orders])


@router.post("", response_model=ApiResponse[MOResponse], status_code=status.HTTP_201_CREATED)
async def create_by_product(
    body: MOCreateByProduct,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft MO for a product, optionally pinned to one of its BOMs."""
    mo = await ManufacturingOrderService.create_by_product(
        db,
        body.product_id,
        body.quantity,
        bom_id=body.bom_id,
        start_date=body.start_date,
        end_date=body.end_date,
        assignee_id=body.assignee_id,
        created_by=user.id,
    )
    return ApiResponse(data=_mo_to_response(mo))


@router.post("/from-bom", response_model=ApiResponse[MOResponse], status_code=status.HTTP_201_CREATED)
async def create_by_bom(
    body: MOCreateByBom,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft MO from a BOM, with its work orders."""
    mo = await ManufacturingOrderService.create_by_bom(
        db,
        body.bom_id,
        body.quantity,
        start_date=body.start_date,
        end_date=body.end_date,
        assignee_id=body.assignee_id,
        created_by=user.id,
    )
    return ApiResponse(data=_mo_to_response(mo))


@router.get("/{mo_id}", response_model=ApiResponse[MOResponse])
async def get_manufacturing_order(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_READ)),
    db: AsyncSession = Depends(get_db),
):
    mo = await ManufacturingOrderService.get_manufacturing_order(db, mo_id)
    return ApiResponse(data=_mo_to_response(mo))


@router.patch("/{mo_id}", response_model=ApiResponse[MOResponse])
async def update_manufacturing_order(
    mo_id: int,
    body: MOUpdate,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    mo = await ManufacturingOrderService.update(db, mo_id, **body.model_dump(exclude_unset=True))
    return ApiResponse(data=_mo_to_response(mo))


@router.delete("/{mo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_manufacturing_order(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a draft MO and its work orders."""
    await ManufacturingOrderService.delete(db, mo_id)


@router.post("/{mo_id}/bom", response_model=ApiResponse[MOResponse])
async def attach_bom(
    mo_id: int,
    body: MOAttachBom,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    mo = await ManufacturingOrderService.attach_bom(db, mo_id, body.bom_id)
    return ApiResponse(data=_mo_to_response(mo))


@router.post("/{mo_id}/confirm", response_model=ApiResponse[MOTransitionResponse])
async def confirm(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    """draft -> confirmed. Component reservation failures come back as warnings."""
    result = await ManufacturingOrderService.confirm(db, mo_id)
    return ApiResponse(data=_transition_to_response(result))


@router.post("/{mo_id}/start", response_model=ApiResponse[MOTransitionResponse])
async def start(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    result = await ManufacturingOrderService.start(db, mo_id)
    return ApiResponse(data=_transition_to_response(result))


@router.post("/{mo_id}/complete", response_model=ApiResponse[MOTransitionResponse])
async def complete(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    result = await ManufacturingOrderService.complete(db, mo_id)
    return ApiResponse(data=_transition_to_response(result))


@router.post("/{mo_id}/cancel", response_model=ApiResponse[MOTransitionResponse])
async def cancel(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    result = await ManufacturingOrderService.cancel(db, mo_id)
    return ApiResponse(data=_transition_to_response(result))


@router.get("/{mo_id}/progress", response_model=ApiResponse[ProgressResponse])
async def get_progress(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Work order roll-up, independent of the MO's own status."""
    progress = await ManufacturingOrderService.progress(db, mo_id)
    return ApiResponse(data=ProgressResponse.model_validate(progress))


@router.get("/{mo_id}/components", response_model=ApiResponse[list[ComponentAvailabilityResponse]])
async def components_availability(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_READ)),
    db: AsyncSession = Depends(get_db),
):
    rows = await ManufacturingOrderService.components_availability(db, mo_id)
    return ApiResponse(data=[ComponentAvailabilityResponse.model_validate(r) for r in rows])


@router.get("/{mo_id}/cost", response_model=ApiResponse[MOCostResponse])
async def get_cost(
    mo_id: int,
    user: CurrentUser = Depends(require_permission(PERM_MO_READ)),
    db: AsyncSession = Depends(get_db),
):
    cost = await ManufacturingOrderService.cost(db, mo_id)
    return ApiResponse(data=MOCostResponse.model_validate(cost))
