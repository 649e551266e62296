"""FORGE MES — BOM endpoints, including the scaling preview."""
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mes.api.deps import PERM_BOMS_MANAGE, CurrentUser, get_db, require_auth, require_permission
from mes.models.bom import BOM
from mes.schemas.bom import (
    BOMComponentResponse,
    BOMCreate,
    BOMOperationResponse,
    BOMResponse,
    BomScalingResponse,
    BOMUpdate,
)
from mes.schemas.common import ApiResponse, Meta
from mes.services.bom_service import BOMService

router = APIRouter()


def _bom_to_response(bom: BOM, is_locked: bool = False) -> BOMResponse:
    return BOMResponse(
        id=bom.id,
        product_id=bom.product_id,
        name=bom.name,
        output_quantity=bom.output_quantity,
        components=[BOMComponentResponse.model_validate(c) for c in bom.components],
        operations=[BOMOperationResponse.model_validate(op) for op in bom.operations],
        is_locked=is_locked,
        created_at=bom.created_at,
    )


@router.get("", response_model=ApiResponse[list[BOMResponse]])
async def list_boms(
    product_id: int | None = Query(None, description="Filter by produced product"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    boms = await BOMService.list_boms(db, product_id)
    start = (page - 1) * page_size
    return ApiResponse(
        data=[_bom_to_response(b) for b in boms[start:start + page_size]],
        meta=Meta(page=page, page_size=page_size, total_count=len(boms)),
    )


@router.post("", response_model=ApiResponse[BOMResponse], status_code=status.HTTP_201_CREATED)
async def create_bom(
    body: BOMCreate,
    user: CurrentUser = Depends(require_permission(PERM_BOMS_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    """Create a Bill of Materials with components and operations."""
    bom = await BOMService.create_bom(
        db,
        body.product_id,
        body.name,
        output_quantity=body.output_quantity,
        components=[c.model_dump() for c in body.components],
        operations=[op.model_dump() for op in body.operations],
    )
    return ApiResponse(data=_bom_to_response(bom))


@router.get("/{bom_id}", response_model=ApiResponse[BOMResponse])
async def get_bom(
    bom_id: int,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    bom = await BOMService.get_bom(db, bom_id)
    return ApiResponse(data=_bom_to_response(bom, await BOMService.is_locked(db, bom_id)))


@router.patch("/{bom_id}", response_model=ApiResponse[BOMResponse])
async def update_bom(
    bom_id: int,
    body: BOMUpdate,
    user: CurrentUser = Depends(require_permission(PERM_BOMS_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(exclude_unset=True)
    bom = await BOMService.update_bom(db, bom_id, **fields)
    return ApiResponse(data=_bom_to_response(bom))


@router.delete("/{bom_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bom(
    bom_id: int,
    user: CurrentUser = Depends(require_permission(PERM_BOMS_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    await BOMService.delete_bom(db, bom_id)


@router.get("/{bom_id}/preview", response_model=ApiResponse[BomScalingResponse])
async def preview_scaling(
    bom_id: int,
    quantity: Decimal = Query(..., gt=0),
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Scaled component requirements and ordered operations. Writes nothing."""
    scaling = await BOMService.preview_scaling(db, bom_id, quantity)
    return ApiResponse(data=BomScalingResponse.model_validate(scaling))
