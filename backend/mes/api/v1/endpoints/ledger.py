"""FORGE MES — Stock ledger endpoints: summary, entries, movements."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mes.api.deps import PERM_LEDGER_WRITE, CurrentUser, get_db, require_auth, require_permission
from mes.schemas.common import ApiResponse, Meta
from mes.schemas.ledger import LedgerEntryResponse, MovementCreate, StockLevelResponse
from mes.services.ledger_service import LedgerService

router = APIRouter()


@router.get("/summary", response_model=ApiResponse[list[StockLevelResponse]])
async def get_summary(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """On-hand, free-to-use and value per product, derived from the ledger."""
    levels = await LedgerService.get_summary(db)
    return ApiResponse(data=[StockLevelResponse.model_validate(level) for level in levels])


@router.get("/products/{product_id}", response_model=ApiResponse[StockLevelResponse])
async def get_on_hand(
    product_id: int,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    level = await LedgerService.get_on_hand(db, product_id)
    return ApiResponse(data=StockLevelResponse.model_validate(level))


@router.get("/entries", response_model=ApiResponse[list[LedgerEntryResponse]])
async def list_entries(
    product_id: int | None = Query(None),
    movement_type: str | None = Query(None, alias="type"),
    reference: str | None = Query(None, description="Case-insensitive substring"),
    page: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=500),
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Ledger entries, newest first."""
    entries, total = await LedgerService.list_entries(
        db,
        product_id=product_id,
        movement_type=movement_type,
        reference=reference,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return ApiResponse(
        data=[LedgerEntryResponse.model_validate(e) for e in entries],
        meta=Meta(page=page, page_size=page_size, total_count=total),
    )


@router.get("/entries/{entry_id}", response_model=ApiResponse[LedgerEntryResponse])
async def get_entry(
    entry_id: int,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    entry = await LedgerService.get_entry(db, entry_id)
    return ApiResponse(data=LedgerEntryResponse.model_validate(entry))


@router.post("/movements", response_model=ApiResponse[LedgerEntryResponse], status_code=status.HTTP_201_CREATED)
async def add_movement(
    body: MovementCreate,
    user: CurrentUser = Depends(require_permission(PERM_LEDGER_WRITE)),
    db: AsyncSession = Depends(get_db),
):
    """Append a movement; an optional unit_cost overwrites the product's cost."""
    entry = await LedgerService.record_movement(
        db,
        body.product_id,
        body.movement_type,
        body.quantity,
        reference=body.reference,
        unit_cost=body.unit_cost,
    )
    return ApiResponse(data=LedgerEntryResponse.model_validate(entry))
