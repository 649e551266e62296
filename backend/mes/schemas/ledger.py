"""FORGE MES — Stock ledger schemas."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from mes.models.stock_ledger import MovementType


class MovementCreate(BaseModel):
    product_id: int
    movement_type: MovementType
    quantity: Decimal = Field(..., gt=0)
    reference: str | None = Field(None, max_length=255)
    unit_cost: Decimal | None = Field(None, ge=0, description="Overwrites the product's unit cost")


class LedgerEntryResponse(BaseModel):
    id: int
    product_id: int
    movement_type: str
    quantity: Decimal
    reference: str | None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class StockLevelResponse(BaseModel):
    product_id: int
    name: str
    uom: str
    unit_cost: Decimal
    incoming: Decimal
    outgoing: Decimal
    on_hand: Decimal
    free_to_use: Decimal
    total_value: Decimal

    model_config = {"from_attributes": True}
