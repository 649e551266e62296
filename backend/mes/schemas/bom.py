"""FORGE MES — BOM schemas, including the scaling preview."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class BOMComponentIn(BaseModel):
    component_product_id: int
    qty_per_unit: Decimal = Field(..., gt=0, description="Quantity of component per single unit of output")
    uom: str | None = Field(None, max_length=50)


class BOMOperationIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    work_center_id: int | None = None
    sequence: int = Field(1, ge=1)
    duration_mins: Decimal = Field(Decimal("0"), ge=0)


class BOMCreate(BaseModel):
    product_id: int
    name: str = Field(..., min_length=1, max_length=255)
    output_quantity: Decimal = Field(Decimal("1"), gt=0)
    components: list[BOMComponentIn] = Field(default_factory=list)
    operations: list[BOMOperationIn] = Field(default_factory=list)


class BOMUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    output_quantity: Decimal | None = Field(None, gt=0)
    components: list[BOMComponentIn] | None = None
    operations: list[BOMOperationIn] | None = None


class BOMComponentResponse(BaseModel):
    id: int
    component_product_id: int
    qty_per_unit: Decimal
    uom: str | None

    model_config = {"from_attributes": True}


class BOMOperationResponse(BaseModel):
    id: int
    name: str
    work_center_id: int | None
    sequence: int
    duration_mins: Decimal

    model_config = {"from_attributes": True}


class BOMResponse(BaseModel):
    id: int
    product_id: int
    name: str
    output_quantity: Decimal
    components: list[BOMComponentResponse]
    operations: list[BOMOperationResponse]
    is_locked: bool = False
    created_at: datetime | None = None


class ScaledComponentResponse(BaseModel):
    product_id: int
    product_name: str | None
    uom: str | None
    unit_cost: Decimal
    per_output_qty: Decimal
    required_qty: Decimal

    model_config = {"from_attributes": True}


class ScaledOperationResponse(BaseModel):
    operation_id: int | None
    name: str
    sequence: int
    work_center_id: int | None
    work_center_name: str | None
    duration_mins: Decimal

    model_config = {"from_attributes": True}


class BomScalingResponse(BaseModel):
    bom_id: int | None
    product_id: int
    product_name: str | None
    quantity: Decimal
    output_quantity: Decimal
    components: list[ScaledComponentResponse]
    operations: list[ScaledOperationResponse]

    model_config = {"from_attributes": True}
