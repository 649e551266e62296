"""FORGE MES — Manufacturing Order schemas."""
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from mes.schemas.work_order import ProgressResponse, WorkOrderResponse


class MOCreateByProduct(BaseModel):
    product_id: int
    quantity: Decimal = Field(..., gt=0)
    bom_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    assignee_id: int | None = None


class MOCreateByBom(BaseModel):
    bom_id: int
    quantity: Decimal = Field(..., gt=0)
    start_date: date | None = None
    end_date: date | None = None
    assignee_id: int | None = None


class MOUpdate(BaseModel):
    quantity: Decimal | None = Field(None, gt=0)
    start_date: date | None = None
    end_date: date | None = None
    assignee_id: int | None = None


class MOAttachBom(BaseModel):
    bom_id: int


class MOResponse(BaseModel):
    id: int
    reference: str
    product_id: int
    product_name: str | None
    bom_id: int | None
    quantity: Decimal
    status: str
    component_status: str
    start_date: date | None
    end_date: date | None
    assignee_id: int | None
    created_by: int | None
    created_at: datetime | None
    completed_at: datetime | None = None
    is_late: bool
    is_unassigned: bool
    is_deletable: bool
    progress: ProgressResponse
    work_orders: list[WorkOrderResponse] = []


class HookOutcomeResponse(BaseModel):
    hook: str
    ok: bool
    error_code: str | None = None
    message: str | None = None


class MOTransitionResponse(BaseModel):
    order: MOResponse
    previous_status: str
    hooks: list[HookOutcomeResponse]
    warnings: list[str]


class ComponentAvailabilityResponse(BaseModel):
    product_id: int
    product_name: str | None
    uom: str | None
    required_qty: Decimal
    on_hand: Decimal
    shortfall: Decimal
    sufficient: bool

    model_config = {"from_attributes": True}


class WorkOrderCostResponse(BaseModel):
    work_order_id: int
    reference: str
    operation_name: str
    work_center_id: int | None
    work_center_name: str | None
    real_duration_mins: Decimal
    cost_per_hour: Decimal
    cost: Decimal

    model_config = {"from_attributes": True}


class ComponentCostResponse(BaseModel):
    product_id: int
    product_name: str | None
    required_qty: Decimal
    unit_cost: Decimal
    cost: Decimal

    model_config = {"from_attributes": True}


class MOCostResponse(BaseModel):
    mo_id: int
    reference: str
    product_id: int
    operations_cost: Decimal
    components_cost: Decimal
    total_cost: Decimal
    currency: str
    work_orders: list[WorkOrderCostResponse]
    components: list[ComponentCostResponse]

    model_config = {"from_attributes": True}
