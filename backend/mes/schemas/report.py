"""FORGE MES — Report schemas."""
from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class ThroughputResponse(BaseModel):
    period_start: date
    completed: int
    quantity: Decimal

    model_config = {"from_attributes": True}


class CycleTimeResponse(BaseModel):
    product_id: int
    product_name: str
    orders: int
    avg_days: float

    model_config = {"from_attributes": True}


class UserWorkSummaryResponse(BaseModel):
    user_id: int
    name: str
    total: int
    done: int
    in_progress: int

    model_config = {"from_attributes": True}


class UserProfileResponse(BaseModel):
    user_id: int
    name: str
    email: str
    role: str
    orders_created: dict[str, int]
    late_orders: int
    work_orders: dict[str, int]

    model_config = {"from_attributes": True}


class UserWorkOrderResponse(BaseModel):
    id: int
    reference: str
    mo_id: int
    mo_reference: str
    operation_name: str
    status: str
    expected_duration_mins: Decimal | None
    real_duration_mins: Decimal | None
    variance_mins: Decimal | None

    model_config = {"from_attributes": True}
