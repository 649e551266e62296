"""FORGE MES — Work Order schemas."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class WorkOrderUpdate(BaseModel):
    operation_name: str | None = Field(None, min_length=1, max_length=255)
    expected_duration_mins: Decimal | None = Field(None, ge=0)
    work_center_id: int | None = None


class WorkOrderAssign(BaseModel):
    assignee_id: int | None = None


class WorkOrderResponse(BaseModel):
    id: int
    reference: str
    mo_id: int
    bom_operation_id: int | None
    work_center_id: int | None
    operation_name: str
    sequence: int
    expected_duration_mins: Decimal | None
    assigned_to: int | None
    status: str
    started_at: datetime | None
    ended_at: datetime | None
    real_duration_mins: Decimal | None

    model_config = {"from_attributes": True}


class ProgressResponse(BaseModel):
    mo_id: int
    total: int
    pending: int
    in_progress: int
    paused: int
    done: int
    cancelled: int
    percent_done: float
    all_done: bool

    model_config = {"from_attributes": True}


class WorkOrderTransitionResponse(BaseModel):
    work_order: WorkOrderResponse
    previous_status: str
    progress: ProgressResponse


class GenerationResponse(BaseModel):
    status: str
    inserted: int
    work_orders: list[WorkOrderResponse] = []
