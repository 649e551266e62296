"""FORGE MES — Product, WorkCenter and User schemas."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from mes.models.product import ProductCategory


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    uom: str = Field("Units", max_length=50)
    unit_cost: Decimal = Field(Decimal("0"), ge=0)
    category: ProductCategory = ProductCategory.RAW_MATERIAL
    is_component: bool = False

    model_config = {"use_enum_values": True}


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    uom: str | None = Field(None, max_length=50)
    unit_cost: Decimal | None = Field(None, ge=0)
    category: ProductCategory | None = None
    is_component: bool | None = None

    model_config = {"use_enum_values": True}


class ProductResponse(BaseModel):
    id: int
    name: str
    uom: str
    unit_cost: Decimal
    category: str
    is_component: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class WorkCenterCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    capacity_per_hour: Decimal | None = Field(None, ge=0)
    cost_per_hour: Decimal = Field(Decimal("0"), ge=0)
    location: str | None = Field(None, max_length=255)


class WorkCenterUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    capacity_per_hour: Decimal | None = Field(None, ge=0)
    cost_per_hour: Decimal | None = Field(None, ge=0)
    location: str | None = Field(None, max_length=255)


class WorkCenterResponse(BaseModel):
    id: int
    name: str
    capacity_per_hour: Decimal | None
    cost_per_hour: Decimal
    location: str | None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    role: str = "OPERATOR"


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str

    model_config = {"from_attributes": True}
