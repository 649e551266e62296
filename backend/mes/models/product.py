"""FORGE MES — Product and WorkCenter reference tables."""
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from mes.db.base import Base, utcnow


class ProductCategory(str, Enum):
    RAW_MATERIAL = "raw_material"
    FINISHED = "finished"


class Product(Base):
    """Anything that moves through the ledger: raw materials and finished goods."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    uom: Mapped[str] = mapped_column(String(50), nullable=False, default="Units")
    # Overwritten by priced ledger movements; last write wins.
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False, default=0)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default=ProductCategory.RAW_MATERIAL.value)
    is_component: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class WorkCenter(Base):
    __tablename__ = "work_centers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    capacity_per_hour: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    cost_per_hour: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
