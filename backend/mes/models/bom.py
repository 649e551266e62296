"""FORGE MES — BOM, BOMComponent and BOMOperation models."""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mes.db.base import Base, utcnow
from mes.models.product import Product, WorkCenter


class BOM(Base):
    """Bill of Materials: the recipe for `output_quantity` units of a product."""

    __tablename__ = "boms"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    output_quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    product: Mapped["Product"] = relationship("Product", lazy="selectin")
    components: Mapped[list["BOMComponent"]] = relationship(
        "BOMComponent",
        back_populates="bom",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BOMComponent.id",
    )
    operations: Mapped[list["BOMOperation"]] = relationship(
        "BOMOperation",
        back_populates="bom",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="[BOMOperation.sequence, BOMOperation.id]",
    )


class BOMComponent(Base):
    """Quantity of one component consumed per single unit of BOM output."""

    __tablename__ = "bom_components"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    bom_id: Mapped[int] = mapped_column(ForeignKey("boms.id", ondelete="CASCADE"), nullable=False, index=True)
    component_product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    qty_per_unit: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    uom: Mapped[str | None] = mapped_column(String(50), nullable=True)

    bom: Mapped["BOM"] = relationship("BOM", back_populates="components")
    product: Mapped["Product"] = relationship("Product", lazy="selectin")


class BOMOperation(Base):
    __tablename__ = "bom_operations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    bom_id: Mapped[int] = mapped_column(ForeignKey("boms.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    work_center_id: Mapped[int | None] = mapped_column(ForeignKey("work_centers.id", ondelete="SET NULL"), nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    duration_mins: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)

    bom: Mapped["BOM"] = relationship("BOM", back_populates="operations")
    work_center: Mapped["WorkCenter | None"] = relationship("WorkCenter", lazy="selectin")
