"""FORGE MES — Manufacturing Order model."""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mes.db.base import Base, utcnow
from mes.models.bom import BOM
from mes.models.product import Product


class MOStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"


class ComponentStatus(str, Enum):
    """Whether the order's components are currently booked out of the ledger."""

    PENDING = "pending"
    RESERVED = "reserved"
    RELEASED = "released"


MO_TERMINAL_STATUSES = {MOStatus.DONE.value, MOStatus.CANCELLED.value}


def mo_reference(mo_id: int) -> str:
    return f"MO-{mo_id:06d}"


class ManufacturingOrder(Base):
    __tablename__ = "manufacturing_orders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    bom_id: Mapped[int | None] = mapped_column(ForeignKey("boms.id", ondelete="SET NULL"), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=MOStatus.DRAFT.value, index=True)
    component_status: Mapped[str] = mapped_column(String(50), nullable=False, default=ComponentStatus.PENDING.value)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    assignee_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    product: Mapped["Product"] = relationship("Product", lazy="selectin")
    bom: Mapped["BOM | None"] = relationship("BOM", lazy="selectin")
    work_orders: Mapped[list["WorkOrder"]] = relationship(  # noqa: F821
        "WorkOrder",
        back_populates="manufacturing_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="[WorkOrder.sequence, WorkOrder.id]",
    )

    @property
    def reference(self) -> str:
        return mo_reference(self.id) if self.id is not None else "MO-NEW"

    @property
    def reservation_reference(self) -> str:
        return f"{self.reference}-RESERVE"

    @property
    def release_reference(self) -> str:
        return f"{self.reference}-RELEASE"
