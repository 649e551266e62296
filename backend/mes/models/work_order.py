"""FORGE MES — Work Order model (one executable step of an MO)."""
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mes.db.base import Base, utcnow
from mes.models.manufacturing_order import ManufacturingOrder
from mes.models.product import WorkCenter


class WOStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    DONE = "done"
    CANCELLED = "cancelled"


WO_TERMINAL_STATUSES = {WOStatus.DONE.value, WOStatus.CANCELLED.value}


class WorkOrder(Base):
    __tablename__ = "work_orders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    mo_id: Mapped[int] = mapped_column(ForeignKey("manufacturing_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # Null for the generic fallback steps of an MO whose BOM has no operations.
    bom_operation_id: Mapped[int | None] = mapped_column(
        ForeignKey("bom_operations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    work_center_id: Mapped[int | None] = mapped_column(ForeignKey("work_centers.id", ondelete="SET NULL"), nullable=True)
    operation_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    expected_duration_mins: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=WOStatus.PENDING.value, index=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    real_duration_mins: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    manufacturing_order: Mapped["ManufacturingOrder"] = relationship("ManufacturingOrder", back_populates="work_orders")
    work_center: Mapped["WorkCenter | None"] = relationship("WorkCenter", lazy="selectin")

    @property
    def reference(self) -> str:
        return f"WO-{self.id:06d}" if self.id is not None else "WO-NEW"
