"""FORGE MES — WorkOrderService: WO state machine, progress aggregation, generation."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mes.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from mes.db.base import MONEY_PLACES, as_utc, utcnow
from mes.models.manufacturing_order import MO_TERMINAL_STATUSES, ManufacturingOrder
from mes.models.product import WorkCenter
from mes.models.user import User
from mes.models.work_order import WO_TERMINAL_STATUSES, WOStatus, WorkOrder
from mes.services.bom_resolver import ScaledOperation, scale_for_quantity
from mes.services.bom_service import BOMService

logger = logging.getLogger(__name__)

# operation -> (allowed source statuses, target status)
_TRANSITIONS: dict[str, tuple[frozenset[str], WOStatus]] = {
    "start": (frozenset({WOStatus.PENDING.value, WOStatus.PAUSED.value}), WOStatus.IN_PROGRESS),
    "pause": (frozenset({WOStatus.IN_PROGRESS.value}), WOStatus.PAUSED),
    "complete": (frozenset({WOStatus.IN_PROGRESS.value, WOStatus.PAUSED.value}), WOStatus.DONE),
    "cancel": (
        frozenset({WOStatus.PENDING.value, WOStatus.IN_PROGRESS.value, WOStatus.PAUSED.value}),
        WOStatus.CANCELLED,
    ),
}

_UPDATABLE_FIELDS = {"operation_name", "expected_duration_mins", "work_center_id"}


@dataclass(frozen=True)
class WorkOrderProgress:
    """Live roll-up of an MO's work orders. Independent of the MO's own status."""

    mo_id: int
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    paused: int = 0
    done: int = 0
    cancelled: int = 0

    @classmethod
    def from_work_orders(cls, mo_id: int, work_orders) -> "WorkOrderProgress":
        """Roll-up of an already loaded collection (list views)."""
        counts: dict[str, int] = {}
        for wo in work_orders:
            counts[wo.status] = counts.get(wo.status, 0) + 1
        return cls(
            mo_id=mo_id,
            total=sum(counts.values()),
            pending=counts.get(WOStatus.PENDING.value, 0),
            in_progress=counts.get(WOStatus.IN_PROGRESS.value, 0),
            paused=counts.get(WOStatus.PAUSED.value, 0),
            done=counts.get(WOStatus.DONE.value, 0),
            cancelled=counts.get(WOStatus.CANCELLED.value, 0),
        )

    @property
    def percent_done(self) -> float:
        active = self.total - self.cancelled
        if active <= 0:
            return 0.0
        return round(self.done * 100.0 / active, 1)

    @property
    def all_done(self) -> bool:
        return self.total > 0 and self.done == self.total - self.cancelled


@dataclass
class WorkOrderTransition:
    work_order: WorkOrder
    previous_status: str
    progress: WorkOrderProgress


@dataclass
class GenerationResult:
    status: str  # no_bom | no_operations | inserted | already_exists
    inserted: int = 0
    work_orders: list[WorkOrder] = field(default_factory=list)


def work_order_from_operation(mo_id: int, op: ScaledOperation) -> WorkOrder:
    return WorkOrder(
        mo_id=mo_id,
        bom_operation_id=op.operation_id,
        work_center_id=op.work_center_id,
        operation_name=op.name,
        sequence=op.sequence,
        expected_duration_mins=op.duration_mins,
        status=WOStatus.PENDING.value,
    )


class WorkOrderService:

    @staticmethod
    async def get_work_order(db: AsyncSession, wo_id: int, *, lock: bool = False) -> WorkOrder:
        q = select(WorkOrder).where(WorkOrder.id == wo_id).execution_options(populate_existing=True)
        if lock:
            q = q.with_for_update()
        wo = await db.scalar(q)
        if wo is None:
            raise NotFoundError("Work order", wo_id)
        return wo

    @staticmethod
    async def list_work_orders(
        db: AsyncSession,
        *,
        mo_id: int | None = None,
        status: str | None = None,
        work_center_id: int | None = None,
        assigned_to: int | None = None,
    ) -> list[WorkOrder]:
        q = select(WorkOrder)
        if mo_id is not None:
            q = q.where(WorkOrder.mo_id == mo_id)
        if status:
            q = q.where(WorkOrder.status == status)
        if work_center_id is not None:
            q = q.where(WorkOrder.work_center_id == work_center_id)
        if assigned_to is not None:
            q = q.where(WorkOrder.assigned_to == assigned_to)
        q = q.order_by(WorkOrder.mo_id, WorkOrder.sequence, WorkOrder.id)
        result = await db.execute(q)
        return list(result.scalars().all())

    @staticmethod
    async def progress(db: AsyncSession, mo_id: int) -> WorkOrderProgress:
        """Count the MO's work orders by status straight from the table."""
        rows = (
            await db.execute(
                select(WorkOrder.status, func.count(WorkOrder.id))
                .where(WorkOrder.mo_id == mo_id)
                .group_by(WorkOrder.status)
            )
        ).all()
        counts = {status: count for status, count in rows}
        return WorkOrderProgress(
            mo_id=mo_id,
            total=sum(counts.values()),
            pending=counts.get(WOStatus.PENDING.value, 0),
            in_progress=counts.get(WOStatus.IN_PROGRESS.value, 0),
            paused=counts.get(WOStatus.PAUSED.value, 0),
            done=counts.get(WOStatus.DONE.value, 0),
            cancelled=counts.get(WOStatus.CANCELLED.value, 0),
        )

    @staticmethod
    async def _transition(
        db: AsyncSession,
        wo_id: int,
        operation: str,
        *,
        now: datetime | None = None,
        label: str | None = None,
    ) -> WorkOrderTransition:
        wo = await WorkOrderService.get_work_order(db, wo_id)
        # MO row first: transitions on sibling WOs serialize their roll-up
        mo_status = (
            await db.execute(
                select(ManufacturingOrder.status).where(ManufacturingOrder.id == wo.mo_id).with_for_update()
            )
        ).scalar_one()
        # a finished or cancelled MO only lets its leftover WOs be cancelled
        if operation != "cancel" and mo_status in MO_TERMINAL_STATUSES:
            raise InvalidTransitionError(
                "Manufacturing order", wo.mo_id, mo_status, f"{label or operation} a work order of"
            )
        wo = await WorkOrderService.get_work_order(db, wo_id, lock=True)

        allowed, target = _TRANSITIONS[operation]
        if wo.status not in allowed:
            raise InvalidTransitionError("Work order", wo.id, wo.status, label or operation)

        now = now or utcnow()
        previous = wo.status
        wo.status = target.value
        if target is WOStatus.IN_PROGRESS and wo.started_at is None:
            wo.started_at = now
        if target is WOStatus.DONE:
            wo.ended_at = now
            if wo.started_at is not None:
                elapsed = (as_utc(now) - as_utc(wo.started_at)).total_seconds() / 60
                wo.real_duration_mins = Decimal(str(max(elapsed, 0.0))).quantize(MONEY_PLACES)
        await db.flush()

        progress = await WorkOrderService.progress(db, wo.mo_id)
        logger.info(
            "%s %s -> %s (MO %s: %d/%d done)",
            wo.reference, previous, wo.status, wo.mo_id, progress.done, progress.total,
        )
        return WorkOrderTransition(work_order=wo, previous_status=previous, progress=progress)

    @staticmethod
    async def start(db: AsyncSession, wo_id: int, *, now: datetime | None = None) -> WorkOrderTransition:
        """pending|paused -> in_progress. Keeps an existing started_at."""
        return await WorkOrderService._transition(db, wo_id, "start", now=now)

    @staticmethod
    async def resume(db: AsyncSession, wo_id: int, *, now: datetime | None = None) -> WorkOrderTransition:
        return await WorkOrderService._transition(db, wo_id, "start", now=now, label="resume")

    @staticmethod
    async def pause(db: AsyncSession, wo_id: int, *, now: datetime | None = None) -> WorkOrderTransition:
        return await WorkOrderService._transition(db, wo_id, "pause", now=now)

    @staticmethod
    async def complete(db: AsyncSession, wo_id: int, *, now: datetime | None = None) -> WorkOrderTransition:
        """in_progress|paused -> done. Duration runs from the first start, not the last resume."""
        return await WorkOrderService._transition(db, wo_id, "complete", now=now)

    @staticmethod
    async def cancel(db: AsyncSession, wo_id: int, *, now: datetime | None = None) -> WorkOrderTransition:
        return await WorkOrderService._transition(db, wo_id, "cancel", now=now)

    @staticmethod
    async def update_work_order(db: AsyncSession, wo_id: int, **fields) -> WorkOrder:
        if "status" in fields:
            raise ValidationError(
                "Status changes go through start, pause, resume, complete or cancel",
                field="status",
            )
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Field '{sorted(unknown)[0]}' cannot be updated", field=sorted(unknown)[0])

        wo = await WorkOrderService.get_work_order(db, wo_id, lock=True)
        if wo.status in WO_TERMINAL_STATUSES:
            raise InvalidTransitionError("Work order", wo.id, wo.status, "update")
        if fields.get("work_center_id") is not None and await db.get(WorkCenter, fields["work_center_id"]) is None:
            raise NotFoundError("Work center", fields["work_center_id"])
        if "operation_name" in fields and not (fields["operation_name"] or "").strip():
            raise ValidationError("Operation name cannot be empty", field="operation_name")
        if fields.get("expected_duration_mins") is not None and Decimal(str(fields["expected_duration_mins"])) < 0:
            raise ValidationError("Expected duration cannot be negative", field="expected_duration_mins")

        for key, value in fields.items():
            setattr(wo, key, value)
        await db.flush()
        return await WorkOrderService.get_work_order(db, wo_id)

    @staticmethod
    async def assign(db: AsyncSession, wo_id: int, assignee_id: int | None) -> WorkOrder:
        wo = await WorkOrderService.get_work_order(db, wo_id, lock=True)
        if assignee_id is not None and await db.get(User, assignee_id) is None:
            raise NotFoundError("User", assignee_id)
        wo.assigned_to = assignee_id
        await db.flush()
        logger.info("%s assigned to user %s", wo.reference, assignee_id)
        return wo

    @staticmethod
    async def generate_missing(db: AsyncSession, mo_id: int) -> GenerationResult:
        """Add one WO per BOM operation the MO does not have yet, matched by operation id."""
        mo = await db.scalar(
            select(ManufacturingOrder)
            .where(ManufacturingOrder.id == mo_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if mo is None:
            raise NotFoundError("Manufacturing order", mo_id)
        if mo.status in MO_TERMINAL_STATUSES:
            raise InvalidTransitionError("Manufacturing order", mo.id, mo.status, "generate work orders for")

        bom = await BOMService.get_effective_bom(db, mo.product_id, mo.bom_id)
        if bom is None:
            return GenerationResult(status="no_bom")
        operations = scale_for_quantity(bom, mo.quantity).operations
        if not operations:
            return GenerationResult(status="no_operations")

        existing = set(
            (
                await db.execute(
                    select(WorkOrder.bom_operation_id).where(
                        WorkOrder.mo_id == mo_id,
                        WorkOrder.bom_operation_id.is_not(None),
                    )
                )
            ).scalars().all()
        )
        new_orders = [
            work_order_from_operation(mo_id, op) for op in operations if op.operation_id not in existing
        ]
        if not new_orders:
            return GenerationResult(status="already_exists")

        db.add_all(new_orders)
        await db.flush()
        logger.info("%s generated %d missing work orders", mo.reference, len(new_orders))
        inserted = (
            await db.execute(
                select(WorkOrder)
                .where(WorkOrder.id.in_([wo.id for wo in new_orders]))
                .order_by(WorkOrder.sequence, WorkOrder.id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        return GenerationResult(status="inserted", inserted=len(new_orders), work_orders=list(inserted))
