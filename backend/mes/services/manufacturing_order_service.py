"""FORGE MES — ManufacturingOrderService: MO lifecycle, WO generation, lateness, cost.

Transitions commit the status change first and then run the post-commit hooks
registered for that transition. Each hook gets its own transaction; a hook
that fails is rolled back and reported on the result, never undoing the
transition itself.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mes.core.errors import (
    DomainError,
    InvalidTransitionError,
    NotFoundError,
    ReferentialError,
    ValidationError,
)
from mes.db.base import to_money, to_qty, utcnow
from mes.models.bom import BOM
from mes.models.manufacturing_order import MO_TERMINAL_STATUSES, ManufacturingOrder, MOStatus
from mes.models.product import Product, WorkCenter
from mes.models.user import User
from mes.models.work_order import WorkOrder, WOStatus
from mes.services.bom_resolver import BomScaling, scale_for_quantity
from mes.services.bom_service import BOMService
from mes.services.notification_service import NotificationService
from mes.services.reservation_service import ComponentAvailability, ReservationService
from mes.services.work_order_service import (
    WorkOrderProgress,
    WorkOrderService,
    work_order_from_operation,
)

logger = logging.getLogger(__name__)

PostCommitHook = Callable[[AsyncSession, ManufacturingOrder], Awaitable[object]]

FALLBACK_WORK_CENTER_LIMIT = 3
FALLBACK_OPERATION_NAME = "Operation 1 - Assembly"

# operation -> (allowed source statuses, target status)
MO_TRANSITIONS: dict[str, tuple[frozenset[str], MOStatus]] = {
    "confirm": (frozenset({MOStatus.DRAFT.value}), MOStatus.CONFIRMED),
    "start": (frozenset({MOStatus.CONFIRMED.value, MOStatus.IN_PROGRESS.value}), MOStatus.IN_PROGRESS),
    "complete": (frozenset({MOStatus.IN_PROGRESS.value}), MOStatus.DONE),
    "cancel": (
        frozenset({MOStatus.DRAFT.value, MOStatus.CONFIRMED.value, MOStatus.IN_PROGRESS.value}),
        MOStatus.CANCELLED,
    ),
}

_UPDATABLE_FIELDS = {"quantity", "start_date", "end_date", "assignee_id"}


@dataclass
class HookOutcome:
    hook: str
    ok: bool
    error: Exception | None = None

    @property
    def message(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "message", None) or str(self.error) or type(self.error).__name__


@dataclass
class TransitionResult:
    order: ManufacturingOrder
    previous_status: str
    outcomes: list[HookOutcome] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [f"{o.hook}: {o.message}" for o in self.outcomes if not o.ok]


@dataclass(frozen=True)
class WorkOrderCost:
    work_order_id: int
    reference: str
    operation_name: str
    work_center_id: int | None
    work_center_name: str | None
    real_duration_mins: Decimal
    cost_per_hour: Decimal
    cost: Decimal


@dataclass(frozen=True)
class ComponentCost:
    product_id: int
    product_name: str | None
    required_qty: Decimal
    unit_cost: Decimal
    cost: Decimal


@dataclass(frozen=True)
class MOCost:
    mo_id: int
    reference: str
    product_id: int
    operations_cost: Decimal
    components_cost: Decimal
    total_cost: Decimal
    currency: str = "USD"
    work_orders: list[WorkOrderCost] = field(default_factory=list)
    components: list[ComponentCost] = field(default_factory=list)


async def reserve_components_hook(db: AsyncSession, mo: ManufacturingOrder):
    return await ReservationService.reserve_components(db, mo.id)


async def notify_creator_hook(db: AsyncSession, mo: ManufacturingOrder):
    return await NotificationService.notify_mo_completed(db, mo)


async def release_components_hook(db: AsyncSession, mo: ManufacturingOrder):
    return await ReservationService.release_components(db, mo.id)


class ManufacturingOrderService:
    """Owns the MO lifecycle and everything derived from an MO."""

    POST_COMMIT_HOOKS: dict[str, list[tuple[str, PostCommitHook]]] = {
        "confirm": [("reserve_components", reserve_components_hook)],
        "complete": [("notify_creator", notify_creator_hook)],
        "cancel": [("release_components", release_components_hook)],
    }

    # ── Reads ────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_manufacturing_order(db: AsyncSession, mo_id: int, *, lock: bool = False) -> ManufacturingOrder:
        q = select(ManufacturingOrder).where(ManufacturingOrder.id == mo_id).execution_options(populate_existing=True)
        if lock:
            q = q.with_for_update()
        mo = await db.scalar(q)
        if mo is None:
            raise NotFoundError("Manufacturing order", mo_id)
        return mo

    @staticmethod
    async def list_manufacturing_orders(
        db: AsyncSession,
        *,
        status: str | None = None,
        product_id: int | None = None,
        created_by: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ManufacturingOrder], int]:
        """Newest first, with the unpaged total."""
        filters = []
        if status:
            filters.append(ManufacturingOrder.status == status)
        if product_id is not None:
            filters.append(ManufacturingOrder.product_id == product_id)
        if created_by is not None:
            filters.append(ManufacturingOrder.created_by == created_by)

        total = (await db.execute(select(func.count(ManufacturingOrder.id)).where(*filters))).scalar_one()
        q = (
            select(ManufacturingOrder)
            .where(*filters)
            .order_by(ManufacturingOrder.created_at.desc(), ManufacturingOrder.id.desc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(q)
        return list(result.scalars().all()), total

    @staticmethod
    def is_late(mo: ManufacturingOrder, today: date | None = None) -> bool:
        """Past its end date and still open."""
        today = today or utcnow().date()
        return (
            mo.end_date is not None
            and mo.end_date < today
            and mo.status not in MO_TERMINAL_STATUSES
        )

    @staticmethod
    def is_deletable(mo: ManufacturingOrder) -> bool:
        return mo.status == MOStatus.DRAFT.value

    @staticmethod
    async def list_late(
        db: AsyncSession,
        *,
        created_by: int | None = None,
        today: date | None = None,
    ) -> list[ManufacturingOrder]:
        today = today or utcnow().date()
        q = select(ManufacturingOrder).where(
            ManufacturingOrder.end_date.is_not(None),
            ManufacturingOrder.end_date < today,
            ManufacturingOrder.status.not_in(sorted(MO_TERMINAL_STATUSES)),
        )
        if created_by is not None:
            q = q.where(ManufacturingOrder.created_by == created_by)
        q = q.order_by(ManufacturingOrder.end_date, ManufacturingOrder.id).execution_options(populate_existing=True)
        result = await db.execute(q)
        return list(result.scalars().all())

    @staticmethod
    async def progress(db: AsyncSession, mo_id: int) -> WorkOrderProgress:
        await ManufacturingOrderService.get_manufacturing_order(db, mo_id)
        return await WorkOrderService.progress(db, mo_id)

    # ── Creation ─────────────────────────────────────────────────────────────

    @staticmethod
    async def _validate_fields(
        db: AsyncSession,
        *,
        quantity: Decimal | None,
        start_date: date | None,
        end_date: date | None,
        assignee_id: int | None,
    ) -> None:
        if quantity is not None and Decimal(str(quantity)) <= 0:
            raise ValidationError("Quantity must be greater than zero", field="quantity")
        if start_date is not None and end_date is not None and end_date < start_date:
            raise ValidationError("End date cannot be before start date", field="end_date")
        if assignee_id is not None and await db.get(User, assignee_id) is None:
            raise NotFoundError("User", assignee_id)

    @staticmethod
    async def _create(
        db: AsyncSession,
        product_id: int,
        quantity: Decimal,
        bom: BOM | None,
        *,
        start_date: date | None,
        end_date: date | None,
        assignee_id: int | None,
        created_by: int | None,
    ) -> ManufacturingOrder:
        if quantity is None:
            raise ValidationError("Quantity is required", field="quantity")
        await ManufacturingOrderService._validate_fields(
            db, quantity=quantity, start_date=start_date, end_date=end_date, assignee_id=assignee_id
        )
        mo = ManufacturingOrder(
            product_id=product_id,
            bom_id=bom.id if bom is not None else None,
            quantity=to_qty(quantity),
            status=MOStatus.DRAFT.value,
            start_date=start_date,
            end_date=end_date,
            assignee_id=assignee_id,
            created_by=created_by,
        )
        db.add(mo)
        await db.flush()
        return mo

    @staticmethod
    async def create_by_product(
        db: AsyncSession,
        product_id: int,
        quantity: Decimal,
        *,
        bom_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        assignee_id: int | None = None,
        created_by: int | None = None,
    ) -> ManufacturingOrder:
        """Draft MO for a product. An explicit BOM must belong to that product."""
        if await db.get(Product, product_id) is None:
            raise NotFoundError("Product", product_id)
        bom = None
        if bom_id is not None:
            bom = await BOMService.get_bom(db, bom_id)
            if bom.product_id != product_id:
                raise ReferentialError(
                    f"BOM {bom_id} does not belong to product {product_id}",
                    details={"bom_id": bom_id, "product_id": product_id},
                )
        mo = await ManufacturingOrderService._create(
            db, product_id, quantity, bom,
            start_date=start_date, end_date=end_date, assignee_id=assignee_id, created_by=created_by,
        )
        logger.info("Created %s for product %s (qty %s)", mo.reference, product_id, mo.quantity)
        return await ManufacturingOrderService.get_manufacturing_order(db, mo.id)

    @staticmethod
    async def create_by_bom(
        db: AsyncSession,
        bom_id: int,
        quantity: Decimal,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        assignee_id: int | None = None,
        created_by: int | None = None,
    ) -> ManufacturingOrder:
        """Draft MO for the BOM's product, with one WO per BOM operation.

        A BOM without operations still yields executable steps: one per work
        center (first three by id), or a single generic assembly step.
        """
        bom = await BOMService.get_bom(db, bom_id)
        mo = await ManufacturingOrderService._create(
            db, bom.product_id, quantity, bom,
            start_date=start_date, end_date=end_date, assignee_id=assignee_id, created_by=created_by,
        )
        operations = scale_for_quantity(bom, mo.quantity).operations
        if operations:
            work_orders = [work_order_from_operation(mo.id, op) for op in operations]
        else:
            work_orders = await ManufacturingOrderService._fallback_work_orders(db, mo.id)
        db.add_all(work_orders)
        await db.flush()
        logger.info("Created %s from BOM %s with %d work orders", mo.reference, bom_id, len(work_orders))
        return await ManufacturingOrderService.get_manufacturing_order(db, mo.id)

    @staticmethod
    async def _fallback_work_orders(db: AsyncSession, mo_id: int) -> list[WorkOrder]:
        centers = (
            await db.execute(select(WorkCenter).order_by(WorkCenter.id).limit(FALLBACK_WORK_CENTER_LIMIT))
        ).scalars().all()
        if not centers:
            return [
                WorkOrder(
                    mo_id=mo_id,
                    operation_name=FALLBACK_OPERATION_NAME,
                    sequence=1,
                    status=WOStatus.PENDING.value,
                )
            ]
        return [
            WorkOrder(
                mo_id=mo_id,
                work_center_id=wc.id,
                operation_name=f"Operation {seq} - {wc.name}",
                sequence=seq,
                status=WOStatus.PENDING.value,
            )
            for seq, wc in enumerate(centers, start=1)
        ]

    # ── Edits ────────────────────────────────────────────────────────────────

    @staticmethod
    async def update(db: AsyncSession, mo_id: int, **fields) -> ManufacturingOrder:
        """Partial update of schedule, assignee and (in draft only) quantity."""
        if "status" in fields:
            raise ValidationError(
                "Status changes go through confirm, start, complete or cancel",
                field="status",
            )
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            name = sorted(unknown)[0]
            raise ValidationError(f"Field '{name}' cannot be updated", field=name)

        mo = await ManufacturingOrderService.get_manufacturing_order(db, mo_id, lock=True)
        if mo.status in MO_TERMINAL_STATUSES:
            raise InvalidTransitionError("Manufacturing order", mo.id, mo.status, "update")
        if "quantity" in fields and mo.status != MOStatus.DRAFT.value:
            raise InvalidTransitionError("Manufacturing order", mo.id, mo.status, "change the quantity of")

        await ManufacturingOrderService._validate_fields(
            db,
            quantity=fields.get("quantity"),
            start_date=fields.get("start_date", mo.start_date),
            end_date=fields.get("end_date", mo.end_date),
            assignee_id=fields.get("assignee_id"),
        )
        if "quantity" in fields:
            if fields["quantity"] is None:
                raise ValidationError("Quantity is required", field="quantity")
            fields["quantity"] = to_qty(fields["quantity"])
        for key, value in fields.items():
            setattr(mo, key, value)
        await db.flush()
        return await ManufacturingOrderService.get_manufacturing_order(db, mo_id)

    @staticmethod
    async def attach_bom(db: AsyncSession, mo_id: int, bom_id: int) -> ManufacturingOrder:
        mo = await ManufacturingOrderService.get_manufacturing_order(db, mo_id, lock=True)
        if mo.status != MOStatus.DRAFT.value:
            raise InvalidTransitionError("Manufacturing order", mo.id, mo.status, "attach a BOM to")
        bom = await BOMService.get_bom(db, bom_id)
        if bom.product_id != mo.product_id:
            raise ReferentialError(
                f"BOM {bom_id} does not belong to product {mo.product_id}",
                details={"bom_id": bom_id, "product_id": mo.product_id},
            )
        mo.bom_id = bom.id
        await db.flush()
        logger.info("%s attached BOM %s", mo.reference, bom_id)
        return await ManufacturingOrderService.get_manufacturing_order(db, mo_id)

    @staticmethod
    async def delete(db: AsyncSession, mo_id: int) -> None:
        """Remove a draft MO together with its work orders."""
        mo = await ManufacturingOrderService.get_manufacturing_order(db, mo_id, lock=True)
        if not ManufacturingOrderService.is_deletable(mo):
            raise InvalidTransitionError("Manufacturing order", mo.id, mo.status, "delete")
        reference = mo.reference
        await db.delete(mo)
        await db.flush()
        logger.info("Deleted %s", reference)

    # ── Transitions ──────────────────────────────────────────────────────────

    @staticmethod
    async def _run_hooks(db: AsyncSession, mo_id: int, operation: str) -> list[HookOutcome]:
        outcomes = []
        for name, hook in ManufacturingOrderService.POST_COMMIT_HOOKS.get(operation, []):
            try:
                mo = await ManufacturingOrderService.get_manufacturing_order(db, mo_id)
                await hook(db, mo)
                await db.commit()
                outcomes.append(HookOutcome(hook=name, ok=True))
            except DomainError as exc:
                await db.rollback()
                logger.warning("MO %s %s hook '%s' failed: %s", mo_id, operation, name, exc.message)
                outcomes.append(HookOutcome(hook=name, ok=False, error=exc))
            except Exception as exc:
                await db.rollback()
                logger.error("MO %s %s hook '%s' crashed", mo_id, operation, name, exc_info=True)
                outcomes.append(HookOutcome(hook=name, ok=False, error=exc))
        return outcomes

    @staticmethod
    async def _transition(db: AsyncSession, mo_id: int, operation: str) -> TransitionResult:
        mo = await ManufacturingOrderService.get_manufacturing_order(db, mo_id, lock=True)
        allowed, target = MO_TRANSITIONS[operation]
        if mo.status not in allowed:
            raise InvalidTransitionError("Manufacturing order", mo.id, mo.status, operation)

        previous = mo.status
        mo.status = target.value
        if target is MOStatus.DONE:
            mo.completed_at = utcnow()
        await db.flush()
        await db.commit()
        logger.info("%s %s -> %s", mo.reference, previous, mo.status)

        outcomes = await ManufacturingOrderService._run_hooks(db, mo_id, operation)
        mo = await ManufacturingOrderService.get_manufacturing_order(db, mo_id)
        return TransitionResult(order=mo, previous_status=previous, outcomes=outcomes)

    @staticmethod
    async def confirm(db: AsyncSession, mo_id: int) -> TransitionResult:
        """draft -> confirmed, then try to reserve components (a shortfall is only a warning)."""
        return await ManufacturingOrderService._transition(db, mo_id, "confirm")

    @staticmethod
    async def start(db: AsyncSession, mo_id: int) -> TransitionResult:
        return await ManufacturingOrderService._transition(db, mo_id, "start")

    @staticmethod
    async def complete(db: AsyncSession, mo_id: int) -> TransitionResult:
        return await ManufacturingOrderService._transition(db, mo_id, "complete")

    @staticmethod
    async def cancel(db: AsyncSession, mo_id: int) -> TransitionResult:
        return await ManufacturingOrderService._transition(db, mo_id, "cancel")

    # ── Derived views ────────────────────────────────────────────────────────

    @staticmethod
    async def components_availability(db: AsyncSession, mo_id: int) -> list[ComponentAvailability]:
        mo = await ManufacturingOrderService.get_manufacturing_order(db, mo_id)
        return await ReservationService.compute_availability(db, mo)

    @staticmethod
    async def preview_bom_scaling(db: AsyncSession, bom_id: int, quantity: Decimal) -> BomScaling:
        return await BOMService.preview_scaling(db, bom_id, quantity)

    @staticmethod
    async def cost(db: AsyncSession, mo_id: int) -> MOCost:
        """Labour from actual WO minutes at work center rates plus components at current unit cost."""
        mo = await ManufacturingOrderService.get_manufacturing_order(db, mo_id)
        work_orders = (
            await db.execute(
                select(WorkOrder)
                .where(WorkOrder.mo_id == mo_id)
                .order_by(WorkOrder.sequence, WorkOrder.id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()

        wo_costs = []
        for wo in work_orders:
            minutes = Decimal(str(wo.real_duration_mins or 0))
            rate = Decimal(str(wo.work_center.cost_per_hour or 0)) if wo.work_center is not None else Decimal("0")
            wo_costs.append(
                WorkOrderCost(
                    work_order_id=wo.id,
                    reference=wo.reference,
                    operation_name=wo.operation_name,
                    work_center_id=wo.work_center_id,
                    work_center_name=wo.work_center.name if wo.work_center is not None else None,
                    real_duration_mins=minutes,
                    cost_per_hour=rate,
                    cost=to_money(minutes / 60 * rate),
                )
            )

        component_costs = []
        bom = await BOMService.get_effective_bom(db, mo.product_id, mo.bom_id)
        if bom is not None:
            for comp in scale_for_quantity(bom, mo.quantity).components:
                component_costs.append(
                    ComponentCost(
                        product_id=comp.product_id,
                        product_name=comp.product_name,
                        required_qty=comp.required_qty,
                        unit_cost=comp.unit_cost,
                        cost=to_money(comp.required_qty * comp.unit_cost),
                    )
                )

        operations_cost = to_money(sum((c.cost for c in wo_costs), Decimal("0")))
        components_cost = to_money(sum((c.cost for c in component_costs), Decimal("0")))
        return MOCost(
            mo_id=mo.id,
            reference=mo.reference,
            product_id=mo.product_id,
            operations_cost=operations_cost,
            components_cost=components_cost,
            total_cost=to_money(operations_cost + components_cost),
            work_orders=wo_costs,
            components=component_costs,
        )
