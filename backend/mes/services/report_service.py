"""FORGE MES — ReportService: dashboard KPIs, throughput, cycle time, per-user work."""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mes.core.errors import ValidationError
from mes.db.base import as_utc, to_money, to_qty, utcnow
from mes.models.manufacturing_order import MO_TERMINAL_STATUSES, ManufacturingOrder, MOStatus, mo_reference
from mes.models.product import Product
from mes.models.user import User
from mes.models.work_order import WorkOrder, WOStatus
from mes.services.ledger_service import LedgerService
from mes.services.user_service import UserService

DASHBOARD_CACHE_KEY = "report:dashboard"
DASHBOARD_CACHE_TTL = 60

THROUGHPUT_PERIODS = ("day", "week")
DEFAULT_THROUGHPUT_DAYS = 30


@dataclass(frozen=True)
class ThroughputBucket:
    period_start: date
    completed: int = 0
    quantity: Decimal = Decimal("0")


@dataclass(frozen=True)
class CycleTimeRow:
    """Average planned span (end_date - start_date) of a product's finished orders."""

    product_id: int
    product_name: str
    orders: int
    avg_days: float


@dataclass(frozen=True)
class UserWorkSummary:
    user_id: int
    name: str
    total: int
    done: int
    in_progress: int


@dataclass
class UserProfileStats:
    user_id: int
    name: str
    email: str
    role: str
    orders_created: dict[str, int] = field(default_factory=dict)
    late_orders: int = 0
    work_orders: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class UserWorkOrderRow:
    id: int
    reference: str
    mo_id: int
    mo_reference: str
    operation_name: str
    status: str
    expected_duration_mins: Decimal | None
    real_duration_mins: Decimal | None

    @property
    def variance_mins(self) -> Decimal | None:
        """Real minus expected; positive means the step overran."""
        if self.expected_duration_mins is None or self.real_duration_mins is None:
            return None
        return to_money(self.real_duration_mins - self.expected_duration_mins)


def _period_start(day: date, period: str) -> date:
    if period == "week":
        return day - timedelta(days=day.weekday())
    return day


def _day_bounds(date_from: date, date_to: date) -> tuple[datetime, datetime]:
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc)
    end = datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return start, end


class ReportService:
    """Reporting and analytics queries."""

    @staticmethod
    async def get_dashboard_kpis(db: AsyncSession) -> dict:
        """MO and WO counts by status, late MOs, inventory value. JSON-ready."""
        mo_counts = {s.value: 0 for s in MOStatus}
        rows = (
            await db.execute(
                select(ManufacturingOrder.status, func.count(ManufacturingOrder.id)).group_by(ManufacturingOrder.status)
            )
        ).all()
        for status, count in rows:
            mo_counts[status] = count

        wo_counts = {s.value: 0 for s in WOStatus}
        rows = (
            await db.execute(select(WorkOrder.status, func.count(WorkOrder.id)).group_by(WorkOrder.status))
        ).all()
        for status, count in rows:
            wo_counts[status] = count

        late_orders = (
            await db.execute(
                select(func.count(ManufacturingOrder.id)).where(
                    ManufacturingOrder.end_date.is_not(None),
                    ManufacturingOrder.end_date < utcnow().date(),
                    ManufacturingOrder.status.not_in(sorted(MO_TERMINAL_STATUSES)),
                )
            )
        ).scalar_one()

        summary = await LedgerService.get_summary(db)
        inventory_value = to_money(sum((level.total_value for level in summary), 0))

        return {
            "manufacturing_orders": mo_counts,
            "work_orders": wo_counts,
            "late_orders": late_orders,
            "inventory_value": float(inventory_value),
            "generated_at": utcnow().isoformat(),
        }

    @staticmethod
    async def throughput(
        db: AsyncSession,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        period: str = "day",
    ) -> list[ThroughputBucket]:
        """Orders marked done per day or ISO week, zero-filled across the range (UTC days)."""
        if period not in THROUGHPUT_PERIODS:
            raise ValidationError(f"Period must be one of {', '.join(THROUGHPUT_PERIODS)}", field="period")
        date_to = date_to or utcnow().date()
        date_from = date_from or date_to - timedelta(days=DEFAULT_THROUGHPUT_DAYS - 1)
        if date_to < date_from:
            raise ValidationError("date_to cannot be before date_from", field="date_to")

        start, end = _day_bounds(date_from, date_to)
        rows = (
            await db.execute(
                select(ManufacturingOrder.completed_at, ManufacturingOrder.quantity).where(
                    ManufacturingOrder.status == MOStatus.DONE.value,
                    ManufacturingOrder.completed_at >= start,
                    ManufacturingOrder.completed_at < end,
                )
            )
        ).all()

        counts: dict[date, int] = defaultdict(int)
        quantities: dict[date, Decimal] = defaultdict(Decimal)
        for completed_at, quantity in rows:
            day = as_utc(completed_at).astimezone(timezone.utc).date()
            if not date_from <= day <= date_to:
                continue
            key = _period_start(day, period)
            counts[key] += 1
            quantities[key] += Decimal(str(quantity))

        step = timedelta(days=7 if period == "week" else 1)
        buckets = []
        cursor = _period_start(date_from, period)
        while cursor <= date_to:
            buckets.append(
                ThroughputBucket(period_start=cursor, completed=counts[cursor], quantity=to_qty(quantities[cursor]))
            )
            cursor += step
        return buckets

    @staticmethod
    async def cycle_time(db: AsyncSession, *, product_id: int | None = None) -> list[CycleTimeRow]:
        """Per product, over done orders carrying both dates. Ordered by product name."""
        q = (
            select(Product.id, Product.name, ManufacturingOrder.start_date, ManufacturingOrder.end_date)
            .select_from(ManufacturingOrder)
            .join(Product, Product.id == ManufacturingOrder.product_id)
            .where(
                ManufacturingOrder.status == MOStatus.DONE.value,
                ManufacturingOrder.start_date.is_not(None),
                ManufacturingOrder.end_date.is_not(None),
            )
        )
        if product_id is not None:
            q = q.where(ManufacturingOrder.product_id == product_id)

        spans: dict[tuple[int, str], list[int]] = defaultdict(list)
        for pid, name, start_date, end_date in (await db.execute(q)).all():
            spans[(pid, name)].append((end_date - start_date).days)

        rows = [
            CycleTimeRow(product_id=pid, product_name=name, orders=len(days), avg_days=round(sum(days) / len(days), 1))
            for (pid, name), days in spans.items()
        ]
        return sorted(rows, key=lambda r: (r.product_name, r.product_id))

    @staticmethod
    async def user_work_summary(db: AsyncSession) -> list[UserWorkSummary]:
        """Work orders per assignee. Unassigned work orders are left out."""
        rows = (
            await db.execute(
                select(User.id, User.name, WorkOrder.status, func.count(WorkOrder.id))
                .select_from(WorkOrder)
                .join(User, User.id == WorkOrder.assigned_to)
                .group_by(User.id, User.name, WorkOrder.status)
            )
        ).all()

        per_user: dict[tuple[int, str], dict[str, int]] = defaultdict(dict)
        for user_id, name, status, count in rows:
            per_user[(user_id, name)][status] = count

        summaries = [
            UserWorkSummary(
                user_id=user_id,
                name=name,
                total=sum(counts.values()),
                done=counts.get(WOStatus.DONE.value, 0),
                in_progress=counts.get(WOStatus.IN_PROGRESS.value, 0),
            )
            for (user_id, name), counts in per_user.items()
        ]
        return sorted(summaries, key=lambda s: (s.name, s.user_id))

    @staticmethod
    async def user_profile(db: AsyncSession, user_id: int, *, today: date | None = None) -> UserProfileStats:
        """The orders a user created and the work orders assigned to them, counted by status."""
        user = await UserService.get_user(db, user_id)
        today = today or utcnow().date()

        orders_created = {s.value: 0 for s in MOStatus}
        rows = (
            await db.execute(
                select(ManufacturingOrder.status, func.count(ManufacturingOrder.id))
                .where(ManufacturingOrder.created_by == user_id)
                .group_by(ManufacturingOrder.status)
            )
        ).all()
        for status, count in rows:
            orders_created[status] = count

        late_orders = (
            await db.execute(
                select(func.count(ManufacturingOrder.id)).where(
                    ManufacturingOrder.created_by == user_id,
                    ManufacturingOrder.end_date.is_not(None),
                    ManufacturingOrder.end_date < today,
                    ManufacturingOrder.status.not_in(sorted(MO_TERMINAL_STATUSES)),
                )
            )
        ).scalar_one()

        work_orders = {s.value: 0 for s in WOStatus}
        rows = (
            await db.execute(
                select(WorkOrder.status, func.count(WorkOrder.id))
                .where(WorkOrder.assigned_to == user_id)
                .group_by(WorkOrder.status)
            )
        ).all()
        for status, count in rows:
            work_orders[status] = count

        return UserProfileStats(
            user_id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            orders_created=orders_created,
            late_orders=late_orders,
            work_orders=work_orders,
        )

    @staticmethod
    async def user_work_orders(db: AsyncSession, user_id: int) -> list[UserWorkOrderRow]:
        """Work orders assigned to a user with expected against real duration."""
        await UserService.get_user(db, user_id)
        result = await db.execute(
            select(WorkOrder)
            .where(WorkOrder.assigned_to == user_id)
            .order_by(WorkOrder.mo_id, WorkOrder.sequence, WorkOrder.id)
        )
        return [
            UserWorkOrderRow(
                id=wo.id,
                reference=wo.reference,
                mo_id=wo.mo_id,
                mo_reference=mo_reference(wo.mo_id),
                operation_name=wo.operation_name,
                status=wo.status,
                expected_duration_mins=wo.expected_duration_mins,
                real_duration_mins=wo.real_duration_mins,
            )
            for wo in result.scalars().all()
        ]
