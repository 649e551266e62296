"""Tests for the reporting queries: throughput, cycle time, per-user work."""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from mes.core.errors import NotFoundError, ValidationError
from mes.models.manufacturing_order import MOStatus
from mes.services.manufacturing_order_service import ManufacturingOrderService
from mes.services.report_service import ReportService
from mes.services.work_order_service import WorkOrderService
from tests.factories import make_table_bom, make_user

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)  # a Monday


async def _done_order(session, data, *, completed_at, quantity="1", start_date=None, end_date=None, **kwargs):
    mo = await ManufacturingOrderService.create_by_bom(
        session, data["bom"].id, Decimal(quantity), start_date=start_date, end_date=end_date, **kwargs
    )
    mo.status = MOStatus.DONE.value
    mo.completed_at = completed_at
    await session.flush()
    return mo


class TestThroughput:

    async def test_daily_buckets_are_zero_filled(self, session):
        data = await make_table_bom(session)
        await _done_order(session, data, completed_at=T0, quantity="2")
        await _done_order(session, data, completed_at=T0 + timedelta(hours=3), quantity="1")
        await _done_order(session, data, completed_at=T0 + timedelta(days=2))
        await _done_order(session, data, completed_at=T0 + timedelta(days=9))

        buckets = await ReportService.throughput(
            session, date_from=date(2026, 3, 2), date_to=date(2026, 3, 4), period="day"
        )

        assert [b.period_start for b in buckets] == [date(2026, 3, 2), date(2026, 3, 3), date(2026, 3, 4)]
        assert [b.completed for b in buckets] == [2, 0, 1]
        assert buckets[0].quantity == Decimal("3.0000")

    async def test_weekly_buckets_start_on_monday(self, session):
        data = await make_table_bom(session)
        # before the range, then Thursday, Sunday and the next Tuesday
        await _done_order(session, data, completed_at=T0 + timedelta(days=1))
        await _done_order(session, data, completed_at=T0 + timedelta(days=3))
        await _done_order(session, data, completed_at=T0 + timedelta(days=6))
        await _done_order(session, data, completed_at=T0 + timedelta(days=8))

        buckets = await ReportService.throughput(
            session, date_from=date(2026, 3, 4), date_to=date(2026, 3, 12), period="week"
        )

        assert [(b.period_start, b.completed) for b in buckets] == [
            (date(2026, 3, 2), 2),
            (date(2026, 3, 9), 1),
        ]

    async def test_open_orders_are_not_counted(self, session):
        data = await make_table_bom(session)
        await ManufacturingOrderService.create_by_bom(session, data["bom"].id, Decimal("1"))
        buckets = await ReportService.throughput(session, date_from=date(2026, 3, 1), date_to=date(2026, 3, 1))
        assert [b.completed for b in buckets] == [0]

    async def test_completing_an_order_stamps_it(self, session):
        data = await make_table_bom(session)
        mo = await ManufacturingOrderService.create_by_product(session, data["table"].id, Decimal("1"))
        await ManufacturingOrderService.confirm(session, mo.id)
        await ManufacturingOrderService.start(session, mo.id)
        result = await ManufacturingOrderService.complete(session, mo.id)
        assert result.order.completed_at is not None

        buckets = await ReportService.throughput(session)
        assert len(buckets) == 30
        assert buckets[-1].completed == 1

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"period": "month"}, "period"),
            ({"date_from": date(2026, 3, 5), "date_to": date(2026, 3, 1)}, "date_to"),
        ],
    )
    async def test_rejects_bad_arguments(self, session, kwargs, field):
        with pytest.raises(ValidationError) as exc:
            await ReportService.throughput(session, **kwargs)
        assert exc.value.field == field


class TestCycleTime:

    async def test_average_span_per_product(self, session):
        data = await make_table_bom(session)
        await _done_order(
            session, data, completed_at=T0, start_date=date(2026, 3, 1), end_date=date(2026, 3, 5)
        )
        await _done_order(
            session, data, completed_at=T0, start_date=date(2026, 3, 1), end_date=date(2026, 3, 2)
        )
        # no dates: left out
        await _done_order(session, data, completed_at=T0)

        rows = await ReportService.cycle_time(session)

        assert len(rows) == 1
        assert rows[0].product_name == "Dining Table"
        assert rows[0].orders == 2
        assert rows[0].avg_days == 2.5

    async def test_product_filter(self, session):
        data = await make_table_bom(session)
        await _done_order(
            session, data, completed_at=T0, start_date=date(2026, 3, 1), end_date=date(2026, 3, 3)
        )
        assert await ReportService.cycle_time(session, product_id=data["leg"].id) == []
        assert len(await ReportService.cycle_time(session, product_id=data["table"].id)) == 1


class TestUserWork:

    async def test_summary_per_assignee(self, session):
        data = await make_table_bom(session)
        alice = await make_user(session, "Alice", "alice@test.local")
        bob = await make_user(session, "Bob", "bob@test.local")
        mo = await ManufacturingOrderService.create_by_bom(session, data["bom"].id, Decimal("1"))
        first, second = [wo.id for wo in mo.work_orders]
        await WorkOrderService.assign(session, first, alice.id)
        await WorkOrderService.assign(session, second, alice.id)
        await WorkOrderService.start(session, first, now=T0)
        await WorkOrderService.complete(session, first, now=T0 + timedelta(minutes=70))
        await WorkOrderService.start(session, second, now=T0)

        rows = await ReportService.user_work_summary(session)

        assert [(r.name, r.total, r.done, r.in_progress) for r in rows] == [("Alice", 2, 1, 1)]
        assert bob.id not in [r.user_id for r in rows]

    async def test_profile_counts_created_orders_and_assigned_work(self, session):
        data = await make_table_bom(session)
        planner = await make_user(session, "Planner", "planner@test.local", "MANAGER")
        late = await ManufacturingOrderService.create_by_bom(
            session, data["bom"].id, Decimal("1"), end_date=date(2026, 3, 1), created_by=planner.id
        )
        await ManufacturingOrderService.create_by_product(
            session, data["table"].id, Decimal("1"), created_by=planner.id
        )
        await WorkOrderService.assign(session, late.work_orders[0].id, planner.id)

        stats = await ReportService.user_profile(session, planner.id, today=date(2026, 3, 10))

        assert stats.email == "planner@test.local"
        assert stats.orders_created["draft"] == 2
        assert stats.orders_created["done"] == 0
        assert stats.late_orders == 1
        assert stats.work_orders["pending"] == 1

    async def test_work_orders_with_duration_variance(self, session):
        data = await make_table_bom(session)
        operator = await make_user(session)
        mo = await ManufacturingOrderService.create_by_bom(session, data["bom"].id, Decimal("1"))
        assembly, painting = [wo.id for wo in mo.work_orders]
        await WorkOrderService.assign(session, assembly, operator.id)
        await WorkOrderService.assign(session, painting, operator.id)
        await WorkOrderService.start(session, assembly, now=T0)
        await WorkOrderService.complete(session, assembly, now=T0 + timedelta(minutes=75))

        rows = await ReportService.user_work_orders(session, operator.id)

        assert [r.operation_name for r in rows] == ["Assembly", "Painting"]
        assert rows[0].mo_reference == mo.reference
        assert rows[0].variance_mins == Decimal("15.00")
        assert rows[1].variance_mins is None

    async def test_unknown_user(self, session):
        with pytest.raises(NotFoundError):
            await ReportService.user_work_orders(session, 404)
