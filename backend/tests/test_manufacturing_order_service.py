"""Tests for the MO orchestrator: lifecycle, hooks, generation, lateness, cost."""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from mes.core.errors import InvalidTransitionError, NotFoundError, ReferentialError, ValidationError
from mes.models.manufacturing_order import ComponentStatus, MOStatus
from mes.models.stock_ledger import MovementType, StockLedger
from mes.models.work_order import WorkOrder
from mes.services.bom_service import BOMService
from mes.services.ledger_service import LedgerService
from mes.services.manufacturing_order_service import (
    FALLBACK_OPERATION_NAME,
    ManufacturingOrderService,
)
from mes.services.work_order_service import WorkOrderService
from mes.tasks.notification_tasks import send_mo_completed_email
from tests.factories import make_product, make_table_bom, make_user, make_work_center

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


async def _ledger_count(session) -> int:
    return await session.scalar(select(func.count(StockLedger.id)))


async def _order(session, quantity="2", **bom_kwargs):
    data = await make_table_bom(session, **bom_kwargs)
    mo = await ManufacturingOrderService.create_by_bom(session, data["bom"].id, Decimal(quantity))
    return mo, data


class TestCreation:

    async def test_create_by_bom_generates_ordered_work_orders(self, session):
        mo, data = await _order(session)
        assert mo.status == MOStatus.DRAFT.value
        assert mo.component_status == ComponentStatus.PENDING.value
        assert mo.bom_id == data["bom"].id
        assert mo.quantity == Decimal("2.0000")
        assert [wo.operation_name for wo in mo.work_orders] == ["Assembly", "Painting"]
        assert [wo.expected_duration_mins for wo in mo.work_orders] == [Decimal("60.00"), Decimal("30.00")]
        assert all(wo.bom_operation_id is not None for wo in mo.work_orders)
        assert mo.reference == f"MO-{mo.id:06d}"

    async def test_fallback_without_work_centers(self, session):
        mo, _ = await _order(session, with_operations=False)
        assert [wo.operation_name for wo in mo.work_orders] == [FALLBACK_OPERATION_NAME]
        assert mo.work_orders[0].work_center_id is None

    async def test_fallback_one_per_work_center(self, session):
        await make_work_center(session, "Cutting", "10")
        await make_work_center(session, "Sanding", "10")
        mo, _ = await _order(session, with_operations=False)
        assert [wo.operation_name for wo in mo.work_orders] == [
            "Operation 1 - Cutting",
            "Operation 2 - Sanding",
        ]
        assert [wo.sequence for wo in mo.work_orders] == [1, 2]

    async def test_fallback_caps_at_three_work_centers(self, session):
        for name in ("A", "B", "C", "D"):
            await make_work_center(session, name, "10")
        mo, _ = await _order(session, with_operations=False)
        assert [wo.operation_name for wo in mo.work_orders] == [
            "Operation 1 - A",
            "Operation 2 - B",
            "Operation 3 - C",
        ]

    async def test_create_by_product_has_no_work_orders(self, session):
        data = await make_table_bom(session)
        mo = await ManufacturingOrderService.create_by_product(session, data["table"].id, Decimal("1"))
        assert mo.bom_id is None
        assert mo.work_orders == []

    async def test_create_by_product_rejects_foreign_bom(self, session):
        data = await make_table_bom(session)
        with pytest.raises(ReferentialError):
            await ManufacturingOrderService.create_by_product(
                session, data["leg"].id, Decimal("1"), bom_id=data["bom"].id
            )

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-3")])
    async def test_rejects_non_positive_quantity(self, session, quantity):
        data = await make_table_bom(session)
        with pytest.raises(ValidationError):
            await ManufacturingOrderService.create_by_bom(session, data["bom"].id, quantity)

    async def test_end_before_start_rejected(self, session):
        data = await make_table_bom(session)
        with pytest.raises(ValidationError) as exc:
            await ManufacturingOrderService.create_by_bom(
                session, data["bom"].id, Decimal("1"),
                start_date=date(2026, 5, 2), end_date=date(2026, 5, 1),
            )
        assert exc.value.field == "end_date"

    async def test_unknown_product(self, session):
        with pytest.raises(NotFoundError):
            await ManufacturingOrderService.create_by_product(session, 999, Decimal("1"))


ALL_STATUSES = [s.value for s in MOStatus]
ALLOWED = {
    "confirm": {"draft"},
    "start": {"confirmed", "in_progress"},
    "complete": {"in_progress"},
    "cancel": {"draft", "confirmed", "in_progress"},
}


class TestTransitions:

    @pytest.mark.parametrize("operation", sorted(ALLOWED))
    @pytest.mark.parametrize("status", ALL_STATUSES)
    async def test_guard_table(self, session, operation, status):
        mo, _ = await _order(session)
        mo.status = status
        await session.flush()

        if status in ALLOWED[operation]:
            result = await getattr(ManufacturingOrderService, operation)(session, mo.id)
            assert result.previous_status == status
        else:
            with pytest.raises(InvalidTransitionError) as exc:
                await getattr(ManufacturingOrderService, operation)(session, mo.id)
            assert exc.value.current == status
            mo = await ManufacturingOrderService.get_manufacturing_order(session, mo.id)
            assert mo.status == status

    async def test_confirm_reserves_components(self, session):
        mo, data = await _order(session)
        result = await ManufacturingOrderService.confirm(session, mo.id)

        assert result.order.status == MOStatus.CONFIRMED.value
        assert result.order.component_status == ComponentStatus.RESERVED.value
        assert [(o.hook, o.ok) for o in result.outcomes] == [("reserve_components", True)]
        assert result.warnings == []
        entries = await LedgerService.entries_for_reference(session, f"{mo.reference}-RESERVE")
        assert len(entries) == 2

    async def test_confirm_with_shortfall_still_confirms(self, session):
        mo, data = await _order(session, quantity="20", top_stock=5)
        before = await _ledger_count(session)

        result = await ManufacturingOrderService.confirm(session, mo.id)

        assert result.order.status == MOStatus.CONFIRMED.value
        assert result.order.component_status == ComponentStatus.PENDING.value
        outcome = result.outcomes[0]
        assert not outcome.ok
        assert outcome.error.code == "insufficient_stock"
        assert "Wooden Top" in result.warnings[0]
        assert await _ledger_count(session) == before

    async def test_cancel_releases_reserved_components(self, session):
        mo, data = await _order(session)
        await ManufacturingOrderService.confirm(session, mo.id)
        result = await ManufacturingOrderService.cancel(session, mo.id)

        assert result.order.status == MOStatus.CANCELLED.value
        assert result.order.component_status == ComponentStatus.RELEASED.value
        assert (await LedgerService.get_on_hand(session, data["leg"].id)).on_hand == Decimal("100.0000")

    async def test_complete_notifies_creator(self, session, monkeypatch):
        sent = []
        monkeypatch.setattr(send_mo_completed_email, "delay", lambda to, ref: sent.append((to, ref)))
        creator = await make_user(session, "Planner", "planner@test.local", "MANAGER")
        data = await make_table_bom(session)
        mo = await ManufacturingOrderService.create_by_bom(
            session, data["bom"].id, Decimal("1"), created_by=creator.id
        )
        await ManufacturingOrderService.confirm(session, mo.id)
        await ManufacturingOrderService.start(session, mo.id)
        result = await ManufacturingOrderService.complete(session, mo.id)

        assert result.order.status == MOStatus.DONE.value
        assert [(o.hook, o.ok) for o in result.outcomes] == [("notify_creator", True)]
        assert sent == [("planner@test.local", mo.reference)]

    async def test_failing_hook_does_not_undo_transition_or_other_hooks(self, session, monkeypatch, caplog):
        mo, data = await _order(session)
        leg_id = data["leg"].id

        async def broken(db, order):
            await LedgerService.record_movement(db, leg_id, MovementType.OUT, Decimal("50"), reference="BROKEN")
            raise RuntimeError("printer on fire")

        async def audit(db, order):
            await LedgerService.record_movement(db, leg_id, MovementType.OUT, Decimal("1"), reference="AUDIT")

        monkeypatch.setattr(
            ManufacturingOrderService,
            "POST_COMMIT_HOOKS",
            {"confirm": [("broken", broken), ("audit", audit)]},
        )
        result = await ManufacturingOrderService.confirm(session, mo.id)

        assert result.order.status == MOStatus.CONFIRMED.value
        assert [(o.hook, o.ok) for o in result.outcomes] == [("broken", False), ("audit", True)]
        assert result.warnings == ["broken: printer on fire"]
        assert await LedgerService.entries_for_reference(session, "BROKEN") == []
        assert len(await LedgerService.entries_for_reference(session, "AUDIT")) == 1
        assert "hook 'broken' crashed" in caplog.text

    async def test_bom_locked_once_confirmed(self, session):
        mo, data = await _order(session)
        assert not await BOMService.is_locked(session, data["bom"].id)
        await ManufacturingOrderService.confirm(session, mo.id)
        assert await BOMService.is_locked(session, data["bom"].id)
        with pytest.raises(ReferentialError):
            await BOMService.update_bom(session, data["bom"].id, name="v2")


class TestEdits:

    async def test_update_schedule_and_assignee(self, session):
        mo, _ = await _order(session)
        op = await make_user(session)
        mo = await ManufacturingOrderService.update(
            session, mo.id, end_date=date(2026, 6, 1), assignee_id=op.id, quantity=Decimal("5")
        )
        assert mo.end_date == date(2026, 6, 1)
        assert mo.assignee_id == op.id
        assert mo.quantity == Decimal("5.0000")

    async def test_status_is_not_patchable(self, session):
        mo, _ = await _order(session)
        with pytest.raises(ValidationError):
            await ManufacturingOrderService.update(session, mo.id, status="done")

    async def test_quantity_frozen_after_draft(self, session):
        mo, _ = await _order(session)
        await ManufacturingOrderService.confirm(session, mo.id)
        with pytest.raises(InvalidTransitionError):
            await ManufacturingOrderService.update(session, mo.id, quantity=Decimal("9"))

    async def test_attach_bom_checks_product(self, session):
        data = await make_table_bom(session)
        other = await make_product(session, "Stool", category="finished")
        mo = await ManufacturingOrderService.create_by_product(session, other.id, Decimal("1"))
        with pytest.raises(ReferentialError):
            await ManufacturingOrderService.attach_bom(session, mo.id, data["bom"].id)

        mo = await ManufacturingOrderService.create_by_product(session, data["table"].id, Decimal("1"))
        mo = await ManufacturingOrderService.attach_bom(session, mo.id, data["bom"].id)
        assert mo.bom_id == data["bom"].id

    async def test_delete_draft_removes_work_orders(self, session):
        mo, _ = await _order(session)
        await ManufacturingOrderService.delete(session, mo.id)
        with pytest.raises(NotFoundError):
            await ManufacturingOrderService.get_manufacturing_order(session, mo.id)
        assert await session.scalar(select(func.count(WorkOrder.id)).where(WorkOrder.mo_id == mo.id)) == 0

    async def test_delete_refused_after_draft(self, session):
        mo, _ = await _order(session)
        await ManufacturingOrderService.confirm(session, mo.id)
        with pytest.raises(InvalidTransitionError):
            await ManufacturingOrderService.delete(session, mo.id)


class TestLateness:

    async def test_is_late(self, session):
        mo, _ = await _order(session)
        mo = await ManufacturingOrderService.update(session, mo.id, end_date=date(2026, 3, 1))
        assert ManufacturingOrderService.is_late(mo, today=date(2026, 3, 2))
        assert not ManufacturingOrderService.is_late(mo, today=date(2026, 3, 1))

    async def test_finished_orders_are_never_late(self, session):
        mo, _ = await _order(session)
        mo = await ManufacturingOrderService.update(session, mo.id, end_date=date(2026, 3, 1))
        await ManufacturingOrderService.cancel(session, mo.id)
        mo = await ManufacturingOrderService.get_manufacturing_order(session, mo.id)
        assert not ManufacturingOrderService.is_late(mo, today=date(2026, 4, 1))

    async def test_list_late(self, session):
        late, _ = await _order(session)
        await ManufacturingOrderService.update(session, late.id, end_date=date(2026, 3, 1))
        data = await make_table_bom(session)
        on_time = await ManufacturingOrderService.create_by_bom(
            session, data["bom"].id, Decimal("1"), end_date=date(2026, 12, 1)
        )
        orders = await ManufacturingOrderService.list_late(session, today=date(2026, 3, 10))
        assert [mo.id for mo in orders] == [late.id]
        assert on_time.id not in [mo.id for mo in orders]

    async def test_list_pages_in_the_query(self, session):
        data = await make_table_bom(session)
        ids = [
            (await ManufacturingOrderService.create_by_product(session, data["table"].id, Decimal("1"))).id
            for _ in range(5)
        ]
        await ManufacturingOrderService.confirm(session, ids[0])

        page, total = await ManufacturingOrderService.list_manufacturing_orders(session, limit=2, offset=2)
        assert total == 5
        assert [mo.id for mo in page] == [ids[2], ids[1]]

        drafts, total = await ManufacturingOrderService.list_manufacturing_orders(
            session, status=MOStatus.DRAFT.value, limit=10
        )
        assert total == 4
        assert ids[0] not in [mo.id for mo in drafts]


class TestCost:

    async def test_labour_plus_components(self, session):
        mo, _ = await _order(session, quantity="2")
        assembly, painting = [wo.id for wo in mo.work_orders]
        await WorkOrderService.start(session, assembly, now=T0)
        await WorkOrderService.complete(session, assembly, now=T0 + timedelta(minutes=45))
        await WorkOrderService.start(session, painting, now=T0)
        await WorkOrderService.complete(session, painting, now=T0 + timedelta(minutes=20))

        cost = await ManufacturingOrderService.cost(session, mo.id)

        # 45 min @ 60/h + 20 min @ 30/h
        assert cost.operations_cost == Decimal("55.00")
        # 8 legs @ 5 + 2 tops @ 20
        assert cost.components_cost == Decimal("80.00")
        assert cost.total_cost == Decimal("135.00")
        assert [c.cost for c in cost.work_orders] == [Decimal("45.00"), Decimal("10.00")]

    async def test_unstarted_work_orders_cost_nothing(self, session):
        mo, _ = await _order(session, quantity="1")
        cost = await ManufacturingOrderService.cost(session, mo.id)
        assert cost.operations_cost == Decimal("0.00")
        assert cost.components_cost == Decimal("40.00")
