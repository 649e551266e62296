"""Tests for the stock ledger: movements, derived balances, summary, paging."""
from decimal import Decimal

import pytest

from mes.core.errors import NotFoundError, ValidationError
from mes.models.stock_ledger import MovementType
from mes.services.ledger_service import LedgerService
from tests.factories import make_product


class TestRecordMovement:

    async def test_in_and_out_derive_on_hand(self, session):
        p = await make_product(session, "Screw")
        await LedgerService.record_movement(session, p.id, MovementType.IN, Decimal("10"))
        await LedgerService.record_movement(session, p.id, "out", Decimal("3.5"))

        level = await LedgerService.get_on_hand(session, p.id)
        assert level.incoming == Decimal("10.0000")
        assert level.outgoing == Decimal("3.5000")
        assert level.on_hand == Decimal("6.5000")
        assert level.free_to_use == level.on_hand

    async def test_negative_balance_is_allowed(self, session):
        p = await make_product(session, "Screw")
        await LedgerService.record_movement(session, p.id, MovementType.OUT, Decimal("2"))
        assert (await LedgerService.get_on_hand(session, p.id)).on_hand == Decimal("-2.0000")

    async def test_unit_cost_override(self, session):
        p = await make_product(session, "Screw", unit_cost="1")
        await LedgerService.record_movement(session, p.id, MovementType.IN, Decimal("4"), unit_cost=Decimal("2.25"))
        level = await LedgerService.get_on_hand(session, p.id)
        assert level.unit_cost == Decimal("2.2500")
        assert level.total_value == Decimal("9.00")

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1"), None])
    async def test_rejects_non_positive_quantity(self, session, quantity):
        p = await make_product(session, "Screw")
        with pytest.raises(ValidationError):
            await LedgerService.record_movement(session, p.id, MovementType.IN, quantity)

    async def test_rejects_unknown_type(self, session):
        p = await make_product(session, "Screw")
        with pytest.raises(ValidationError) as exc:
            await LedgerService.record_movement(session, p.id, "sideways", Decimal("1"))
        assert exc.value.field == "movement_type"

    async def test_unknown_product(self, session):
        with pytest.raises(NotFoundError):
            await LedgerService.record_movement(session, 999, MovementType.IN, Decimal("1"))


class TestQueries:

    async def test_summary_includes_products_without_movements(self, session):
        await make_product(session, "Bolt", stock=5)
        await make_product(session, "Anchor")
        summary = await LedgerService.get_summary(session)
        assert [s.name for s in summary] == ["Anchor", "Bolt"]
        assert summary[0].on_hand == Decimal("0.0000")
        assert summary[1].on_hand == Decimal("5.0000")

    async def test_on_hand_many_defaults_to_zero(self, session):
        a = await make_product(session, "A", stock=3)
        b = await make_product(session, "B")
        levels = await LedgerService.get_on_hand_many(session, [a.id, b.id])
        assert levels == {a.id: Decimal("3.0000"), b.id: Decimal("0.0000")}

    async def test_list_entries_newest_first_with_total(self, session):
        p = await make_product(session, "Screw")
        for i in range(5):
            await LedgerService.record_movement(session, p.id, MovementType.IN, Decimal("1"), reference=f"PO-{i}")

        entries, total = await LedgerService.list_entries(session, limit=2, offset=0)
        assert total == 5
        assert [e.reference for e in entries] == ["PO-4", "PO-3"]

        page2, _ = await LedgerService.list_entries(session, limit=2, offset=2)
        assert [e.reference for e in page2] == ["PO-2", "PO-1"]

    async def test_list_entries_reference_substring_is_case_insensitive(self, session):
        p = await make_product(session, "Screw")
        await LedgerService.record_movement(session, p.id, MovementType.OUT, Decimal("1"), reference="MO-000001-RESERVE")
        await LedgerService.record_movement(session, p.id, MovementType.IN, Decimal("1"), reference="PO-1")

        entries, total = await LedgerService.list_entries(session, reference="reserve")
        assert total == 1
        assert entries[0].reference == "MO-000001-RESERVE"

    async def test_list_entries_rejects_unknown_type(self, session):
        with pytest.raises(ValidationError):
            await LedgerService.list_entries(session, movement_type="both")

    async def test_get_entry_not_found(self, session):
        with pytest.raises(NotFoundError):
            await LedgerService.get_entry(session, 12345)
