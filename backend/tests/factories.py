"""Test data builders. Each one flushes, none of them commit."""
from decimal import Decimal

from mes.models.stock_ledger import MovementType
from mes.services.bom_service import BOMService
from mes.services.ledger_service import LedgerService
from mes.services.product_service import ProductService
from mes.services.user_service import UserService
from mes.services.work_center_service import WorkCenterService


async def make_product(db, name="Widget", *, unit_cost="0", stock=None, category="raw_material"):
    product = await ProductService.create_product(
        db, name, unit_cost=Decimal(unit_cost), category=category, is_component=category == "raw_material"
    )
    if stock:
        await LedgerService.record_movement(db, product.id, MovementType.IN, Decimal(str(stock)), reference="OPENING")
    return product


async def make_work_center(db, name="Assembly Line", cost_per_hour="60"):
    return await WorkCenterService.create_work_center(db, name, cost_per_hour=Decimal(cost_per_hour))


async def make_user(db, name="Operator", email="operator@test.local", role="OPERATOR"):
    return await UserService.create_user(db, name, email, role)


async def make_table_bom(db, *, leg_stock=100, top_stock=10, with_operations=True, output_quantity="1"):
    """Dining table: 4 legs + 1 top per unit; Assembly (60 min) then Painting (30 min)."""
    leg = await make_product(db, "Wooden Leg", unit_cost="5", stock=leg_stock)
    top = await make_product(db, "Wooden Top", unit_cost="20", stock=top_stock)
    table = await make_product(db, "Dining Table", category="finished")
    operations = []
    if with_operations:
        assembly = await make_work_center(db, "Assembly Line", "60")
        paint = await make_work_center(db, "Paint Floor", "30")
        operations = [
            {"name": "Painting", "work_center_id": paint.id, "sequence": 2, "duration_mins": Decimal("30")},
            {"name": "Assembly", "work_center_id": assembly.id, "sequence": 1, "duration_mins": Decimal("60")},
        ]
    bom = await BOMService.create_bom(
        db,
        table.id,
        "Dining Table v1",
        output_quantity=Decimal(output_quantity),
        components=[
            {"component_product_id": leg.id, "qty_per_unit": Decimal("4")},
            {"component_product_id": top.id, "qty_per_unit": Decimal("1")},
        ],
        operations=operations,
    )
    return {"leg": leg, "top": top, "table": table, "bom": bom}
