"""FORGE MES — Seed a development database with users, products, work centers, a BOM and opening stock.

Run after migrations:  python seed_db.py
"""
import asyncio
from decimal import Decimal

from sqlalchemy import select

from mes.config import get_settings
from mes.core.logging import configure_logging
from mes.core.security import create_access_token
from mes.db.session import Database
from mes.models.product import Product, ProductCategory
from mes.models.stock_ledger import MovementType
from mes.services.bom_service import BOMService
from mes.services.ledger_service import LedgerService
from mes.services.product_service import ProductService
from mes.services.user_service import UserService
from mes.services.work_center_service import WorkCenterService

USERS = [
    ("Forge Admin", "admin@forge.local", "ADMIN"),
    ("Plant Manager", "manager@forge.local", "MANAGER"),
    ("Line Operator", "operator@forge.local", "OPERATOR"),
]

# name, uom, unit cost, opening stock
RAW_MATERIALS = [
    ("Wooden Leg", "Units", Decimal("4.50"), Decimal("200")),
    ("Wooden Top", "Units", Decimal("22.00"), Decimal("40")),
    ("Screw", "Units", Decimal("0.05"), Decimal("2000")),
    ("Varnish", "Litres", Decimal("12.00"), Decimal("25")),
]

WORK_CENTERS = [
    ("Assembly Line", Decimal("60.00")),
    ("Paint Floor", Decimal("45.00")),
    ("Packaging", Decimal("30.00")),
]


async def seed_database():
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    database = Database(settings.DATABASE_URL)
    await database.open()
    try:
        async with database.session() as db:
            if await db.scalar(select(Product.id).limit(1)) is not None:
                print("Database already has products. Skipping seed.")
                return

            admin = None
            for name, email, role in USERS:
                user = await UserService.create_user(db, name, email, role)
                admin = admin or user

            materials = {}
            for name, uom, cost, opening in RAW_MATERIALS:
                product = await ProductService.create_product(
                    db, name, uom=uom, unit_cost=cost, is_component=True
                )
                await LedgerService.record_movement(
                    db, product.id, MovementType.IN, opening, reference="OPENING-BALANCE", unit_cost=cost
                )
                materials[name] = product

            centers = {}
            for name, rate in WORK_CENTERS:
                centers[name] = await WorkCenterService.create_work_center(db, name, cost_per_hour=rate)

            table = await ProductService.create_product(
                db, "Dining Table", category=ProductCategory.FINISHED.value, unit_cost=Decimal("0")
            )
            await BOMService.create_bom(
                db,
                table.id,
                "Dining Table v1",
                output_quantity=Decimal("1"),
                components=[
                    {"component_product_id": materials["Wooden Leg"].id, "qty_per_unit": Decimal("4")},
                    {"component_product_id": materials["Wooden Top"].id, "qty_per_unit": Decimal("1")},
                    {"component_product_id": materials["Screw"].id, "qty_per_unit": Decimal("12")},
                    {"component_product_id": materials["Varnish"].id, "qty_per_unit": Decimal("0.5")},
                ],
                operations=[
                    {"name": "Assembly", "work_center_id": centers["Assembly Line"].id, "sequence": 1, "duration_mins": 60},
                    {"name": "Painting", "work_center_id": centers["Paint Floor"].id, "sequence": 2, "duration_mins": 30},
                    {"name": "Packing", "work_center_id": centers["Packaging"].id, "sequence": 3, "duration_mins": 20},
                ],
            )
            await db.commit()

        token = create_access_token(admin.id, role=admin.role, email=admin.email)
        print(f"Seeded demo data. Admin bearer token ({settings.JWT_ACCESS_TOKEN_TTL_MINUTES} min):")
        print(token)
    finally:
        await database.close()


if __name__ == "__main__":
    asyncio.run(seed_database())
