"""FORGE MES — ProductService (CRUD)."""
import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mes.core.errors import NotFoundError, ReferentialError, ValidationError
from mes.models.bom import BOM, BOMComponent
from mes.models.manufacturing_order import ManufacturingOrder
from mes.models.product import Product, ProductCategory
from mes.models.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

_CATEGORIES = {c.value for c in ProductCategory}
_UPDATABLE_FIELDS = {"name", "uom", "unit_cost", "category", "is_component"}


def _check_fields(fields: dict) -> None:
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("Name is required", field="name")
    if fields.get("category") is not None and fields["category"] not in _CATEGORIES:
        raise ValidationError(f"Unknown category '{fields['category']}'", field="category")
    if fields.get("unit_cost") is not None and Decimal(str(fields["unit_cost"])) < 0:
        raise ValidationError("Unit cost cannot be negative", field="unit_cost")


class ProductService:

    @staticmethod
    async def get_product(db: AsyncSession, product_id: int) -> Product:
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    @staticmethod
    async def list_products(
        db: AsyncSession,
        *,
        category: str | None = None,
        is_component: bool | None = None,
        search: str | None = None,
    ) -> list[Product]:
        q = select(Product)
        if category:
            q = q.where(Product.category == category)
        if is_component is not None:
            q = q.where(Product.is_component == is_component)
        if search:
            q = q.where(Product.name.ilike(f"%{search}%"))
        result = await db.execute(q.order_by(Product.name, Product.id))
        return list(result.scalars().all())

    @staticmethod
    async def create_product(
        db: AsyncSession,
        name: str,
        *,
        uom: str = "Units",
        unit_cost: Decimal = Decimal("0"),
        category: str = ProductCategory.RAW_MATERIAL.value,
        is_component: bool = False,
    ) -> Product:
        _check_fields({"name": name, "category": category, "unit_cost": unit_cost})
        product = Product(
            name=name.strip(),
            uom=uom or "Units",
            unit_cost=Decimal(str(unit_cost or 0)),
            category=category,
            is_component=is_component,
        )
        db.add(product)
        await db.flush()
        await db.refresh(product)
        logger.info("Created product %s (%s)", product.id, product.name)
        return product

    @staticmethod
    async def update_product(db: AsyncSession, product_id: int, **fields) -> Product:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            name = sorted(unknown)[0]
            raise ValidationError(f"Field '{name}' cannot be updated", field=name)
        _check_fields(fields)
        product = await ProductService.get_product(db, product_id)
        for key, value in fields.items():
            setattr(product, key, value)
        await db.flush()
        await db.refresh(product)
        return product

    @staticmethod
    async def delete_product(db: AsyncSession, product_id: int) -> None:
        """Only products nothing else points at can go."""
        product = await ProductService.get_product(db, product_id)
        in_use = (
            await db.scalar(select(func.count(StockLedger.id)).where(StockLedger.product_id == product_id))
            or await db.scalar(
                select(func.count(ManufacturingOrder.id)).where(ManufacturingOrder.product_id == product_id)
            )
            or await db.scalar(select(func.count(BOM.id)).where(BOM.product_id == product_id))
            or await db.scalar(
                select(func.count(BOMComponent.id)).where(BOMComponent.component_product_id == product_id)
            )
        )
        if in_use:
            raise ReferentialError(
                f"Product {product_id} is referenced by ledger entries, BOMs or orders",
                details={"product_id": product_id},
            )
        await db.delete(product)
        await db.flush()
        logger.info("Deleted product %s", product_id)
