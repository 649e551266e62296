"""FORGE MES — BOMService: create, read, update, delete, effective BOM, scaling preview."""
import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mes.core.errors import NotFoundError, ReferentialError, ValidationError
from mes.models.bom import BOM, BOMComponent, BOMOperation
from mes.models.manufacturing_order import ManufacturingOrder, MOStatus
from mes.models.product import Product, WorkCenter
from mes.services.bom_resolver import BomScaling, scale_for_quantity

logger = logging.getLogger(__name__)


class BOMService:
    """CRUD for Bills of Materials plus the read paths the orchestrator needs."""

    @staticmethod
    async def _validate_lines(
        db: AsyncSession,
        product_id: int,
        components: list[dict],
        operations: list[dict],
    ) -> None:
        component_ids = {int(c["component_product_id"]) for c in components}
        if product_id in component_ids:
            raise ValidationError(
                "Circular reference: a product cannot be a component of itself",
                field="components",
            )
        if component_ids:
            found = set(
                (await db.execute(select(Product.id).where(Product.id.in_(component_ids)))).scalars().all()
            )
            missing = component_ids - found
            if missing:
                raise NotFoundError("Product", sorted(missing)[0])
        for comp in components:
            if Decimal(str(comp["qty_per_unit"])) <= 0:
                raise ValidationError("Component quantity must be greater than zero", field="components")

        wc_ids = {int(op["work_center_id"]) for op in operations if op.get("work_center_id") is not None}
        if wc_ids:
            found = set(
                (await db.execute(select(WorkCenter.id).where(WorkCenter.id.in_(wc_ids)))).scalars().all()
            )
            missing = wc_ids - found
            if missing:
                raise NotFoundError("Work center", sorted(missing)[0])
        for op in operations:
            if int(op.get("sequence", 1)) < 1:
                raise ValidationError("Operation sequence must be a positive integer", field="operations")

    @staticmethod
    def _build_components(components: list[dict]) -> list[BOMComponent]:
        return [
            BOMComponent(
                component_product_id=int(c["component_product_id"]),
                qty_per_unit=Decimal(str(c["qty_per_unit"])),
                uom=c.get("uom"),
            )
            for c in components
        ]

    @staticmethod
    def _build_operations(operations: list[dict]) -> list[BOMOperation]:
        return [
            BOMOperation(
                name=op["name"],
                work_center_id=op.get("work_center_id"),
                sequence=int(op.get("sequence", 1)),
                duration_mins=Decimal(str(op.get("duration_mins") or 0)),
            )
            for op in operations
        ]

    @staticmethod
    async def create_bom(
        db: AsyncSession,
        product_id: int,
        name: str,
        *,
        output_quantity: Decimal = Decimal("1"),
        components: list[dict] | None = None,
        operations: list[dict] | None = None,
    ) -> BOM:
        """Create a BOM with its components and operations in one flush."""
        components = components or []
        operations = operations or []
        if await db.get(Product, product_id) is None:
            raise NotFoundError("Product", product_id)
        if Decimal(str(output_quantity)) <= 0:
            raise ValidationError("Output quantity must be greater than zero", field="output_quantity")
        await BOMService._validate_lines(db, product_id, components, operations)

        bom = BOM(
            product_id=product_id,
            name=name,
            output_quantity=Decimal(str(output_quantity)),
            components=BOMService._build_components(components),
            operations=BOMService._build_operations(operations),
        )
        db.add(bom)
        await db.flush()
        logger.info("Created BOM %s for product %s", bom.id, product_id)
        return await BOMService.get_bom(db, bom.id)

    @staticmethod
    async def get_bom(db: AsyncSession, bom_id: int) -> BOM:
        bom = await db.scalar(
            select(BOM).where(BOM.id == bom_id).execution_options(populate_existing=True)
        )
        if bom is None:
            raise NotFoundError("BOM", bom_id)
        return bom

    @staticmethod
    async def list_boms(db: AsyncSession, product_id: int | None = None) -> list[BOM]:
        q = select(BOM)
        if product_id is not None:
            q = q.where(BOM.product_id == product_id)
        result = await db.execute(q.order_by(BOM.created_at.desc(), BOM.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def get_effective_bom(db: AsyncSession, product_id: int, bom_id: int | None = None) -> BOM | None:
        """Explicit BOM when given, otherwise the most recent BOM for the product."""
        if bom_id is not None:
            return await BOMService.get_bom(db, bom_id)
        return await db.scalar(
            select(BOM)
            .where(BOM.product_id == product_id)
            .order_by(BOM.created_at.desc(), BOM.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )

    @staticmethod
    async def is_locked(db: AsyncSession, bom_id: int) -> bool:
        """A BOM referenced by any MO past draft can no longer change."""
        count = await db.scalar(
            select(func.count(ManufacturingOrder.id)).where(
                ManufacturingOrder.bom_id == bom_id,
                ManufacturingOrder.status != MOStatus.DRAFT.value,
            )
        )
        return bool(count)

    @staticmethod
    async def update_bom(
        db: AsyncSession,
        bom_id: int,
        *,
        name: str | None = None,
        output_quantity: Decimal | None = None,
        components: list[dict] | None = None,
        operations: list[dict] | None = None,
    ) -> BOM:
        """Update header fields; component/operation lists are replaced wholesale when given."""
        bom = await BOMService.get_bom(db, bom_id)
        if await BOMService.is_locked(db, bom_id):
            raise ReferentialError(
                f"BOM {bom_id} is used by a confirmed manufacturing order and cannot change",
                details={"bom_id": bom_id},
            )
        await BOMService._validate_lines(db, bom.product_id, components or [], operations or [])

        if name is not None:
            bom.name = name
        if output_quantity is not None:
            if Decimal(str(output_quantity)) <= 0:
                raise ValidationError("Output quantity must be greater than zero", field="output_quantity")
            bom.output_quantity = Decimal(str(output_quantity))
        if components is not None:
            bom.components = BOMService._build_components(components)
        if operations is not None:
            bom.operations = BOMService._build_operations(operations)
        await db.flush()
        logger.info("Updated BOM %s", bom_id)
        return await BOMService.get_bom(db, bom_id)

    @staticmethod
    async def delete_bom(db: AsyncSession, bom_id: int) -> None:
        bom = await BOMService.get_bom(db, bom_id)
        if await BOMService.is_locked(db, bom_id):
            raise ReferentialError(
                f"BOM {bom_id} is used by a confirmed manufacturing order and cannot be deleted",
                details={"bom_id": bom_id},
            )
        await db.delete(bom)
        await db.flush()
        logger.info("Deleted BOM %s", bom_id)

    @staticmethod
    async def preview_scaling(db: AsyncSession, bom_id: int, quantity: Decimal) -> BomScaling:
        """Scaled requirements for `quantity` output units. Writes nothing."""
        bom = await BOMService.get_bom(db, bom_id)
        return scale_for_quantity(bom, quantity)
