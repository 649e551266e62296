"""FORGE MES — LedgerService: record_movement, on-hand aggregation, entry history."""
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mes.core.errors import NotFoundError, ValidationError
from mes.db.base import to_money, to_qty
from mes.models.product import Product
from mes.models.stock_ledger import MovementType, StockLedger

logger = logging.getLogger(__name__)

_MOVEMENT_TYPES = {m.value for m in MovementType}


@dataclass(frozen=True)
class StockLevel:
    product_id: int
    name: str
    uom: str
    unit_cost: Decimal
    incoming: Decimal
    outgoing: Decimal
    on_hand: Decimal
    free_to_use: Decimal
    total_value: Decimal


def _incoming_sum():
    return func.coalesce(
        func.sum(case((StockLedger.movement_type == MovementType.IN.value, StockLedger.quantity), else_=0)), 0
    )


def _outgoing_sum():
    return func.coalesce(
        func.sum(case((StockLedger.movement_type == MovementType.OUT.value, StockLedger.quantity), else_=0)), 0
    )


def _stock_level(product: Product, incoming, outgoing) -> StockLevel:
    incoming = to_qty(incoming)
    outgoing = to_qty(outgoing)
    on_hand = incoming - outgoing
    unit_cost = to_qty(product.unit_cost)
    return StockLevel(
        product_id=product.id,
        name=product.name,
        uom=product.uom,
        unit_cost=unit_cost,
        incoming=incoming,
        outgoing=outgoing,
        on_hand=on_hand,
        free_to_use=on_hand,
        total_value=to_money(on_hand * unit_cost),
    )


class LedgerService:
    """Append-only movement log. Balances are derived on every read."""

    @staticmethod
    async def record_movement(
        db: AsyncSession,
        product_id: int,
        movement_type: MovementType | str,
        quantity: Decimal,
        *,
        reference: str | None = None,
        unit_cost: Decimal | None = None,
    ) -> StockLedger:
        """Append one movement. A unit_cost override is written in the same flush."""
        movement_type = movement_type.value if isinstance(movement_type, MovementType) else movement_type
        if movement_type not in _MOVEMENT_TYPES:
            raise ValidationError(f"Unknown movement type '{movement_type}'", field="movement_type")
        quantity = Decimal(str(quantity)) if quantity is not None else None
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be greater than zero", field="quantity")
        if unit_cost is not None and Decimal(str(unit_cost)) < 0:
            raise ValidationError("Unit cost cannot be negative", field="unit_cost")

        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        if unit_cost is not None:
            product.unit_cost = Decimal(str(unit_cost))

        entry = StockLedger(
            product_id=product_id,
            movement_type=movement_type,
            quantity=to_qty(quantity),
            reference=reference,
        )
        db.add(entry)
        await db.flush()
        await db.refresh(entry)
        logger.info(
            "Ledger %s %s x %s (product=%s ref=%s)",
            movement_type, entry.quantity, product.name, product_id, reference,
        )
        return entry

    @staticmethod
    async def get_on_hand(db: AsyncSession, product_id: int) -> StockLevel:
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        row = (
            await db.execute(
                select(_incoming_sum(), _outgoing_sum()).where(StockLedger.product_id == product_id)
            )
        ).one()
        return _stock_level(product, row[0], row[1])

    @staticmethod
    async def get_on_hand_many(db: AsyncSession, product_ids: list[int]) -> dict[int, Decimal]:
        """On-hand for several products in one query. Missing products read as zero."""
        if not product_ids:
            return {}
        rows = (
            await db.execute(
                select(StockLedger.product_id, _incoming_sum(), _outgoing_sum())
                .where(StockLedger.product_id.in_(product_ids))
                .group_by(StockLedger.product_id)
            )
        ).all()
        levels = {pid: Decimal("0.0000") for pid in product_ids}
        for pid, incoming, outgoing in rows:
            levels[pid] = to_qty(incoming) - to_qty(outgoing)
        return levels

    @staticmethod
    async def get_summary(db: AsyncSession) -> list[StockLevel]:
        """One row per product, ordered by name; products without movements report zeros."""
        totals = (
            select(
                StockLedger.product_id.label("product_id"),
                _incoming_sum().label("incoming"),
                _outgoing_sum().label("outgoing"),
            )
            .group_by(StockLedger.product_id)
            .subquery()
        )
        rows = (
            await db.execute(
                select(Product, totals.c.incoming, totals.c.outgoing)
                .outerjoin(totals, totals.c.product_id == Product.id)
                .order_by(Product.name, Product.id)
            )
        ).all()
        return [_stock_level(product, incoming, outgoing) for product, incoming, outgoing in rows]

    @staticmethod
    async def lock_products(db: AsyncSession, product_ids) -> None:
        """Row-lock products in ascending id order so concurrent reservations queue up."""
        ids = sorted(set(product_ids))
        if not ids:
            return
        await db.execute(
            select(Product.id).where(Product.id.in_(ids)).order_by(Product.id).with_for_update()
        )

    @staticmethod
    async def get_entry(db: AsyncSession, entry_id: int) -> StockLedger:
        entry = await db.get(StockLedger, entry_id)
        if entry is None:
            raise NotFoundError("Ledger entry", entry_id)
        return entry

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        *,
        product_id: int | None = None,
        movement_type: str | None = None,
        reference: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[StockLedger], int]:
        """Newest first, ties broken by id descending. `reference` is a substring match."""
        if movement_type is not None and movement_type not in _MOVEMENT_TYPES:
            raise ValidationError(f"Unknown movement type '{movement_type}'", field="movement_type")

        q = select(StockLedger)
        count_q = select(func.count(StockLedger.id))
        if product_id is not None:
            q = q.where(StockLedger.product_id == product_id)
            count_q = count_q.where(StockLedger.product_id == product_id)
        if movement_type:
            q = q.where(StockLedger.movement_type == movement_type)
            count_q = count_q.where(StockLedger.movement_type == movement_type)
        if reference:
            pattern = f"%{reference}%"
            q = q.where(StockLedger.reference.ilike(pattern))
            count_q = count_q.where(StockLedger.reference.ilike(pattern))

        total = (await db.execute(count_q)).scalar_one()
        q = q.order_by(StockLedger.created_at.desc(), StockLedger.id.desc()).offset(offset).limit(limit)
        result = await db.execute(q)
        return list(result.scalars().all()), total

    @staticmethod
    async def entries_for_reference(db: AsyncSession, reference: str) -> list[StockLedger]:
        """Exact-reference lookup, oldest first."""
        result = await db.execute(
            select(StockLedger).where(StockLedger.reference == reference).order_by(StockLedger.id)
        )
        return list(result.scalars().all())
