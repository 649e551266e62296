"""FORGE MES — Component availability and all-or-nothing reservation."""
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mes.core.errors import InvalidTransitionError, NotFoundError, ShortfallError
from mes.db.base import to_qty
from mes.models.manufacturing_order import ComponentStatus, ManufacturingOrder, MOStatus
from mes.models.stock_ledger import MovementType, StockLedger
from mes.services.bom_resolver import BomScaling, scale_for_quantity
from mes.services.bom_service import BOMService
from mes.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

_RESERVABLE_STATUSES = {MOStatus.CONFIRMED.value, MOStatus.IN_PROGRESS.value}


@dataclass(frozen=True)
class ComponentAvailability:
    product_id: int
    product_name: str | None
    uom: str | None
    required_qty: Decimal
    on_hand: Decimal
    shortfall: Decimal
    sufficient: bool


@dataclass
class ReservationResult:
    mo_id: int
    reference: str
    already_reserved: bool = False
    entries: list[StockLedger] = field(default_factory=list)


def _requirements(scaling: BomScaling) -> list[tuple[int, str | None, str | None, Decimal]]:
    """Required quantity per distinct product; repeated component lines are summed."""
    merged: dict[int, list] = {}
    for comp in scaling.components:
        if comp.product_id in merged:
            merged[comp.product_id][3] += comp.required_qty
        else:
            merged[comp.product_id] = [comp.product_id, comp.product_name, comp.uom, comp.required_qty]
    return [tuple(row) for row in merged.values()]


class ReservationService:

    @staticmethod
    async def _scaling_for(db: AsyncSession, mo: ManufacturingOrder) -> BomScaling | None:
        bom = await BOMService.get_effective_bom(db, mo.product_id, mo.bom_id)
        if bom is None:
            return None
        return scale_for_quantity(bom, mo.quantity)

    @staticmethod
    async def _check(db: AsyncSession, scaling: BomScaling | None) -> list[ComponentAvailability]:
        if scaling is None:
            return []
        requirements = _requirements(scaling)
        on_hand = await LedgerService.get_on_hand_many(db, [r[0] for r in requirements])
        result = []
        for product_id, name, uom, required in requirements:
            available = on_hand.get(product_id, Decimal("0"))
            shortfall = max(Decimal("0"), required - available)
            result.append(
                ComponentAvailability(
                    product_id=product_id,
                    product_name=name,
                    uom=uom,
                    required_qty=to_qty(required),
                    on_hand=to_qty(available),
                    shortfall=to_qty(shortfall),
                    sufficient=shortfall == 0,
                )
            )
        return result

    @staticmethod
    async def compute_availability(db: AsyncSession, mo: ManufacturingOrder) -> list[ComponentAvailability]:
        """Required vs on-hand for each component of the MO's effective BOM. Read only."""
        scaling = await ReservationService._scaling_for(db, mo)
        return await ReservationService._check(db, scaling)

    @staticmethod
    async def _lock_order(db: AsyncSession, mo_id: int) -> ManufacturingOrder:
        mo = await db.scalar(
            select(ManufacturingOrder)
            .where(ManufacturingOrder.id == mo_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if mo is None:
            raise NotFoundError("Manufacturing order", mo_id)
        return mo

    @staticmethod
    async def reserve_components(db: AsyncSession, mo_id: int) -> ReservationResult:
        """Book every component out of the ledger, or nothing at all.

        Runs under the MO row lock and the component product locks, so the
        availability check and the postings see the same stock. Raises
        ShortfallError naming every short component without posting anything.
        """
        mo = await ReservationService._lock_order(db, mo_id)
        if mo.status not in _RESERVABLE_STATUSES:
            raise InvalidTransitionError("Manufacturing order", mo.id, mo.status, "reserve components for")
        if mo.component_status == ComponentStatus.RESERVED.value:
            logger.info("%s components already reserved", mo.reference)
            return ReservationResult(mo_id=mo.id, reference=mo.reservation_reference, already_reserved=True)

        scaling = await ReservationService._scaling_for(db, mo)
        if scaling is not None:
            await LedgerService.lock_products(db, [c.product_id for c in scaling.components])
        availability = await ReservationService._check(db, scaling)

        shortages = [a for a in availability if not a.sufficient]
        if shortages:
            logger.warning(
                "%s reservation refused, short components: %s",
                mo.reference, ", ".join(str(s.product_id) for s in shortages),
            )
            raise ShortfallError(shortages)

        entries = []
        for item in availability:
            if item.required_qty <= 0:
                continue
            entries.append(
                await LedgerService.record_movement(
                    db,
                    item.product_id,
                    MovementType.OUT,
                    item.required_qty,
                    reference=mo.reservation_reference,
                )
            )
        mo.component_status = ComponentStatus.RESERVED.value
        await db.flush()
        logger.info("%s reserved %d component lines", mo.reference, len(entries))
        return ReservationResult(mo_id=mo.id, reference=mo.reservation_reference, entries=entries)

    @staticmethod
    async def release_components(db: AsyncSession, mo_id: int) -> list[StockLedger]:
        """Reverse a reservation by posting matching `in` movements."""
        mo = await ReservationService._lock_order(db, mo_id)
        if mo.component_status != ComponentStatus.RESERVED.value:
            return []

        reserved = await LedgerService.entries_for_reference(db, mo.reservation_reference)
        entries = []
        for entry in reserved:
            if entry.movement_type != MovementType.OUT.value:
                continue
            entries.append(
                await LedgerService.record_movement(
                    db,
                    entry.product_id,
                    MovementType.IN,
                    entry.quantity,
                    reference=mo.release_reference,
                )
            )
        mo.component_status = ComponentStatus.RELEASED.value
        await db.flush()
        logger.info("%s released %d component lines", mo.reference, len(entries))
        return entries
