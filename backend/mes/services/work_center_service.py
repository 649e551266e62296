"""FORGE MES — WorkCenterService (CRUD)."""
import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mes.core.errors import NotFoundError, ReferentialError, ValidationError
from mes.models.bom import BOMOperation
from mes.models.product import WorkCenter
from mes.models.work_order import WorkOrder

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"name", "capacity_per_hour", "cost_per_hour", "location"}


def _check_fields(fields: dict) -> None:
    if "name" in fields and not (fields["name"] or "").strip():
        raise ValidationError("Name is required", field="name")
    for key in ("capacity_per_hour", "cost_per_hour"):
        if fields.get(key) is not None and Decimal(str(fields[key])) < 0:
            raise ValidationError(f"{key} cannot be negative", field=key)


class WorkCenterService:

    @staticmethod
    async def get_work_center(db: AsyncSession, wc_id: int) -> WorkCenter:
        wc = await db.get(WorkCenter, wc_id)
        if wc is None:
            raise NotFoundError("Work center", wc_id)
        return wc

    @staticmethod
    async def list_work_centers(db: AsyncSession) -> list[WorkCenter]:
        result = await db.execute(select(WorkCenter).order_by(WorkCenter.id))
        return list(result.scalars().all())

    @staticmethod
    async def create_work_center(
        db: AsyncSession,
        name: str,
        *,
        capacity_per_hour: Decimal | None = None,
        cost_per_hour: Decimal = Decimal("0"),
        location: str | None = None,
    ) -> WorkCenter:
        _check_fields({"name": name, "capacity_per_hour": capacity_per_hour, "cost_per_hour": cost_per_hour})
        wc = WorkCenter(
            name=name.strip(),
            capacity_per_hour=capacity_per_hour,
            cost_per_hour=Decimal(str(cost_per_hour or 0)),
            location=location,
        )
        db.add(wc)
        await db.flush()
        await db.refresh(wc)
        logger.info("Created work center %s (%s)", wc.id, wc.name)
        return wc

    @staticmethod
    async def update_work_center(db: AsyncSession, wc_id: int, **fields) -> WorkCenter:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            name = sorted(unknown)[0]
            raise ValidationError(f"Field '{name}' cannot be updated", field=name)
        _check_fields(fields)
        wc = await WorkCenterService.get_work_center(db, wc_id)
        for key, value in fields.items():
            setattr(wc, key, value)
        await db.flush()
        await db.refresh(wc)
        return wc

    @staticmethod
    async def delete_work_center(db: AsyncSession, wc_id: int) -> None:
        wc = await WorkCenterService.get_work_center(db, wc_id)
        in_use = await db.scalar(
            select(func.count(BOMOperation.id)).where(BOMOperation.work_center_id == wc_id)
        ) or await db.scalar(select(func.count(WorkOrder.id)).where(WorkOrder.work_center_id == wc_id))
        if in_use:
            raise ReferentialError(
                f"Work center {wc_id} is used by BOM operations or work orders",
                details={"work_center_id": wc_id},
            )
        await db.delete(wc)
        await db.flush()
        logger.info("Deleted work center %s", wc_id)
