"""FORGE MES — Reports endpoints: dashboard KPIs, throughput, cycle time, per-user work."""
import json
import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from mes.api.deps import PERM_REPORTS_READ, CurrentUser, get_db, require_permission
from mes.config import get_settings
from mes.core.redis import get_redis
from mes.schemas.common import ApiResponse
from mes.schemas.report import CycleTimeResponse, ThroughputResponse, UserWorkSummaryResponse
from mes.services.report_service import DASHBOARD_CACHE_KEY, DASHBOARD_CACHE_TTL, ReportService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/dashboard")
async def get_dashboard(
    refresh: bool = Query(False, description="Bypass the cache"),
    user: CurrentUser = Depends(require_permission(PERM_REPORTS_READ)),
    db: AsyncSession = Depends(get_db),
):
    """MO/WO counts by status, late orders, inventory value. Redis-cached 60s."""
    if not get_settings().REDIS_ENABLED:
        return {"data": await ReportService.get_dashboard_kpis(db), "error": None, "meta": {"cached": False}}

    try:
        r = await get_redis()
        cached = None if refresh else await r.get(DASHBOARD_CACHE_KEY)
        if cached:
            return {"data": json.loads(cached), "error": None, "meta": {"cached": True}}
        data = await ReportService.get_dashboard_kpis(db)
        await r.set(DASHBOARD_CACHE_KEY, json.dumps(data), ex=DASHBOARD_CACHE_TTL)
    except RedisError as exc:
        logger.warning("Dashboard cache unavailable, serving uncached: %s", exc)
        data = await ReportService.get_dashboard_kpis(db)
    return {"data": data, "error": None, "meta": {"cached": False}}


@router.get("/throughput", response_model=ApiResponse[list[ThroughputResponse]])
async def get_throughput(
    date_from: date | None = Query(None, description="Defaults to 30 days before date_to"),
    date_to: date | None = Query(None, description="Defaults to today (UTC)"),
    period: str = Query("day", description="day | week"),
    user: CurrentUser = Depends(require_permission(PERM_REPORTS_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Manufacturing orders completed per day or week."""
    buckets = await ReportService.throughput(db, date_from=date_from, date_to=date_to, period=period)
    return ApiResponse(data=[ThroughputResponse.model_validate(b) for b in buckets])


@router.get("/cycle-time", response_model=ApiResponse[list[CycleTimeResponse]])
async def get_cycle_time(
    product_id: int | None = Query(None),
    user: CurrentUser = Depends(require_permission(PERM_REPORTS_READ)),
    db: AsyncSession = Depends(get_db),
):
    rows = await ReportService.cycle_time(db, product_id=product_id)
    return ApiResponse(data=[CycleTimeResponse.model_validate(r) for r in rows])


@router.get("/user-work-summary", response_model=ApiResponse[list[UserWorkSummaryResponse]])
async def get_user_work_summary(
    user: CurrentUser = Depends(require_permission(PERM_REPORTS_READ)),
    db: AsyncSession = Depends(get_db),
):
    """Done, in-progress and total work orders per assignee."""
    rows = await ReportService.user_work_summary(db)
    return ApiResponse(data=[UserWorkSummaryResponse.model_validate(r) for r in rows])
