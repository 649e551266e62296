"""FORGE MES — Celery tasks for reporting.

- refresh_dashboard_cache: Celery Beat runs every 60s, recalculates dashboard KPIs.
"""
import asyncio
import json
import logging

from mes.worker import celery_app

logger = logging.getLogger(__name__)


def _sync_redis():
    """Get a sync Redis client for Celery tasks."""
    import redis
    from mes.config import get_settings
    settings = get_settings()
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


async def _compute_dashboard() -> dict:
    from mes.config import get_settings
    from mes.db.session import Database
    from mes.services.report_service import ReportService

    database = Database(get_settings().DATABASE_URL)
    await database.open()
    try:
        async with database.session() as db:
            return await ReportService.get_dashboard_kpis(db)
    finally:
        await database.close()


@celery_app.task(bind=True, max_retries=2)
def refresh_dashboard_cache(self) -> dict:
    """Refresh the dashboard KPI cache. Run by Celery Beat every 60s."""
    from mes.services.report_service import DASHBOARD_CACHE_KEY, DASHBOARD_CACHE_TTL

    data = asyncio.run(_compute_dashboard())
    r = _sync_redis()
    r.set(DASHBOARD_CACHE_KEY, json.dumps(data), ex=DASHBOARD_CACHE_TTL)
    logger.info("Dashboard cache refreshed")
    return data
