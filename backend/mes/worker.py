"""FORGE MES — Celery worker configuration."""
from celery import Celery
from celery.signals import after_setup_logger

from mes.config import get_settings
from mes.core.logging import configure_logging

settings = get_settings()

celery_app = Celery(
    "forge_mes",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_retry_delay=60,
    task_max_retries=3,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_routes={
        "mes.tasks.*": {"queue": "default"},
    },
    include=[
        "mes.tasks.notification_tasks",
        "mes.tasks.report_tasks",
    ],
)

# Celery Beat schedule
celery_app.conf.beat_schedule = {
    "refresh-dashboard-cache-60s": {
        "task": "mes.tasks.report_tasks.refresh_dashboard_cache",
        "schedule": 60.0,
    },
}


@after_setup_logger.connect
def _setup_logging(logger, *args, **kwargs):
    configure_logging(settings.LOG_LEVEL)
