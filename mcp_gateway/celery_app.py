"""
Celery application and beat schedule
"""
from datetime import timedelta

from celery import Celery

from mcp_gateway.config import settings

celery_app = Celery(
    "mcp_gateway",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["mcp_gateway.tasks.token_cleanup"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
)

celery_app.conf.beat_schedule = {
    "sweep-stale-credentials": {
        "task": "mcp_gateway.tasks.token_cleanup.sweep_credentials",
        "schedule": timedelta(hours=settings.TOKEN_SWEEP_INTERVAL_HOURS),
    },
}
