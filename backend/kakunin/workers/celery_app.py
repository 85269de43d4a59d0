"""Celery application, broker settings and the daily export schedule."""

from celery import Celery
from celery.schedules import crontab

from ..config import get_settings

settings = get_settings()

celery_app = Celery(
    "kakunin_workers",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "kakunin.workers.ocr_worker",
        "kakunin.workers.batch_export_worker",
    ],
)

celery_app.conf.update(
    task_track_started=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Beat crontabs are evaluated in JST; the daily export closes out the previous day
    timezone="Asia/Tokyo",
    enable_utc=True,
    result_expires=86400,
    broker_connection_retry_on_startup=True,
)

celery_app.conf.beat_schedule = {
    "batch-export-daily": {
        "task": "batch_export.run_daily",
        "schedule": crontab(hour=settings.BATCH_EXPORT_HOUR, minute=settings.BATCH_EXPORT_MINUTE),
        "options": {
            "expires": 3600,  # Task expires after 1 hour if not picked up
        },
    },
}
