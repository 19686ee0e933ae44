"""Celery application for DocLifecycle background work.

Start a worker and the beat scheduler with:
    celery -A workers.celery_app worker --loglevel=INFO
    celery -A workers.celery_app beat --loglevel=INFO

Beat runs exactly one periodic job per deployment: the nightly lifecycle
scan at SCAN_HOUR_UTC (02:00 UTC by default).
"""

from celery import Celery
from celery.schedules import crontab

from config import settings

celery_app = Celery(
    "doclifecycle",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["retention.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "lifecycle-scan-nightly": {
        "task": "lifecycle.scan",
        "schedule": crontab(hour=settings.SCAN_HOUR_UTC, minute=0),
        "kwargs": {"apply": True},
        "options": {
            "expires": 3600,  # Task expires after 1 hour if not picked up
        },
    },
}
