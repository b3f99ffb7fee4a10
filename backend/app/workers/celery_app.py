"""Celery application for report exports and housekeeping.

Start a worker for both queues, plus beat for the periodic cleanup::

    celery -A backend.app.workers.celery_app worker -Q reports,default --loglevel=info
    celery -A backend.app.workers.celery_app beat --loglevel=info
"""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from backend.app.core.config import settings

celery = Celery(
    "kasir",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "backend.app.workers.tasks.exports",
        "backend.app.workers.tasks.cleanup",
    ],
)

celery.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.REPORT_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    # Exports run on their own queue
    task_routes={"backend.app.workers.tasks.exports.*": {"queue": "reports"}},
    # Clients poll the export result for the file URL
    result_expires=60 * 60 * 24,
)

celery.conf.beat_schedule = {
    "purge-revoked-tokens-hourly": {
        "task": "backend.app.workers.tasks.cleanup.cleanup_revoked_tokens",
        "schedule": crontab(minute=0),
    },
}
