"""
Celery app for the dawn schedule.

Beat fires ``tasks.run_dawn_protocol`` every WINDOW_MINUTES; the task
decides for itself whether the operator's local clock is inside the dawn
window. One queue, one task type, so the worker runs with prefetch 1 and
late acks: a run that dies with the worker is picked up on restart rather
than lost.
"""
from celery import Celery
from celery.schedules import crontab

from core.config import settings

celery_app = Celery(
    "sentient_engine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=24 * 3600,
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "dawn-protocol": {
            "task": "tasks.run_dawn_protocol",
            "schedule": crontab(minute="*/15"),
        },
    },
)

from . import dawn_tasks  # noqa: E402

__all__ = ["celery_app"]
