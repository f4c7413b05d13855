"""
Celery worker and beat entry point for the dawn schedule.

    celery -A main worker --beat --loglevel=info

The API source tree is mounted at /api in the container; locally the
sibling apps/api directory is used.
"""
import logging
import os
import sys

API_DIR = os.environ.get(
    "SENTIENT_API_DIR",
    "/api" if os.path.isdir("/api") else os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "api"),
)
sys.path.insert(0, API_DIR)

from celery.signals import setup_logging as celery_setup_logging  # noqa: E402

from core.logging import setup_logging  # noqa: E402
from tasks import celery_app  # noqa: E402


@celery_setup_logging.connect
def configure_worker_logging(loglevel=None, **kwargs):
    # Connecting this signal stops Celery from installing its own handlers.
    if isinstance(loglevel, int):
        loglevel = logging.getLevelName(loglevel)
    setup_logging(service="worker", level=loglevel)


app = celery_app
