"""
Dawn Protocol Tasks

Celery Beat runs `run_dawn_protocol` every 15 minutes. The task checks
whether the operator's local time is inside the dawn window
([DAWN_HOUR:00, DAWN_HOUR:14] in OPERATOR_TIMEZONE) and, if so, runs the
full pipeline. Outside the window it returns immediately.

Design:
    - One operator, one run per window. A second run inside the same
      window hits the run-level cache and does no recomputation.
    - force=True skips both the window check and the cache (manual
      trigger from ops).
    - Terminal failures (permission denied, provider or store down) are
      logged and reported in the result; the session is already rolled
      back by the pipeline, so the previous record stays in place.
"""

import asyncio
import zoneinfo
from datetime import datetime, timezone
from typing import Dict

from celery import Task

from tasks import celery_app
from core.config import settings
from core.database import get_db_sync
from core.exceptions import DawnProtocolError
import logging

logger = logging.getLogger(__name__)

# Window size in minutes; must match the beat schedule interval.
WINDOW_MINUTES = 15


def in_dawn_window(utc_now: datetime) -> bool:
    """True when the operator's local clock reads [DAWN_HOUR:00, DAWN_HOUR:14]."""
    local_now = utc_now.astimezone(zoneinfo.ZoneInfo(settings.OPERATOR_TIMEZONE))
    return local_now.hour == settings.DAWN_HOUR and local_now.minute < WINDOW_MINUTES


async def _run_pipeline(db, force: bool):
    from services.content_generator import ContentGenerator
    from services.companion import Companion
    from services.dawn_protocol import DawnProtocol
    from services.gemini_client import GeminiClient
    from services.record_store import RecordStore
    from services.smart_card_engine import SmartCardEngine
    from services.trainer import Trainer
    from services.wearable_provider import HttpWearableProvider

    gemini = GeminiClient.from_settings()
    store = RecordStore(db)
    provider = HttpWearableProvider()
    try:
        protocol = DawnProtocol(
            store,
            provider,
            content_generator=ContentGenerator(gemini),
            card_engine=SmartCardEngine(store, trainer=Trainer(gemini), companion=Companion(gemini)),
        )
        return await protocol.run(force=force)
    finally:
        await provider.aclose()


@celery_app.task(
    name="tasks.run_dawn_protocol",
    bind=True,
    max_retries=0,      # next beat tick is the retry
    soft_time_limit=300,
    time_limit=360,
)
def run_dawn_protocol(self: Task, force: bool = False) -> Dict:
    """
    Dawn protocol task; runs every 15 minutes via Celery Beat.

    Args:
        force: Run regardless of the local window and bypass the cache.

    Returns:
        Summary dict with the run status.
    """
    utc_now = datetime.now(timezone.utc)
    if not force and not in_dawn_window(utc_now):
        return {"status": "skipped", "reason": "outside_dawn_window"}

    db = get_db_sync()
    try:
        result = asyncio.run(_run_pipeline(db, force))
        record = result.record
        logger.info(
            f"Dawn task complete for {record.date}: vitality={record.vitality} "
            f"state={record.current_state} cached={result.cached}"
        )
        return {
            "status": "success",
            "date": record.date.isoformat(),
            "vitality": record.vitality,
            "state": record.current_state,
            "cached": result.cached,
            "cards": [c.id for c in result.cards],
        }
    except DawnProtocolError as e:
        logger.error(f"Dawn task failed: {e.message}")
        return {"status": "error", "error_code": e.error_code, "error": e.message}
    finally:
        db.close()
