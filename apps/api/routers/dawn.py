"""
Dawn Protocol API

    POST   /v1/dawn/run          run the daily pipeline (pull-to-refresh);
                                 ?force=true bypasses the run-level cache
    GET    /v1/records/today     today's record (404 until the first run)
    GET    /v1/records/{date}    a single day
    GET    /v1/records           trailing 30-day history, newest first
    DELETE /v1/records           explicit operator reset

Terminal run failures (permission denied, provider down, store down) are
DawnProtocolError subclasses; main.py maps them to 403 / 502 / 503.
"""

import logging
from datetime import date, timedelta
from typing import List

from fastapi import APIRouter, Depends, Query

from core.dependencies import get_card_engine, get_content_generator, get_store, get_wearable_provider
from core.exceptions import NotFoundError
from schemas import DailyRecordResponse, DawnRunResponse, ResetResponse, SmartCardResponse
from services.content_generator import ContentGenerator
from services.dawn_protocol import DawnProtocol, operator_now
from services.record_store import HISTORY_DAYS, RecordStore
from services.smart_card_engine import SmartCardEngine
from services.wearable_provider import WearableProvider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Dawn Protocol"])


@router.post("/v1/dawn/run", response_model=DawnRunResponse)
async def run_dawn(
    force: bool = Query(False, description="Bypass the run-level cache"),
    store: RecordStore = Depends(get_store),
    provider: WearableProvider = Depends(get_wearable_provider),
    content_generator: ContentGenerator = Depends(get_content_generator),
    card_engine: SmartCardEngine = Depends(get_card_engine),
):
    protocol = DawnProtocol(
        store,
        provider,
        content_generator=content_generator,
        card_engine=card_engine,
    )
    result = await protocol.run(force=force)
    return DawnRunResponse(
        record=DailyRecordResponse.model_validate(result.record),
        cards=[SmartCardResponse.model_validate(c) for c in result.cards],
        cached=result.cached,
        content_decision=result.content_decision,
        backfilled_days=result.backfilled_days,
    )


@router.get("/v1/records/today", response_model=DailyRecordResponse)
def get_today_record(store: RecordStore = Depends(get_store)):
    today = operator_now().date()
    record = store.get_record(today)
    if record is None:
        raise NotFoundError("DailyRecord", today.isoformat())
    return record


@router.get("/v1/records/{record_date}", response_model=DailyRecordResponse)
def get_record(record_date: date, store: RecordStore = Depends(get_store)):
    record = store.get_record(record_date)
    if record is None:
        raise NotFoundError("DailyRecord", record_date.isoformat())
    return record


@router.get("/v1/records", response_model=List[DailyRecordResponse])
def get_history(
    days: int = Query(HISTORY_DAYS, ge=1, le=365),
    store: RecordStore = Depends(get_store),
):
    return store.get_history(operator_now().date(), days=days)


@router.delete("/v1/records", response_model=ResetResponse)
def reset_records(store: RecordStore = Depends(get_store)):
    deleted = store.reset()
    logger.warning(f"Operator reset requested: {deleted}")
    return ResetResponse(deleted=deleted)
