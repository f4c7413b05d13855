"""
Smart Cards API

    GET  /v1/cards                        at most two active cards for today
    POST /v1/cards/{card_id}/complete     complete with a type-specific payload
    POST /v1/cards/{card_id}/dismiss      dismiss (idempotent)
    POST /v1/cards/goals-intake           manual goals intake trigger

Unknown card -> 404. Completing or dismissing a COMPLETED card -> 409.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends

from core.dependencies import get_card_engine, get_store
from core.exceptions import NotFoundError
from schemas import CardCompleteRequest, SmartCardResponse
from services.dawn_protocol import operator_now
from services.record_store import RecordStore
from services.smart_card_engine import CardContext, SmartCardEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/cards", tags=["Smart Cards"])


def _context(store: RecordStore) -> CardContext:
    now = operator_now()
    return CardContext(today=now.date(), now=now, record=store.get_record(now.date()))


@router.get("", response_model=List[SmartCardResponse])
async def get_active_cards(
    store: RecordStore = Depends(get_store),
    engine: SmartCardEngine = Depends(get_card_engine),
):
    return await engine.compute_active_cards(_context(store))


@router.post("/goals-intake", response_model=SmartCardResponse)
async def trigger_goals_intake(
    store: RecordStore = Depends(get_store),
    engine: SmartCardEngine = Depends(get_card_engine),
):
    card = await engine.trigger_goals_intake(_context(store))
    if card is None:
        raise NotFoundError("SmartCard", "GOALS_INTAKE")
    return card


@router.post("/{card_id}/complete", response_model=SmartCardResponse)
def complete_card(
    card_id: str,
    request: Optional[CardCompleteRequest] = Body(default=None),
    engine: SmartCardEngine = Depends(get_card_engine),
):
    payload = request.model_dump(exclude_none=True) if request is not None else {}
    return engine.complete_card(card_id, payload, now=operator_now())


@router.post("/{card_id}/dismiss", response_model=SmartCardResponse)
def dismiss_card(
    card_id: str,
    engine: SmartCardEngine = Depends(get_card_engine),
):
    return engine.dismiss_card(card_id, now=operator_now())
