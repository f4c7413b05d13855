"""
Operator goals API. Single row; PUT replaces it wholesale.
"""

from fastapi import APIRouter, Depends

from core.dependencies import get_store
from core.exceptions import NotFoundError
from schemas import GoalsResponse, GoalsUpdate
from services.record_store import RecordStore

router = APIRouter(prefix="/v1/goals", tags=["Goals"])


@router.get("", response_model=GoalsResponse)
def get_goals(store: RecordStore = Depends(get_store)):
    goals = store.get_goals()
    if goals is None:
        raise NotFoundError("OperatorGoals", "operator")
    return goals


@router.put("", response_model=GoalsResponse)
def update_goals(update: GoalsUpdate, store: RecordStore = Depends(get_store)):
    return store.save_goals(
        primary_goal=update.primary_goal.strip(),
        horizon=update.horizon,
        constraints=update.constraints,
    )
