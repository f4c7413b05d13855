from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, date
from typing import Optional, List, Dict, Any


class DailyRecordResponse(BaseModel):
    date: date
    record_kind: str
    created_at: datetime
    updated_at: datetime

    # Raw snapshot
    sleep: Optional[Dict[str, Any]] = None
    activity: Optional[Dict[str, Any]] = None
    biometrics: Optional[Dict[str, Any]] = None
    mindful_minutes: Optional[float] = None
    raw_captured_at: Optional[datetime] = None

    # Vitality
    vitality: Optional[int] = None
    vitality_availability: Optional[str] = None
    vitality_unavailable_reason: Optional[str] = None
    vitality_confidence: Optional[str] = None
    vitality_is_estimated: bool = False
    vitality_reason_code: Optional[str] = None
    vitality_detail: Optional[Dict[str, Any]] = None

    # State
    axes: Optional[Dict[str, int]] = None
    trends: Optional[Dict[str, str]] = None
    biometric_trends: Optional[Dict[str, Any]] = None
    current_state: Optional[str] = None
    active_lens: Optional[str] = None
    load_density: Optional[float] = None

    # Alignment / progression
    alignment_status: Optional[str] = None
    alignment_score: Optional[int] = None
    consistency_streak: Optional[int] = None
    rank: Optional[str] = None

    directive: Optional[Dict[str, Any]] = None
    session: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True)


class SmartCardResponse(BaseModel):
    id: str
    date: date
    type: str
    sub_id: Optional[str] = None
    status: str
    priority: int
    dismiss_policy: str
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime
    dismissed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DawnRunResponse(BaseModel):
    record: DailyRecordResponse
    cards: List[SmartCardResponse] = []
    cached: bool = False
    content_decision: Optional[str] = None
    backfilled_days: int = 0


class CardCompleteRequest(BaseModel):
    """Free-form completion payload; the keys a card reads depend on its type."""
    rpe: Optional[int] = Field(default=None, ge=1, le=10)
    note: Optional[str] = None
    sleep_seconds: Optional[float] = None
    sleep_hours: Optional[float] = None
    primary_goal: Optional[str] = None
    horizon: Optional[str] = None
    constraints: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class GoalsUpdate(BaseModel):
    primary_goal: str = Field(min_length=1, max_length=500)
    horizon: Optional[str] = None
    constraints: Optional[str] = None


class GoalsResponse(BaseModel):
    primary_goal: str
    horizon: Optional[str] = None
    constraints: Optional[str] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ResetResponse(BaseModel):
    deleted: Dict[str, int]
