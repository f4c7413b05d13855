from sqlalchemy import Column, Integer, Boolean, Float, Date, DateTime, Text, Index, JSON
from sqlalchemy.dialects.postgresql import UUID, JSONB
from core.database import Base
import uuid
from datetime import datetime, timezone


# JSONB on Postgres, plain JSON elsewhere (sqlite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DailyRecord(Base):
    """
    One row per calendar date.

    Raw columns (sleep/activity/biometrics/mindful_minutes) are frozen once
    the day is closed. Derived columns are rewritten by every same-day run.
    """
    __tablename__ = "daily_record"

    date = Column(Date, primary_key=True)
    record_kind = Column(Text, default="LIVE", nullable=False)  # LIVE | HISTORICAL
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # --- RAW ---
    sleep = Column(JSONType, nullable=True)
    activity = Column(JSONType, nullable=True)
    biometrics = Column(JSONType, nullable=True)
    mindful_minutes = Column(Float, nullable=True)
    raw_captured_at = Column(DateTime(timezone=True), nullable=True)

    # --- DERIVED: vitality ---
    vitality = Column(Integer, nullable=True)  # 1-100, null when unavailable
    vitality_availability = Column(Text, nullable=True)  # AVAILABLE | UNAVAILABLE
    vitality_unavailable_reason = Column(Text, nullable=True)
    vitality_confidence = Column(Text, nullable=True)  # HIGH | MEDIUM | LOW
    vitality_is_estimated = Column(Boolean, default=False, nullable=False)
    vitality_reason_code = Column(Text, nullable=True)
    vitality_detail = Column(JSONType, nullable=True)  # sub-scores, z-scores, evidence, sleep source

    # --- DERIVED: axes / state ---
    axes = Column(JSONType, nullable=True)
    trends = Column(JSONType, nullable=True)
    biometric_trends = Column(JSONType, nullable=True)
    current_state = Column(Text, nullable=True)
    active_lens = Column(Text, nullable=True)
    load_density = Column(Float, nullable=True)

    # --- DERIVED: alignment / progression ---
    alignment_status = Column(Text, nullable=True)  # ALIGNED | MISALIGNED | PENDING
    alignment_score = Column(Integer, nullable=True)  # % aligned over trailing 30 days
    consistency_streak = Column(Integer, nullable=True)
    rank = Column(Text, nullable=True)

    # --- DIRECTIVE ---
    directive = Column(JSONType, nullable=True)
    session = Column(JSONType, nullable=True)


class OperatorBaselines(Base):
    """Single-row rolling baselines (id is always 1)."""
    __tablename__ = "operator_baselines"

    id = Column(Integer, primary_key=True, default=1)
    window_days = Column(Integer, default=30, nullable=False)

    hrv_mean = Column(Float, nullable=True)
    hrv_stddev = Column(Float, nullable=True)
    hrv_sample_count = Column(Integer, nullable=True)
    hrv_coverage = Column(Float, nullable=True)

    rhr_mean = Column(Float, nullable=True)
    rhr_stddev = Column(Float, nullable=True)
    rhr_sample_count = Column(Integer, nullable=True)
    rhr_coverage = Column(Float, nullable=True)

    sleep_mean_seconds = Column(Float, nullable=True)
    sleep_stddev_seconds = Column(Float, nullable=True)
    sleep_sample_count = Column(Integer, nullable=True)
    sleep_coverage = Column(Float, nullable=True)
    sleep_user_entered = Column(Boolean, default=False, nullable=False)

    steps_mean = Column(Float, nullable=True)
    active_calories_mean = Column(Float, nullable=True)
    workout_minutes_mean = Column(Float, nullable=True)
    vo2max_mean = Column(Float, nullable=True)

    calculated_at = Column(DateTime(timezone=True), nullable=True)


class SmartCard(Base):
    """
    Eligibility-triggered operator prompt.

    id is "{date}:{type}" or "{date}:{type}:{sub_id}" (sub_id = workout id).
    ACTIVE -> DISMISSED | COMPLETED; DISMISSED -> ACTIVE only via
    type-specific resurfacing; COMPLETED is terminal.
    """
    __tablename__ = "smart_card"

    id = Column(Text, primary_key=True)
    date = Column(Date, nullable=False, index=True)
    type = Column(Text, nullable=False)
    sub_id = Column(Text, nullable=True)
    status = Column(Text, default="ACTIVE", nullable=False)
    priority = Column(Integer, nullable=False)
    dismiss_policy = Column(Text, nullable=False)
    payload = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    dismissed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_smart_card_type_status", "type", "status"),
    )


class OperatorGoals(Base):
    """Single-row operator goals (id is always 1)."""
    __tablename__ = "operator_goals"

    id = Column(Integer, primary_key=True, default=1)
    primary_goal = Column(Text, nullable=False)
    horizon = Column(Text, nullable=True)  # e.g. "12 weeks"
    constraints = Column(Text, nullable=True)  # e.g. "no running, bad knee"
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class WorkoutLog(Base):
    """Operator's log entry for a detected workout (one per workout id)."""
    __tablename__ = "workout_log"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    date = Column(Date, nullable=False, index=True)
    workout_id = Column(Text, nullable=False, unique=True)
    workout_type = Column(Text, nullable=True)
    rpe = Column(Integer, nullable=True)  # 1-10
    note = Column(Text, nullable=True)
    details = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class SystemFlag(Base):
    """Process-wide key/value flags (first launch, welcome completed)."""
    __tablename__ = "system_flag"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
