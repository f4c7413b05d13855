"""
Record Store

The persistence contract the engines are written against. Thin wrapper
over a SQLAlchemy session:

    - get of a missing key returns None, never raises
    - save is last-write-wins (flush only; the caller owns commit/rollback)
    - any SQLAlchemyError surfaces as StoreUnavailableError, which is
      terminal for a dawn run
"""

import functools
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import StoreUnavailableError
from models import DailyRecord, OperatorBaselines, OperatorGoals, SmartCard, SystemFlag, WorkoutLog
from services.baselines import Baselines

logger = logging.getLogger(__name__)


HISTORY_DAYS = 30
SINGLETON_ID = 1

FLAG_FIRST_LAUNCH_COMPLETE = "first_launch_complete"
FLAG_WELCOME_COMPLETED = "welcome_completed"


def _guard(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"Store operation {method.__name__} failed: {e}")
            raise StoreUnavailableError(f"Store operation {method.__name__} failed: {e}") from e
    return wrapper


class RecordStore:
    def __init__(self, db: Session):
        self.db = db

    # --- transaction ---

    @_guard
    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback failed: {e}")

    # --- daily records ---

    @_guard
    def get_record(self, day: date) -> Optional[DailyRecord]:
        return self.db.get(DailyRecord, day)

    @_guard
    def save_record(self, record: DailyRecord) -> DailyRecord:
        record.updated_at = datetime.now(timezone.utc)
        self.db.add(record)
        self.db.flush()
        return record

    @_guard
    def get_history(self, end_date: date, days: int = HISTORY_DAYS) -> List[DailyRecord]:
        """Records in (end_date - days, end_date], newest first."""
        start = end_date - timedelta(days=days - 1)
        return (
            self.db.query(DailyRecord)
            .filter(DailyRecord.date >= start, DailyRecord.date <= end_date)
            .order_by(DailyRecord.date.desc())
            .all()
        )

    @_guard
    def get_existing_dates(self, dates: List[date]) -> set:
        if not dates:
            return set()
        rows = self.db.query(DailyRecord.date).filter(DailyRecord.date.in_(dates)).all()
        return {r[0] for r in rows}

    # --- baselines ---

    @_guard
    def get_baselines_row(self) -> Optional[OperatorBaselines]:
        return self.db.get(OperatorBaselines, SINGLETON_ID)

    def get_baselines(self) -> Optional[Baselines]:
        row = self.get_baselines_row()
        return Baselines.from_model(row) if row is not None else None

    @_guard
    def save_baselines(self, baselines: Baselines) -> OperatorBaselines:
        row = self.db.get(OperatorBaselines, SINGLETON_ID) or OperatorBaselines(id=SINGLETON_ID)
        return self.save_baselines_row(baselines.apply_to(row))

    @_guard
    def save_baselines_row(self, row: OperatorBaselines) -> OperatorBaselines:
        self.db.add(row)
        self.db.flush()
        return row

    # --- smart cards ---

    @_guard
    def get_card(self, card_id: str) -> Optional[SmartCard]:
        return self.db.get(SmartCard, card_id)

    @_guard
    def get_cards_for_date(self, day: date, card_type: Optional[str] = None) -> List[SmartCard]:
        query = self.db.query(SmartCard).filter(SmartCard.date == day)
        if card_type:
            query = query.filter(SmartCard.type == card_type)
        return query.order_by(SmartCard.priority.desc(), SmartCard.id).all()

    @_guard
    def get_cards_by_sub_id(self, card_type: str, sub_id: str) -> List[SmartCard]:
        return (
            self.db.query(SmartCard)
            .filter(SmartCard.type == card_type, SmartCard.sub_id == sub_id)
            .all()
        )

    @_guard
    def get_latest_card(self, card_type: str) -> Optional[SmartCard]:
        return (
            self.db.query(SmartCard)
            .filter(SmartCard.type == card_type)
            .order_by(SmartCard.created_at.desc())
            .first()
        )

    @_guard
    def save_card(self, card: SmartCard) -> SmartCard:
        card.updated_at = datetime.now(timezone.utc)
        self.db.add(card)
        self.db.flush()
        return card

    # --- goals ---

    @_guard
    def get_goals(self) -> Optional[OperatorGoals]:
        return self.db.get(OperatorGoals, SINGLETON_ID)

    @_guard
    def save_goals(
        self,
        primary_goal: str,
        horizon: Optional[str] = None,
        constraints: Optional[str] = None,
    ) -> OperatorGoals:
        goals = self.db.get(OperatorGoals, SINGLETON_ID) or OperatorGoals(id=SINGLETON_ID)
        goals.primary_goal = primary_goal
        goals.horizon = horizon
        goals.constraints = constraints
        goals.updated_at = datetime.now(timezone.utc)
        self.db.add(goals)
        self.db.flush()
        return goals

    # --- workout logs ---

    @_guard
    def get_workout_log(self, workout_id: str) -> Optional[WorkoutLog]:
        return self.db.query(WorkoutLog).filter(WorkoutLog.workout_id == workout_id).first()

    @_guard
    def get_workout_logs_since(self, since: date) -> List[WorkoutLog]:
        return (
            self.db.query(WorkoutLog)
            .filter(WorkoutLog.date >= since)
            .order_by(WorkoutLog.created_at.desc())
            .all()
        )

    @_guard
    def save_workout_log(self, log: WorkoutLog) -> WorkoutLog:
        existing = self.get_workout_log(log.workout_id)
        if existing is not None:
            existing.note = log.note
            existing.rpe = log.rpe
            existing.details = log.details
            existing.workout_type = log.workout_type or existing.workout_type
            log = existing
        self.db.add(log)
        self.db.flush()
        return log

    # --- flags ---

    @_guard
    def get_flag(self, key: str) -> Optional[str]:
        flag = self.db.get(SystemFlag, key)
        return flag.value if flag is not None else None

    @_guard
    def set_flag(self, key: str, value: str = "true") -> None:
        flag = self.db.get(SystemFlag, key) or SystemFlag(key=key)
        flag.value = value
        self.db.add(flag)
        self.db.flush()

    def is_flag_set(self, key: str) -> bool:
        return self.get_flag(key) == "true"

    # --- reset ---

    @_guard
    def reset(self) -> Dict[str, int]:
        """Explicit operator reset: drop every record, card, log, goal, flag and baseline."""
        counts = {}
        for model in (SmartCard, WorkoutLog, DailyRecord, OperatorGoals, OperatorBaselines, SystemFlag):
            counts[model.__tablename__] = self.db.query(model).delete(synchronize_session=False)
        self.db.flush()
        self.db.expunge_all()
        logger.warning(f"Store reset: {counts}")
        return counts
