"""
Smart Card Engine

Smart cards are transient, typed prompts with a persisted lifecycle. Each
trigger below is an independent eligibility rule that returns NONE,
EXISTING (an already-active card, unchanged or resurfaced) or NEW:

    SLEEP_CONFIRM       90  sleep was not measured directly.
                            Dismissed -> quiet for 12h, then re-offered.
                            Completed -> gone for the day.
    WORKOUT_LOG         70  one card per unlogged workout, keyed by
                            workout id. Dismissal is event-based: only a
                            new workout id brings a new card.
    WORKOUT_INSIGHT     60  most recent workout ended within 3h.
                            LLM-only; failure means no card.
    WORKOUT_SUGGESTION  50  >= 3 logged workouts in the trailing 7 days,
                            state not RECOVERY_MODE / PHYSICAL_STRAIN,
                            at most one per day. Reads today's directive.
                            Trainer failure means no card.
    GOALS_INTAKE        40  no goals, goals older than 30 days, or manual
                            trigger (manual bypasses the completed-today
                            gate). Dismissed -> quiet for 24h.
    WELCOME             30  first launch only. LLM-only.

Selection: every eligible card, highest priority first (ties by id), top
two. The cap is deliberate admission control on interruptions.

Lifecycle: ACTIVE -> DISMISSED | COMPLETED. DISMISSED -> ACTIVE only
through the resurfacing rules above. COMPLETED is terminal.

Completion side effects:
    WORKOUT_LOG    -> WorkoutLog row
    SLEEP_CONFIRM  -> sleep baseline pinned to the confirmed duration
    GOALS_INTAKE   -> OperatorGoals saved
    WELCOME        -> welcome_completed flag (dismissing sets it too)
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from core.exceptions import InvalidCardTransitionError, NotFoundError, ValidationError
from models import DailyRecord, OperatorBaselines, SmartCard, WorkoutLog
from services.baselines import apply_sleep_confirmation
from services.companion import Companion
from services.directive_planner import Directive
from services.record_store import FLAG_WELCOME_COMPLETED, RecordStore, SINGLETON_ID
from services.state_engine import SystemState
from services.trainer import Trainer
from services.wearable_provider import ActivityData, SleepData, SleepSource, Workout

logger = logging.getLogger(__name__)


class CardType(str, Enum):
    SLEEP_CONFIRM = "SLEEP_CONFIRM"
    WORKOUT_LOG = "WORKOUT_LOG"
    WORKOUT_INSIGHT = "WORKOUT_INSIGHT"
    WORKOUT_SUGGESTION = "WORKOUT_SUGGESTION"
    GOALS_INTAKE = "GOALS_INTAKE"
    WELCOME = "WELCOME"


class CardStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISMISSED = "DISMISSED"
    COMPLETED = "COMPLETED"


class DismissPolicy(str, Enum):
    RESURFACE_DAILY = "RESURFACE_DAILY"
    RESURFACE_ON_EVENT = "RESURFACE_ON_EVENT"
    PERMANENT = "PERMANENT"


class TriggerOutcome(str, Enum):
    NONE = "NONE"
    EXISTING = "EXISTING"
    NEW = "NEW"


CARD_PRIORITY = {
    CardType.SLEEP_CONFIRM: 90,
    CardType.WORKOUT_LOG: 70,
    CardType.WORKOUT_INSIGHT: 60,
    CardType.WORKOUT_SUGGESTION: 50,
    CardType.GOALS_INTAKE: 40,
    CardType.WELCOME: 30,
}

CARD_DISMISS_POLICY = {
    CardType.SLEEP_CONFIRM: DismissPolicy.RESURFACE_DAILY,
    CardType.WORKOUT_LOG: DismissPolicy.RESURFACE_ON_EVENT,
    CardType.WORKOUT_INSIGHT: DismissPolicy.PERMANENT,
    CardType.WORKOUT_SUGGESTION: DismissPolicy.PERMANENT,
    CardType.GOALS_INTAKE: DismissPolicy.RESURFACE_DAILY,
    CardType.WELCOME: DismissPolicy.PERMANENT,
}

MAX_ACTIVE_CARDS = 2
SLEEP_RESURFACE_AFTER = timedelta(hours=12)
GOALS_RESURFACE_AFTER = timedelta(hours=24)
GOALS_STALE_AFTER = timedelta(days=30)
INSIGHT_WINDOW = timedelta(hours=3)
SUGGESTION_MIN_LOGS = 3
SUGGESTION_WINDOW_DAYS = 7
SUGGESTION_BLOCKED_STATES = {SystemState.RECOVERY_MODE.value, SystemState.PHYSICAL_STRAIN.value}
DEFAULT_SLEEP_SECONDS = 6 * 3600
MAX_SLEEP_SECONDS = 24 * 3600


def card_id(day: date, card_type: CardType, sub_id: Optional[str] = None) -> str:
    base = f"{day.isoformat()}:{card_type.value}"
    return f"{base}:{sub_id}" if sub_id else base


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass
class TriggerResult:
    outcome: TriggerOutcome = TriggerOutcome.NONE
    cards: List[SmartCard] = field(default_factory=list)


@dataclass
class CardContext:
    today: date
    now: datetime
    record: Optional[DailyRecord] = None
    manual_goals: bool = False


def select_top_cards(cards: List[SmartCard], limit: int = MAX_ACTIVE_CARDS) -> List[SmartCard]:
    return sorted(cards, key=lambda c: (-c.priority, c.id))[:limit]


class SmartCardEngine:
    def __init__(
        self,
        store: RecordStore,
        trainer: Optional[Trainer] = None,
        companion: Optional[Companion] = None,
    ):
        self.store = store
        self.trainer = trainer or Trainer()
        self.companion = companion or Companion()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def compute_active_cards(self, ctx: CardContext) -> List[SmartCard]:
        results = [
            self.evaluate_sleep_confirm(ctx),
            self.evaluate_workout_log(ctx),
            await self.evaluate_workout_insight(ctx),
            await self.evaluate_workout_suggestion(ctx),
            self.evaluate_goals_intake(ctx),
            await self.evaluate_welcome(ctx),
        ]
        eligible = [card for r in results if r.outcome != TriggerOutcome.NONE for card in r.cards]
        selected = select_top_cards(eligible)
        logger.info(
            f"Smart cards: {len(eligible)} eligible, showing {[c.id for c in selected]}"
        )
        return selected

    async def trigger_goals_intake(self, ctx: CardContext) -> Optional[SmartCard]:
        """Manual trigger: offer goals intake even if completed earlier today."""
        ctx.manual_goals = True
        result = self.evaluate_goals_intake(ctx)
        return result.cards[0] if result.cards else None

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def _new_card(
        self,
        ctx: CardContext,
        card_type: CardType,
        payload: Dict[str, Any],
        sub_id: Optional[str] = None,
    ) -> SmartCard:
        card = SmartCard(
            id=card_id(ctx.today, card_type, sub_id),
            date=ctx.today,
            type=card_type.value,
            sub_id=sub_id,
            status=CardStatus.ACTIVE.value,
            priority=CARD_PRIORITY[card_type],
            dismiss_policy=CARD_DISMISS_POLICY[card_type].value,
            payload=payload,
            created_at=ctx.now,
        )
        return self.store.save_card(card)

    def _resurface(self, card: SmartCard) -> SmartCard:
        card.status = CardStatus.ACTIVE.value
        card.dismissed_at = None
        logger.info(f"Card {card.id} resurfaced")
        return self.store.save_card(card)

    def evaluate_sleep_confirm(self, ctx: CardContext) -> TriggerResult:
        record = ctx.record
        if record is None:
            return TriggerResult()
        sleep = SleepData.from_dict(record.sleep)
        if sleep.total_duration_seconds > 0 and sleep.source == SleepSource.MEASURED:
            return TriggerResult()

        existing = self.store.get_card(card_id(ctx.today, CardType.SLEEP_CONFIRM))
        if existing is None:
            detail = record.vitality_detail or {}
            baselines = self.store.get_baselines()
            estimate = detail.get("sleep_seconds")
            if not estimate:
                estimate = (baselines.sleep_seconds.mean if baselines else 0) or DEFAULT_SLEEP_SECONDS
            source = detail.get("sleep_source") or (
                SleepSource.ESTIMATED_7D.value if baselines and baselines.sleep_seconds.mean else SleepSource.DEFAULT_6H.value
            )
            card = self._new_card(
                ctx,
                CardType.SLEEP_CONFIRM,
                {"estimated_sleep_seconds": estimate, "source": source},
            )
            return TriggerResult(TriggerOutcome.NEW, [card])

        if existing.status == CardStatus.COMPLETED.value:
            return TriggerResult()
        if existing.status == CardStatus.DISMISSED.value:
            dismissed_at = _as_utc(existing.dismissed_at)
            if dismissed_at is not None and ctx.now - dismissed_at < SLEEP_RESURFACE_AFTER:
                return TriggerResult()
            return TriggerResult(TriggerOutcome.EXISTING, [self._resurface(existing)])
        return TriggerResult(TriggerOutcome.EXISTING, [existing])

    def evaluate_workout_log(self, ctx: CardContext) -> TriggerResult:
        if ctx.record is None:
            return TriggerResult()
        activity = ActivityData.from_dict(ctx.record.activity)

        outcome = TriggerOutcome.NONE
        cards: List[SmartCard] = []
        for workout in activity.workouts:
            if self.store.get_workout_log(workout.id) is not None:
                continue
            prior = self.store.get_cards_by_sub_id(CardType.WORKOUT_LOG.value, workout.id)
            if prior:
                active = [c for c in prior if c.status == CardStatus.ACTIVE.value]
                if active:
                    cards.append(active[0])
                    if outcome == TriggerOutcome.NONE:
                        outcome = TriggerOutcome.EXISTING
                continue
            cards.append(self._new_card(
                ctx,
                CardType.WORKOUT_LOG,
                {
                    "workout_id": workout.id,
                    "workout_type": workout.type,
                    "duration_minutes": round(workout.duration_minutes),
                    "active_calories": round(workout.active_calories),
                    "start_date": workout.start_date.isoformat() if workout.start_date else None,
                },
                sub_id=workout.id,
            ))
            outcome = TriggerOutcome.NEW
        return TriggerResult(outcome, cards)

    def _recent_workout(self, ctx: CardContext) -> Optional[Workout]:
        if ctx.record is None:
            return None
        finished = []
        for workout in ActivityData.from_dict(ctx.record.activity).workouts:
            end = _as_utc(workout.end_date)
            if end is not None and end <= ctx.now and ctx.now - end <= INSIGHT_WINDOW:
                finished.append((end, workout))
        if not finished:
            return None
        return max(finished, key=lambda pair: pair[0])[1]

    async def evaluate_workout_insight(self, ctx: CardContext) -> TriggerResult:
        workout = self._recent_workout(ctx)
        if workout is None:
            return TriggerResult()

        prior = self.store.get_cards_by_sub_id(CardType.WORKOUT_INSIGHT.value, workout.id)
        if prior:
            active = [c for c in prior if c.status == CardStatus.ACTIVE.value]
            return TriggerResult(TriggerOutcome.EXISTING, active[:1]) if active else TriggerResult()

        insight = await self.companion.workout_insight(
            workout,
            vitality=ctx.record.vitality,
            state=ctx.record.current_state,
        )
        if insight is None:
            return TriggerResult()
        card = self._new_card(ctx, CardType.WORKOUT_INSIGHT, insight.to_dict(), sub_id=workout.id)
        return TriggerResult(TriggerOutcome.NEW, [card])

    async def evaluate_workout_suggestion(self, ctx: CardContext) -> TriggerResult:
        record = ctx.record
        if record is None or not record.directive:
            return TriggerResult()
        if record.current_state in SUGGESTION_BLOCKED_STATES:
            return TriggerResult()

        existing = self.store.get_card(card_id(ctx.today, CardType.WORKOUT_SUGGESTION))
        if existing is not None:
            if existing.status == CardStatus.ACTIVE.value:
                return TriggerResult(TriggerOutcome.EXISTING, [existing])
            return TriggerResult()

        since = ctx.today - timedelta(days=SUGGESTION_WINDOW_DAYS - 1)
        logs = self.store.get_workout_logs_since(since)
        if len(logs) < SUGGESTION_MIN_LOGS:
            return TriggerResult()

        directive = Directive.from_dict(record.directive)
        suggestion = await self.trainer.suggest(
            directive,
            state=record.current_state,
            vitality=record.vitality,
            recent_notes=[log.note or log.workout_type or "" for log in logs],
        )
        if suggestion is None:
            return TriggerResult()

        payload = suggestion.to_dict()
        payload["directive"] = {
            "category": directive.category.value,
            "stimulus": directive.stimulus.value,
            "constraints": directive.constraints.to_dict(),
        }
        card = self._new_card(ctx, CardType.WORKOUT_SUGGESTION, payload)
        return TriggerResult(TriggerOutcome.NEW, [card])

    def _goals_are_stale(self, ctx: CardContext) -> bool:
        goals = self.store.get_goals()
        if goals is None or not goals.primary_goal:
            return True
        updated_at = _as_utc(goals.updated_at)
        return updated_at is None or ctx.now - updated_at > GOALS_STALE_AFTER

    def evaluate_goals_intake(self, ctx: CardContext) -> TriggerResult:
        manual = ctx.manual_goals
        today_cards = self.store.get_cards_for_date(ctx.today, CardType.GOALS_INTAKE.value)
        active = [c for c in today_cards if c.status == CardStatus.ACTIVE.value]
        if active:
            return TriggerResult(TriggerOutcome.EXISTING, active[:1])

        if not manual and not self._goals_are_stale(ctx):
            return TriggerResult()

        completed_today = any(c.status == CardStatus.COMPLETED.value for c in today_cards)
        if completed_today and not manual:
            return TriggerResult()

        dismissed = [c for c in today_cards if c.status == CardStatus.DISMISSED.value]
        if dismissed and manual:
            return TriggerResult(TriggerOutcome.EXISTING, [self._resurface(dismissed[0])])

        latest = self.store.get_latest_card(CardType.GOALS_INTAKE.value)
        if latest is not None and latest.status == CardStatus.DISMISSED.value and not manual:
            dismissed_at = _as_utc(latest.dismissed_at)
            if dismissed_at is not None and ctx.now - dismissed_at < GOALS_RESURFACE_AFTER:
                return TriggerResult()

        sub_id = f"manual-{len(today_cards)}" if today_cards else None
        goals = self.store.get_goals()
        payload = {
            "reason": "MANUAL" if manual else ("MISSING" if goals is None else "STALE"),
            "current_goal": goals.primary_goal if goals is not None else None,
        }
        card = self._new_card(ctx, CardType.GOALS_INTAKE, payload, sub_id=sub_id)
        return TriggerResult(TriggerOutcome.NEW, [card])

    async def evaluate_welcome(self, ctx: CardContext) -> TriggerResult:
        if self.store.is_flag_set(FLAG_WELCOME_COMPLETED):
            return TriggerResult()
        latest = self.store.get_latest_card(CardType.WELCOME.value)
        if latest is not None:
            if latest.status == CardStatus.ACTIVE.value:
                return TriggerResult(TriggerOutcome.EXISTING, [latest])
            return TriggerResult()

        record = ctx.record
        message = await self.companion.welcome(
            vitality=record.vitality if record is not None else None,
            confidence=record.vitality_confidence if record is not None else None,
            state=record.current_state if record is not None else None,
        )
        if message is None:
            return TriggerResult()
        card = self._new_card(ctx, CardType.WELCOME, message.to_dict())
        return TriggerResult(TriggerOutcome.NEW, [card])

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    def _load_for_transition(self, card_id_: str, requested: CardStatus) -> SmartCard:
        card = self.store.get_card(card_id_)
        if card is None:
            raise NotFoundError("SmartCard", card_id_)
        if card.status == CardStatus.COMPLETED.value:
            raise InvalidCardTransitionError(card.id, card.status, requested.value)
        return card

    def complete_card(self, card_id_: str, payload: Optional[Dict[str, Any]] = None, now: Optional[datetime] = None) -> SmartCard:
        payload = payload or {}
        now = now or datetime.now(timezone.utc)
        card = self._load_for_transition(card_id_, CardStatus.COMPLETED)
        if card.status != CardStatus.ACTIVE.value:
            raise InvalidCardTransitionError(card.id, card.status, CardStatus.COMPLETED.value)

        card_type = CardType(card.type)
        if card_type == CardType.WORKOUT_LOG:
            self._complete_workout_log(card, payload)
        elif card_type == CardType.SLEEP_CONFIRM:
            self._complete_sleep_confirm(card, payload)
        elif card_type == CardType.GOALS_INTAKE:
            self._complete_goals_intake(payload)
        elif card_type == CardType.WELCOME:
            self.store.set_flag(FLAG_WELCOME_COMPLETED)

        card.status = CardStatus.COMPLETED.value
        card.completed_at = now
        card.payload = {**(card.payload or {}), "response": payload}
        logger.info(f"Card {card.id} completed")
        return self.store.save_card(card)

    def dismiss_card(self, card_id_: str, now: Optional[datetime] = None) -> SmartCard:
        now = now or datetime.now(timezone.utc)
        card = self._load_for_transition(card_id_, CardStatus.DISMISSED)
        if card.status == CardStatus.DISMISSED.value:
            return card

        card.status = CardStatus.DISMISSED.value
        card.dismissed_at = now
        if card.type == CardType.WELCOME.value:
            self.store.set_flag(FLAG_WELCOME_COMPLETED)
        logger.info(f"Card {card.id} dismissed")
        return self.store.save_card(card)

    def _complete_workout_log(self, card: SmartCard, payload: Dict[str, Any]) -> None:
        rpe = payload.get("rpe")
        if rpe is not None and not (1 <= int(rpe) <= 10):
            raise ValidationError("rpe must be between 1 and 10", field="rpe")
        card_payload = card.payload or {}
        self.store.save_workout_log(WorkoutLog(
            date=card.date,
            workout_id=card.sub_id or card_payload.get("workout_id"),
            workout_type=payload.get("workout_type") or card_payload.get("workout_type"),
            rpe=int(rpe) if rpe is not None else None,
            note=payload.get("note"),
            details=payload,
        ))

    def _complete_sleep_confirm(self, card: SmartCard, payload: Dict[str, Any]) -> None:
        seconds = payload.get("sleep_seconds")
        if seconds is None and payload.get("sleep_hours") is not None:
            seconds = float(payload["sleep_hours"]) * 3600
        if seconds is None:
            seconds = (card.payload or {}).get("estimated_sleep_seconds")
        if seconds is None or not (0 < float(seconds) <= MAX_SLEEP_SECONDS):
            raise ValidationError("sleep_seconds must be between 0 and 86400", field="sleep_seconds")

        row = self.store.get_baselines_row() or OperatorBaselines(id=SINGLETON_ID)
        self.store.save_baselines_row(apply_sleep_confirmation(row, float(seconds)))

    def _complete_goals_intake(self, payload: Dict[str, Any]) -> None:
        primary_goal = (payload.get("primary_goal") or "").strip()
        if not primary_goal:
            raise ValidationError("primary_goal is required", field="primary_goal")
        self.store.save_goals(
            primary_goal=primary_goal,
            horizon=payload.get("horizon"),
            constraints=payload.get("constraints"),
        )
