"""
Dawn Protocol

The daily pipeline. Runs once at dawn (Celery beat) or on an explicit
refresh (POST /v1/dawn/run):

    1. run-level cache     today's record already has vitality > 0, a
                           directive and generated text -> reuse it unless
                           forced
    2. permissions         provider refusal is terminal
    3. baselines           cold start or stale row -> 30-day historical
                           fetch, wholesale recomputation, backfill of
                           closed days as HISTORICAL records.
                           Warm start -> create yesterday's record if it
                           is missing so late activity is captured.
    4. today               biometrics / activity / sleep / mindful minutes
                           fetched concurrently
    5. derive              vitality -> axes -> state + lens -> directive
                           -> content (regeneration policy) -> session
                           -> alignment -> progression
    6. persist + cards     record saved, smart cards evaluated, one commit

Terminal failures (PermissionDeniedError, WearableProviderError,
StoreUnavailableError) roll the session back: nothing from the failed run
is persisted and the previous record stays as it was. Generation failures
are not terminal; the content generator falls back to templates.

Raw fields of a closed day are never rewritten. Today's raw snapshot is
replaced by each refresh because provider totals are cumulative.
"""

import logging
import zoneinfo
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.exceptions import DawnProtocolError, PermissionDeniedError, StoreUnavailableError
from models import DailyRecord, SmartCard
from services.alignment_tracker import check_daily_alignment
from services.axes_calculator import Axes, calculate_axes, physiological_load
from services.baselines import BASELINE_WINDOW_DAYS, Baselines, compute_baselines, needs_recalculation
from services.content_generator import ContentGenerator
from services.content_regeneration import DirectiveSnapshot, RegenerationDecision, decide_regeneration
from services.directive_planner import plan_directive
from services.progression import calculate_progression
from services.record_store import FLAG_FIRST_LAUNCH_COMPLETE, RecordStore
from services.session_builder import build_session
from services.smart_card_engine import CardContext, SmartCardEngine
from services.state_engine import LensContext, determine_archetype_lens, determine_system_state
from services.vitality_scorer import VitalityResult, VitalityScorer
from services.wearable_provider import HistoricalDay, WearableProvider

logger = logging.getLogger(__name__)


LOAD_DENSITY_DAYS = 3
TREND_Z_THRESHOLD = 0.5


@dataclass
class DawnResult:
    record: DailyRecord
    cards: List[SmartCard] = field(default_factory=list)
    cached: bool = False
    content_decision: Optional[str] = None
    backfilled_days: int = 0


def operator_now() -> datetime:
    return datetime.now(zoneinfo.ZoneInfo(settings.OPERATOR_TIMEZONE))


def is_cache_valid(record: Optional[DailyRecord]) -> bool:
    if record is None or not record.vitality or record.vitality <= 0:
        return False
    directive = record.directive or {}
    content = directive.get("content") or {}
    return bool(directive.get("category") and content.get("session_focus"))


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _biometric_trends(vitality: VitalityResult, baselines: Optional[Baselines], hrv: float, rhr: float) -> Dict[str, Any]:
    def trend(z: Optional[float]) -> str:
        if z is None:
            return "STABLE"
        if z > TREND_Z_THRESHOLD:
            return "RISING"
        if z < -TREND_Z_THRESHOLD:
            return "FALLING"
        return "STABLE"

    z = vitality.z_scores or {}
    z_rhr = z.get("rhr")
    return {
        "hrv": {
            "baseline": round(baselines.hrv.mean, 1) if baselines else None,
            "today": hrv or None,
            "z": z.get("hrv"),
            "trend": trend(z.get("hrv")),
        },
        "rhr": {
            "baseline": round(baselines.resting_heart_rate.mean, 1) if baselines else None,
            "today": rhr or None,
            # stored z is inverted (lower is better); the trend follows the raw reading
            "z": z_rhr,
            "trend": trend(-z_rhr if z_rhr is not None else None),
        },
    }


class DawnProtocol:
    def __init__(
        self,
        store: RecordStore,
        provider: WearableProvider,
        content_generator: Optional[ContentGenerator] = None,
        card_engine: Optional[SmartCardEngine] = None,
        scorer: Optional[VitalityScorer] = None,
    ):
        self.store = store
        self.provider = provider
        self.content_generator = content_generator or ContentGenerator()
        self.card_engine = card_engine or SmartCardEngine(store)
        self.scorer = scorer or VitalityScorer()

    async def run(self, force: bool = False, now: Optional[datetime] = None) -> DawnResult:
        now = now or operator_now()
        today = now.date()
        try:
            return await self._run(today, now, force)
        except DawnProtocolError as e:
            self.store.rollback()
            logger.error(f"Dawn run for {today} aborted: {e.message}")
            raise
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error(f"Dawn run for {today} aborted on database error: {e}")
            raise StoreUnavailableError(f"Database error during dawn run: {e}") from e

    async def _run(self, today: date, now: datetime, force: bool) -> DawnResult:
        existing = self.store.get_record(today)
        if not force and is_cache_valid(existing):
            logger.info(f"Dawn cache hit for {today}; skipping recomputation")
            cards = await self.card_engine.compute_active_cards(CardContext(today=today, now=now, record=existing))
            self.store.commit()
            return DawnResult(record=existing, cards=cards, cached=True)

        if not await self.provider.request_permissions():
            raise PermissionDeniedError("Wearable provider denied access to health data")

        backfilled = 0
        if needs_recalculation(self.store.get_baselines_row()):
            backfilled = await self._cold_start(today)
        else:
            await self._sync_yesterday(today)
        baselines = self.store.get_baselines()

        day = await self.provider.fetch_day(today)
        location_changed = await self.provider.detect_location_change(today)

        record = existing or DailyRecord(date=today, record_kind="LIVE", created_at=now)
        self._apply_raw(record, day, now)

        vitality = self.scorer.calculate(day.biometrics, day.sleep, baselines)
        logger.info(
            f"Vitality {today}: {vitality.availability.value} "
            f"score={vitality.vitality} confidence={vitality.confidence.value}"
        )

        yesterday = self.store.get_record(today - timedelta(days=1))
        previous_axes = Axes.from_dict(yesterday.axes) if yesterday is not None else None
        axes_result = calculate_axes(
            day.activity,
            day.biometrics,
            day.sleep,
            mindful_minutes=day.mindful_minutes,
            baselines=baselines,
            previous_axes=previous_axes,
        )
        axes = axes_result.axes
        state = determine_system_state(axes)
        lens = determine_archetype_lens(axes, LensContext(
            sleep_hours=day.sleep.total_duration_seconds / 3600,
            steps=day.activity.steps,
            workout_types=tuple(w.type for w in day.activity.workouts),
            location_changed=location_changed,
        ))
        logger.info(f"State {today}: {state.value} / {lens.value} axes={axes.to_dict()}")

        goals = self.store.get_goals()
        plan = plan_directive(state, axes_result.trends.recovery)
        directive_data = plan.to_dict()

        decision = await self._apply_content(record, directive_data, plan, vitality, lens.value, goals, now)

        content = directive_data.get("content")
        session = build_session(plan.directive, lens, today, content)
        alignment = check_daily_alignment(day.activity, plan.directive)

        history = self.store.get_history(today - timedelta(days=1), days=BASELINE_WINDOW_DAYS - 1)
        progression = calculate_progression([alignment.value] + [r.alignment_status for r in history])

        loads = [physiological_load(axes)]
        for past in history[:LOAD_DENSITY_DAYS - 1]:
            past_axes = Axes.from_dict(past.axes)
            if past_axes is not None:
                loads.append(physiological_load(past_axes))

        record.vitality = vitality.vitality
        record.vitality_availability = vitality.availability.value
        record.vitality_unavailable_reason = vitality.unavailable_reason.value if vitality.unavailable_reason else None
        record.vitality_confidence = vitality.confidence.value if vitality.is_available else None
        record.vitality_is_estimated = vitality.is_estimated
        record.vitality_reason_code = vitality.reason_code.value
        record.vitality_detail = vitality.to_detail() if vitality.is_available else {"evidence": vitality.evidence}
        record.axes = axes.to_dict()
        record.trends = axes_result.trends.to_dict()
        record.biometric_trends = _biometric_trends(
            vitality, baselines, day.biometrics.hrv, day.biometrics.resting_heart_rate
        )
        record.current_state = state.value
        record.active_lens = lens.value
        record.load_density = round(sum(loads), 1)
        record.alignment_status = alignment.value
        record.alignment_score = progression.alignment_score
        record.consistency_streak = progression.consistency_streak
        record.rank = progression.rank.value
        record.directive = directive_data
        record.session = session.to_dict()
        self.store.save_record(record)

        if not self.store.is_flag_set(FLAG_FIRST_LAUNCH_COMPLETE):
            self.store.set_flag(FLAG_FIRST_LAUNCH_COMPLETE)

        cards = await self.card_engine.compute_active_cards(CardContext(today=today, now=now, record=record))
        self.store.commit()
        logger.info(f"Dawn run for {today} complete: {len(cards)} cards")
        return DawnResult(
            record=record,
            cards=cards,
            content_decision=decision.value,
            backfilled_days=backfilled,
        )

    # ------------------------------------------------------------------
    # Baselines / history
    # ------------------------------------------------------------------

    async def _cold_start(self, today: date) -> int:
        logger.info("Baselines missing or stale; running historical backfill")
        history = await self.provider.fetch_historical_data(BASELINE_WINDOW_DAYS, end_date=today)
        baselines = compute_baselines(history)
        self.store.save_baselines(baselines)

        existing = self.store.get_existing_dates([d.date for d in history.per_day])
        written = 0
        previous_axes: Optional[Axes] = None
        for day in history.per_day:
            if day.date in existing or not day.has_data:
                continue
            record = self._historical_record(day, baselines, previous_axes)
            previous_axes = Axes.from_dict(record.axes)
            self.store.save_record(record)
            written += 1
        logger.info(f"Backfill wrote {written} historical days")
        return written

    async def _sync_yesterday(self, today: date) -> None:
        yesterday = today - timedelta(days=1)
        if self.store.get_record(yesterday) is not None:
            return
        day = await self.provider.fetch_day(yesterday)
        if not day.has_data:
            return
        before = self.store.get_record(yesterday - timedelta(days=1))
        previous_axes = Axes.from_dict(before.axes) if before is not None else None
        self.store.save_record(self._historical_record(day, self.store.get_baselines(), previous_axes))
        logger.info(f"Synced missing record for {yesterday}")

    def _historical_record(
        self,
        day: HistoricalDay,
        baselines: Optional[Baselines],
        previous_axes: Optional[Axes],
    ) -> DailyRecord:
        record = DailyRecord(date=day.date, record_kind="HISTORICAL")
        self._apply_raw(record, day, datetime.now(timezone.utc))
        vitality = self.scorer.calculate(day.biometrics, day.sleep, baselines)
        axes_result = calculate_axes(
            day.activity, day.biometrics, day.sleep,
            mindful_minutes=day.mindful_minutes,
            baselines=baselines,
            previous_axes=previous_axes,
        )
        record.vitality = vitality.vitality
        record.vitality_availability = vitality.availability.value
        record.vitality_unavailable_reason = vitality.unavailable_reason.value if vitality.unavailable_reason else None
        record.vitality_confidence = vitality.confidence.value if vitality.is_available else None
        record.vitality_is_estimated = vitality.is_estimated
        record.vitality_reason_code = vitality.reason_code.value
        record.axes = axes_result.axes.to_dict()
        record.trends = axes_result.trends.to_dict()
        record.current_state = determine_system_state(axes_result.axes).value
        return record

    @staticmethod
    def _apply_raw(record: DailyRecord, day: HistoricalDay, captured_at: datetime) -> None:
        record.sleep = day.sleep.to_dict()
        record.activity = day.activity.to_dict()
        record.biometrics = day.biometrics.to_dict()
        record.mindful_minutes = day.mindful_minutes
        record.raw_captured_at = captured_at

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def _apply_content(
        self,
        record: DailyRecord,
        directive_data: Dict[str, Any],
        plan,
        vitality: VitalityResult,
        lens: str,
        goals,
        now: datetime,
    ) -> RegenerationDecision:
        previous = record.directive or {}
        provenance = dict(previous.get("provenance") or {})
        previous_content = previous.get("content")
        current_snapshot = DirectiveSnapshot.from_directive(plan.directive)

        verdict = decide_regeneration(
            current=current_snapshot,
            previous=DirectiveSnapshot.from_dict(provenance.get("snapshot")),
            has_content=bool(previous_content),
            last_generated_at=_parse_ts(provenance.get("last_generated_at")),
            generations_today=int(provenance.get("generation_count") or 0),
            now=now,
        )
        logger.info(f"Content decision for {record.date}: {verdict.decision.value}")

        if verdict.should_regenerate:
            content = await self.content_generator.generate(
                plan.directive,
                state=plan.state.value,
                lens=lens,
                evidence=vitality.evidence,
                goal=goals.primary_goal if goals is not None else None,
            )
            directive_data["content"] = content.to_dict()
            provenance.update({
                "snapshot": current_snapshot.to_dict(),
                "last_generated_at": now.isoformat(),
                "generation_count": int(provenance.get("generation_count") or 0) + 1,
                "content_source": content.source,
                "stale": False,
            })
        else:
            directive_data["content"] = previous_content
            provenance["stale"] = verdict.decision != RegenerationDecision.UNCHANGED

        provenance["decision"] = verdict.decision.value
        provenance["evidence"] = list(vitality.evidence)
        directive_data["provenance"] = provenance
        return verdict.decision
