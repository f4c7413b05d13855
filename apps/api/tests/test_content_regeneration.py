"""
Content Regeneration Policy Tests

Snapshot comparison, critical safety transitions, cooldown and daily cap.
"""

import sys
import os
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.content_regeneration import (
    MAX_GENERATIONS_PER_DAY,
    DirectiveSnapshot,
    RegenerationDecision,
    decide_regeneration,
    is_critical_safety_transition,
)
from services.directive_planner import directive_for_state
from services.state_engine import SystemState

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def snap(state, equipment=None):
    return DirectiveSnapshot.from_directive(directive_for_state(state, equipment))


def decide(current, previous, last_generated=None, count=1, has_content=True):
    return decide_regeneration(
        current=current,
        previous=previous,
        has_content=has_content,
        last_generated_at=last_generated,
        generations_today=count,
        now=NOW,
    ).decision


class TestSnapshot:
    def test_round_trip_through_dict(self):
        s = snap(SystemState.HIGH_STRAIN, ["rower"])
        assert DirectiveSnapshot.from_dict(s.to_dict()) == s

    def test_equipment_order_does_not_matter(self):
        assert snap(SystemState.READY_FOR_LOAD, ["b", "a"]) == snap(SystemState.READY_FOR_LOAD, ["a", "b"])

    def test_missing_dict_is_none(self):
        assert DirectiveSnapshot.from_dict(None) is None


class TestDecision:
    def test_initial_without_previous(self):
        assert decide(snap(SystemState.READY_FOR_LOAD), None) == RegenerationDecision.INITIAL

    def test_initial_without_content(self):
        s = snap(SystemState.READY_FOR_LOAD)
        assert decide(s, s, has_content=False) == RegenerationDecision.INITIAL

    def test_identical_snapshot_never_regenerates(self):
        s = snap(SystemState.BUILDING_CAPACITY)
        verdict = decide_regeneration(s, s, True, NOW - timedelta(hours=10), 0, now=NOW)
        assert verdict.decision == RegenerationDecision.UNCHANGED
        assert not verdict.should_regenerate

    def test_changed_after_cooldown(self):
        decision = decide(
            snap(SystemState.HIGH_STRAIN),
            snap(SystemState.BUILDING_CAPACITY),
            last_generated=NOW - timedelta(hours=3),
        )
        assert decision == RegenerationDecision.CHANGED

    def test_cooldown_holds(self):
        decision = decide(
            snap(SystemState.HIGH_STRAIN),
            snap(SystemState.BUILDING_CAPACITY),
            last_generated=NOW - timedelta(minutes=30),
        )
        assert decision == RegenerationDecision.COOLDOWN

    def test_daily_cap_holds(self):
        decision = decide(
            snap(SystemState.HIGH_STRAIN),
            snap(SystemState.BUILDING_CAPACITY),
            last_generated=NOW - timedelta(hours=5),
            count=MAX_GENERATIONS_PER_DAY,
        )
        assert decision == RegenerationDecision.DAILY_CAP

    def test_critical_safety_bypasses_cooldown_and_cap(self):
        decision = decide(
            snap(SystemState.RECOVERY_MODE),
            snap(SystemState.READY_FOR_LOAD),
            last_generated=NOW - timedelta(minutes=5),
            count=MAX_GENERATIONS_PER_DAY,
        )
        assert decision == RegenerationDecision.CRITICAL_SAFETY

    def test_naive_timestamps_treated_as_utc(self):
        decision = decide(
            snap(SystemState.HIGH_STRAIN),
            snap(SystemState.BUILDING_CAPACITY),
            last_generated=(NOW - timedelta(minutes=30)).replace(tzinfo=None),
        )
        assert decision == RegenerationDecision.COOLDOWN


class TestCriticalSafety:
    def test_into_regulation(self):
        assert is_critical_safety_transition(snap(SystemState.BUILDING_CAPACITY), snap(SystemState.RECOVERY_MODE))

    def test_flush_overload_flip(self):
        assert is_critical_safety_transition(snap(SystemState.PHYSICAL_STRAIN), snap(SystemState.NEEDS_STIMULATION))

    def test_maintenance_to_overload_is_not_critical(self):
        assert not is_critical_safety_transition(snap(SystemState.BUILDING_CAPACITY), snap(SystemState.READY_FOR_LOAD))
