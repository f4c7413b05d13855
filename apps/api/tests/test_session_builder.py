"""
Session Builder Tests
"""

import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.directive_planner import directive_for_state
from services.session_builder import build_session, infer_intensity
from services.state_engine import ArchetypeLens, SystemState

DAY = date(2026, 3, 10)


class TestSessionBuilder:
    def test_recovery_is_breathwork(self):
        session = build_session(directive_for_state(SystemState.RECOVERY_MODE), ArchetypeLens.OPERATOR, DAY)
        assert session.title == "Nervous System Regulation"
        assert session.intensity == "LOW"
        assert session.primary_axis == "RECOVERY"
        assert session.validation.max_hr == 120

    def test_heart_rate_cap_tightens_validation(self):
        session = build_session(directive_for_state(SystemState.HIGH_STRAIN), None, DAY)
        assert session.intensity == "MODERATE"
        assert session.validation.max_hr == 145
        assert session.subtitle == "Standard session"

    def test_overload_strength(self):
        session = build_session(directive_for_state(SystemState.READY_FOR_LOAD), ArchetypeLens.GLADIATOR, DAY)
        assert session.intensity == "HIGH"
        assert session.validation.min_hr == 140
        assert session.physiological_load == 8
        assert session.label == "STRENGTH // OVERLOAD"
        assert session.lens == "GLADIATOR"

    def test_generated_cues_win(self):
        content = {
            "session_focus": "Smooth, relaxed strides.",
            "avoid_cue": "Skip the hills today.",
            "analyst_insight": {"summary": "Recovery is on track."},
        }
        session = build_session(directive_for_state(SystemState.BUILDING_CAPACITY), None, DAY, content)
        assert session.session_focus == "Smooth, relaxed strides."
        assert session.avoid_cue == "Skip the hills today."
        assert session.analyst_insight == "Recovery is on track."
        assert session.to_dict()["validation"]["type"] == "DURATION"

    def test_infer_intensity(self):
        assert infer_intensity(directive_for_state(SystemState.PHYSICAL_STRAIN)) == "LOW"
        assert infer_intensity(directive_for_state(SystemState.NEEDS_STIMULATION)) == "HIGH"
