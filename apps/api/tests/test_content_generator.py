"""
Content Generator Tests

Deterministic: the Gemini client is always a mock. Covers the accepted
path, the validator-driven retry, fallback on generation errors and on
repeated rejection, and the stored dict shape.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.content_generator import MAX_ATTEMPTS, ContentGenerator, fallback_content
from services.directive_planner import directive_for_state
from services.focus_avoid_templates import get_template
from services.gemini_client import GenerationError
from services.state_engine import SystemState
from conftest import mock_gemini

FLUSH = directive_for_state(SystemState.RECOVERY_MODE)
OVERLOAD = directive_for_state(SystemState.READY_FOR_LOAD)

GOOD = {
    "sessionFocus": "Easy walk and gentle mobility.",
    "avoidCue": "Avoid intense efforts and skip any jumping.",
    "analystInsight": {"summary": "HRV is below baseline, so today stays light.", "detail": None},
}

BAD_FLUSH = {
    "sessionFocus": "Push hard and go all-out.",
    "avoidCue": "Nothing to avoid.",
    "analystInsight": {"summary": "Execute."},
}


class TestContentGenerator:
    @pytest.mark.asyncio
    async def test_without_client_uses_template(self):
        content = await ContentGenerator(None).generate(FLUSH, state="RECOVERY_MODE")
        assert content.source == "FALLBACK"
        assert content.session_focus == get_template(FLUSH.category, FLUSH.stimulus).session_focus

    @pytest.mark.asyncio
    async def test_valid_output_is_accepted(self):
        gemini = mock_gemini(GOOD)
        content = await ContentGenerator(gemini).generate(
            FLUSH, state="RECOVERY_MODE", evidence=["HRV below baseline (z=-1.5)"]
        )
        assert content.source == "LLM"
        assert content.attempts == 1
        assert content.session_focus == GOOD["sessionFocus"]
        assert gemini.generate_json.await_count == 1

    @pytest.mark.asyncio
    async def test_rejected_then_accepted_on_retry(self):
        gemini = mock_gemini(BAD_FLUSH, GOOD)
        content = await ContentGenerator(gemini).generate(FLUSH, state="RECOVERY_MODE")
        assert content.source == "LLM"
        assert content.attempts == 2
        retry_prompt = gemini.generate_json.await_args_list[1].args[0]
        assert "previous answer was rejected" in retry_prompt

    @pytest.mark.asyncio
    async def test_rejected_twice_falls_back(self):
        gemini = mock_gemini(BAD_FLUSH, BAD_FLUSH)
        content = await ContentGenerator(gemini).generate(FLUSH, state="RECOVERY_MODE")
        assert content.source == "FALLBACK"
        assert content.attempts == MAX_ATTEMPTS
        assert content.validation_errors

    @pytest.mark.asyncio
    async def test_generation_error_falls_back(self):
        gemini = mock_gemini(GenerationError("quota"))
        content = await ContentGenerator(gemini).generate(OVERLOAD, state="READY_FOR_LOAD")
        assert content.source == "FALLBACK"
        assert content.session_focus == get_template(OVERLOAD.category, OVERLOAD.stimulus).session_focus

    @pytest.mark.asyncio
    async def test_goal_and_evidence_reach_prompt(self):
        gemini = mock_gemini(GOOD)
        await ContentGenerator(gemini).generate(
            FLUSH, state="RECOVERY_MODE", goal="Run a half marathon", evidence=["Sleep below baseline"]
        )
        prompt = gemini.generate_json.await_args.args[0]
        assert "Run a half marathon" in prompt
        assert "Sleep below baseline" in prompt
        assert "Impact allowed: no" in prompt


class TestStoredShape:
    def test_to_dict(self):
        data = fallback_content(FLUSH).to_dict()
        assert set(data) == {"session_focus", "avoid_cue", "analyst_insight", "validation_warnings"}
        insight = data["analyst_insight"]
        assert insight["source"] == "FALLBACK"
        assert insight["validation_passed"] is False
        assert insight["retry_count"] == 0
