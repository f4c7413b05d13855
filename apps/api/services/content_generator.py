"""
Content Generator

Generates the day's coaching text for a directive:

    {session_focus, avoid_cue, analyst_insight: {summary, detail}}

Gemini writes it; the validator decides whether it may be stored. One
retry with the validator's errors fed back, then the rule-based template
for (category, stimulus). The record is never blocked on this: generate()
always returns content, and the ``source`` field says which path produced
it (LLM or FALLBACK).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from services.directive_planner import Directive
from services.focus_avoid_templates import get_template
from services.focus_avoid_validator import validate_content
from services.gemini_client import GeminiClient, GenerationError

logger = logging.getLogger(__name__)


MAX_ATTEMPTS = 2
CONTENT_TEMPERATURE = 0.4
CONTENT_MAX_TOKENS = 600

SYSTEM_PROMPT = """You are a calm, direct training coach writing one day's guidance.

Return a JSON object with exactly these keys:
  "sessionFocus": one sentence, at most 160 characters, what to focus on
  "avoidCue": one sentence, at most 120 characters, what to avoid
  "analystInsight": {"summary": at most 300 characters, "detail": at most 800 characters}

Rules:
- Plain, friendly language. No corporate or military jargon.
- Never contradict the directive. On a FLUSH day never encourage intensity.
- If impact is not allowed, the avoid cue must warn against impact.
- Ground the insight in the evidence provided. Do not invent numbers.
"""


@dataclass
class GeneratedContent:
    session_focus: str
    avoid_cue: str
    summary: str
    detail: Optional[str]
    source: str                                   # LLM | FALLBACK
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 0
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_focus": self.session_focus,
            "avoid_cue": self.avoid_cue,
            "analyst_insight": {
                "summary": self.summary,
                "detail": self.detail,
                "source": self.source,
                "generated_at": self.generated_at.isoformat(),
                "validation_passed": self.source == "LLM",
                "retry_count": max(self.attempts - 1, 0),
            },
            "validation_warnings": list(self.validation_warnings),
        }


def _build_prompt(
    directive: Directive,
    state: str,
    lens: Optional[str],
    evidence: List[str],
    goal: Optional[str],
    previous_errors: Optional[List[str]] = None,
) -> str:
    c = directive.constraints
    lines = [
        f"Operator state: {state}",
        f"Lens: {lens or 'none'}",
        f"Directive: {directive.category.value} / {directive.stimulus.value} (target RPE {directive.target_rpe})",
        f"Impact allowed: {'yes' if c.allow_impact else 'no'}",
        f"Heart rate cap: {c.heart_rate_cap or 'none'}",
        f"Equipment: {', '.join(c.required_equipment) or 'none'}",
    ]
    if goal:
        lines.append(f"Operator goal: {goal}")
    lines.append("Evidence:")
    if evidence:
        lines.extend(f"- {e}" for e in evidence)
    else:
        lines.append("- no notable deviations")
    if previous_errors:
        lines.append("")
        lines.append("Your previous answer was rejected for these reasons; fix them:")
        lines.extend(f"- {e}" for e in previous_errors)
    return "\n".join(lines)


def fallback_content(directive: Directive, errors: Optional[List[str]] = None, attempts: int = 0) -> GeneratedContent:
    template = get_template(directive.category, directive.stimulus)
    return GeneratedContent(
        session_focus=template.session_focus,
        avoid_cue=template.avoid_cue,
        summary=template.summary,
        detail=template.detail,
        source="FALLBACK",
        attempts=attempts,
        validation_errors=list(errors or []),
    )


class ContentGenerator:
    def __init__(self, gemini: Optional[GeminiClient] = None):
        self.gemini = gemini

    async def generate(
        self,
        directive: Directive,
        state: str,
        lens: Optional[str] = None,
        evidence: Optional[List[str]] = None,
        goal: Optional[str] = None,
    ) -> GeneratedContent:
        evidence = list(evidence or [])
        if self.gemini is None:
            logger.info("No generator configured; using rule-based content")
            return fallback_content(directive)

        errors: List[str] = []
        for attempt in range(1, MAX_ATTEMPTS + 1):
            prompt = _build_prompt(directive, state, lens, evidence, goal, errors or None)
            try:
                data = await self.gemini.generate_json(
                    prompt,
                    system_instruction=SYSTEM_PROMPT,
                    temperature=CONTENT_TEMPERATURE,
                    max_output_tokens=CONTENT_MAX_TOKENS,
                )
            except GenerationError as e:
                logger.warning(f"Content generation failed (attempt {attempt}): {e}")
                return fallback_content(directive, [str(e)], attempt)

            insight = data.get("analystInsight") or {}
            if isinstance(insight, str):
                insight = {"summary": insight}
            session_focus = str(data.get("sessionFocus") or "").strip()
            avoid_cue = str(data.get("avoidCue") or "").strip()
            summary = str(insight.get("summary") or "").strip()
            detail = insight.get("detail")
            detail = str(detail).strip() if detail else None

            result = validate_content(session_focus, avoid_cue, summary, detail, directive, evidence)
            if result.valid:
                return GeneratedContent(
                    session_focus=session_focus,
                    avoid_cue=avoid_cue,
                    summary=summary,
                    detail=detail,
                    source="LLM",
                    attempts=attempt,
                    validation_warnings=result.warnings,
                )
            errors = result.errors
            logger.warning(f"Generated content rejected (attempt {attempt}): {errors}")

        return fallback_content(directive, errors, MAX_ATTEMPTS)
