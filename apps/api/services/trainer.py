"""
Trainer

Workout suggestions for the workout-suggestion smart card. One concrete
session that respects the day's directive and constraints, grounded in a
short exercise taxonomy and in what the operator logged recently.

Returns None on any failure (no client, call error, invalid or
non-compliant output). The card engine treats None as "no card".
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from services.directive_planner import Directive, Stimulus
from services.focus_avoid_validator import find_banned_terms, find_intensity_terms
from services.gemini_client import GeminiClient, GenerationError

logger = logging.getLogger(__name__)


TRAINER_TEMPERATURE = 0.7
TRAINER_MAX_TOKENS = 512
TITLE_MAX = 50
SUMMARY_MAX = 120
WHY_MAX = 200
RECENT_LOGS_IN_PROMPT = 5

TAXONOMY_CONTEXT = """
ENERGY SYSTEMS:
- Aerobic (zone 2): 50-75% max HR, 20+ min, conversational pace
- Glycolytic: 85-100% max HR, 30s-3min efforts
- Phosphagen: under 10s efforts, full recovery between sets

MODALITIES:
- Strength: compound lifts, 3-5 reps for power, 8-12 for hypertrophy
- Endurance: zone 2 base, tempo, intervals (4x4, fartlek)
- Neural: skill, coordination, plyometrics, agility
- Regulation: yoga, mobility, breathwork, easy walks

INTENSITY:
- LOW: RPE 3-4 (recovery, flush, mobility)
- MODERATE: RPE 5-6 (maintenance, base)
- HIGH: RPE 7-9 (overload)
"""

SYSTEM_PROMPT = f"""You are a practical workout programming assistant.
You suggest, you do not command. Plain language, no hype.

{TAXONOMY_CONTEXT}

Return JSON only:
{{"title": "max 50 chars", "summary": "max 120 chars", "why": "optional, max 200 chars",
  "duration": minutes, "intensity": "LOW" | "MODERATE" | "HIGH"}}

Rules:
1. Match the directive category and stimulus.
2. Respect the constraints: no impact if disallowed, stay under any heart rate cap.
3. Do not repeat what the recent logs show.
4. Be specific ("4x4 minute intervals", not "do cardio").
"""


@dataclass
class WorkoutSuggestion:
    title: str
    summary: str
    why: Optional[str] = None
    duration: Optional[int] = None
    intensity: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _build_prompt(directive: Directive, state: str, vitality: Optional[int], recent_notes: List[str]) -> str:
    c = directive.constraints
    constraint_lines = []
    if not c.allow_impact:
        constraint_lines.append("No impact movements")
    if c.heart_rate_cap:
        constraint_lines.append(f"Heart rate cap: {c.heart_rate_cap} bpm")
    if c.required_equipment:
        constraint_lines.append(f"Equipment available: {', '.join(c.required_equipment)}")
    recent = "; ".join(n for n in recent_notes[:RECENT_LOGS_IN_PROMPT] if n) or "none"
    return (
        f"Directive: {directive.category.value} / {directive.stimulus.value}\n"
        f"State: {state}\n"
        f"Vitality: {vitality if vitality is not None else 'unavailable'}\n"
        f"Constraints: {', '.join(constraint_lines) or 'none'}\n"
        f"Recent workouts: {recent}\n"
        "Suggest one session."
    )


def validate_suggestion(data: Dict[str, Any], directive: Directive) -> bool:
    title = str(data.get("title") or "").strip()
    summary = str(data.get("summary") or "").strip()
    why = str(data.get("why") or "")
    if not title or not summary:
        return False
    if len(title) > TITLE_MAX or len(summary) > SUMMARY_MAX or len(why) > WHY_MAX:
        return False
    if find_banned_terms(f"{title} {summary} {why}"):
        return False
    if directive.stimulus == Stimulus.FLUSH:
        if data.get("intensity") == "HIGH" or find_intensity_terms(f"{title} {summary}"):
            return False
    return True


class Trainer:
    def __init__(self, gemini: Optional[GeminiClient] = None):
        self.gemini = gemini

    async def suggest(
        self,
        directive: Directive,
        state: str,
        vitality: Optional[int] = None,
        recent_notes: Optional[List[str]] = None,
    ) -> Optional[WorkoutSuggestion]:
        if self.gemini is None:
            logger.info("Trainer has no generator; no suggestion")
            return None
        try:
            data = await self.gemini.generate_json(
                _build_prompt(directive, state, vitality, list(recent_notes or [])),
                system_instruction=SYSTEM_PROMPT,
                temperature=TRAINER_TEMPERATURE,
                max_output_tokens=TRAINER_MAX_TOKENS,
            )
        except GenerationError as e:
            logger.warning(f"Workout suggestion failed: {e}")
            return None

        if not validate_suggestion(data, directive):
            logger.warning("Workout suggestion rejected by validation")
            return None

        duration = data.get("duration")
        return WorkoutSuggestion(
            title=str(data["title"]).strip(),
            summary=str(data["summary"]).strip(),
            why=(str(data["why"]).strip() if data.get("why") else None),
            duration=int(duration) if isinstance(duration, (int, float)) else None,
            intensity=data.get("intensity") if data.get("intensity") in ("LOW", "MODERATE", "HIGH") else None,
        )
