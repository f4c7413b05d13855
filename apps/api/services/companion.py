"""
Companion

LLM-only smart card content:
    WELCOME          one-time first-launch message
    WORKOUT_INSIGHT  short physiology read on a workout that just ended

No fallback text: if the generator is missing, fails, or returns output
that breaks the limits below, the method returns None and no card is shown.
Tone is calm and instrument-like, no hype, no medical claims.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from services.focus_avoid_validator import find_banned_terms
from services.gemini_client import GeminiClient, GenerationError
from services.wearable_provider import Workout

logger = logging.getLogger(__name__)


COMPANION_TEMPERATURE = 0.6
HEADLINE_MAX = 32
WELCOME_MESSAGE_MAX = 220
INSIGHT_SUMMARY_MAX = 200
INSIGHT_FIELD_MAX = 240

WELCOME_SYSTEM_PROMPT = """You are the onboarding companion of a training app.
Voice: calm, precise, understated. No hype, no emojis, no medical claims.

Return JSON only:
{"headline": "max 32 characters", "message": "1-2 sentences, max 220 characters"}

Explain what the system does (reads biometrics, turns them into daily
training guidance). Do not promise outcomes.
"""

INSIGHT_SYSTEM_PROMPT = """You read wearable data from a workout that just ended.
Voice: calm, precise, understated. No hype, no emojis, no medical claims.

Return JSON only:
{"headline": "max 32 characters", "summary": "max 200 characters",
 "physiology": "optional, max 240 characters", "guidance": "optional, max 240 characters"}

Only use the numbers given. Do not invent data.
"""


@dataclass
class WelcomeMessage:
    headline: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class WorkoutInsight:
    workout_id: str
    headline: str
    summary: str
    physiology: Optional[str] = None
    guidance: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _clean(value: Any) -> str:
    return str(value or "").strip()


class Companion:
    def __init__(self, gemini: Optional[GeminiClient] = None):
        self.gemini = gemini

    async def _generate(self, prompt: str, system_prompt: str, max_tokens: int) -> Optional[Dict[str, Any]]:
        if self.gemini is None:
            return None
        try:
            return await self.gemini.generate_json(
                prompt,
                system_instruction=system_prompt,
                temperature=COMPANION_TEMPERATURE,
                max_output_tokens=max_tokens,
            )
        except GenerationError as e:
            logger.info(f"Companion generation failed, no card: {e}")
            return None

    async def welcome(
        self,
        vitality: Optional[int] = None,
        confidence: Optional[str] = None,
        state: Optional[str] = None,
    ) -> Optional[WelcomeMessage]:
        context = "First launch."
        if vitality is not None:
            context += f" Initial vitality {vitality}/100"
            if confidence:
                context += f" ({confidence} confidence)"
            context += "."
        if state:
            context += f" System state: {state}."
        data = await self._generate(f"Write a welcome message.\nContext: {context}", WELCOME_SYSTEM_PROMPT, 256)
        if not data:
            return None

        headline, message = _clean(data.get("headline")), _clean(data.get("message"))
        if not headline or not message:
            return None
        if len(headline) > HEADLINE_MAX or len(message) > WELCOME_MESSAGE_MAX:
            logger.info("Welcome message over length limits, no card")
            return None
        if find_banned_terms(f"{headline} {message}"):
            return None
        return WelcomeMessage(headline=headline, message=message)

    async def workout_insight(
        self,
        workout: Workout,
        vitality: Optional[int] = None,
        state: Optional[str] = None,
    ) -> Optional[WorkoutInsight]:
        lines = [
            f"Workout type: {workout.type}",
            f"Duration: {round(workout.duration_minutes)} min",
            f"Active energy: {round(workout.active_calories)} kcal",
        ]
        if workout.avg_heart_rate:
            lines.append(f"Average heart rate: {round(workout.avg_heart_rate)} bpm")
        if workout.max_heart_rate:
            lines.append(f"Max heart rate: {round(workout.max_heart_rate)} bpm")
        if workout.distance_m:
            lines.append(f"Distance: {workout.distance_m / 1000:.2f} km")
        if vitality is not None:
            lines.append(f"Today's vitality: {vitality}/100")
        if state:
            lines.append(f"System state: {state}")

        data = await self._generate("\n".join(lines), INSIGHT_SYSTEM_PROMPT, 512)
        if not data:
            return None

        headline, summary = _clean(data.get("headline")), _clean(data.get("summary"))
        physiology = _clean(data.get("physiology")) or None
        guidance = _clean(data.get("guidance")) or None
        if not headline or not summary:
            return None
        if len(headline) > HEADLINE_MAX or len(summary) > INSIGHT_SUMMARY_MAX:
            return None
        if any(len(v) > INSIGHT_FIELD_MAX for v in (physiology, guidance) if v):
            return None
        if find_banned_terms(" ".join(v for v in (headline, summary, physiology, guidance) if v)):
            return None
        return WorkoutInsight(
            workout_id=workout.id,
            headline=headline,
            summary=summary,
            physiology=physiology,
            guidance=guidance,
        )
