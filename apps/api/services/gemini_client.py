"""
Gemini Client

Thin async wrapper around google-genai shared by the content generator,
the trainer and the companion. Callers get either text / parsed JSON or a
GenerationError; they decide what the fallback is.

The underlying ``genai.Client`` is created lazily from GOOGLE_API_KEY, or
injected (tests pass a MagicMock whose ``aio.models.generate_content`` is an
AsyncMock).
"""

import json
import logging
import re
import time
from typing import Any, Dict, Optional

from google import genai
from google.genai import types as genai_types

from core.config import settings

logger = logging.getLogger(__name__)


DEFAULT_TEMPERATURE = 0.4
DEFAULT_MAX_TOKENS = 800

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class GenerationError(Exception):
    """The generative service failed or returned unusable output."""


def _extract_text(response: Any) -> str:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ""
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    return "".join(getattr(p, "text", "") or "" for p in parts)


class GeminiClient:
    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None):
        self.model = model or settings.GEMINI_MODEL
        self._client = client

    @classmethod
    def from_settings(cls) -> Optional["GeminiClient"]:
        """Client built from GOOGLE_API_KEY, or None when no key is configured."""
        if not settings.GOOGLE_API_KEY:
            return None
        return cls(client=genai.Client(api_key=settings.GOOGLE_API_KEY))

    async def generate_text(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_TOKENS,
        json_mode: bool = False,
    ) -> str:
        if self._client is None:
            raise GenerationError("No Gemini client configured (GOOGLE_API_KEY unset)")

        config = genai_types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            response_mime_type="application/json" if json_mode else None,
        )
        contents = [
            genai_types.Content(role="user", parts=[genai_types.Part(text=prompt)]),
        ]

        start = time.monotonic()
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            raise GenerationError(f"Gemini call failed: {e}") from e

        latency_ms = int((time.monotonic() - start) * 1000)
        text = _extract_text(response).strip()
        usage = getattr(response, "usage_metadata", None)
        logger.info(
            f"Gemini {self.model} responded in {latency_ms}ms "
            f"(in={getattr(usage, 'prompt_token_count', None)}, "
            f"out={getattr(usage, 'candidates_token_count', None)})"
        )
        if not text:
            raise GenerationError("Gemini returned an empty response")
        return text

    async def generate_json(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> Dict[str, Any]:
        text = await self.generate_text(
            prompt,
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            json_mode=True,
        )
        try:
            data = json.loads(_FENCE_RE.sub("", text))
        except json.JSONDecodeError as e:
            raise GenerationError(f"Gemini returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise GenerationError("Gemini returned JSON that is not an object")
        return data
