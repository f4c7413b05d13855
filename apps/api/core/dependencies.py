"""
FastAPI dependency providers.

Routers never build engines themselves; they depend on these so tests can
swap any layer through ``app.dependency_overrides`` (fixture wearable
provider, mocked Gemini client, SQLite session).
"""
from typing import AsyncIterator, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from services.companion import Companion
from services.content_generator import ContentGenerator
from services.gemini_client import GeminiClient
from services.record_store import RecordStore
from services.smart_card_engine import SmartCardEngine
from services.trainer import Trainer
from services.wearable_provider import HttpWearableProvider, WearableProvider


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


async def get_wearable_provider() -> AsyncIterator[WearableProvider]:
    provider = HttpWearableProvider(
        base_url=settings.WEARABLE_API_BASE_URL,
        token=settings.WEARABLE_API_TOKEN,
        timeout_s=settings.WEARABLE_API_TIMEOUT_S,
    )
    try:
        yield provider
    finally:
        await provider.aclose()


def get_gemini_client() -> Optional[GeminiClient]:
    return GeminiClient.from_settings()


def get_card_engine(
    store: RecordStore = Depends(get_store),
    gemini: Optional[GeminiClient] = Depends(get_gemini_client),
) -> SmartCardEngine:
    return SmartCardEngine(store, trainer=Trainer(gemini), companion=Companion(gemini))


def get_content_generator(
    gemini: Optional[GeminiClient] = Depends(get_gemini_client),
) -> ContentGenerator:
    return ContentGenerator(gemini)
