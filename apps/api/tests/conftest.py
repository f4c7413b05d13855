"""
Pytest configuration and fixtures

Every test that touches the database gets its own in-memory SQLite
database (StaticPool, so all sessions share the one connection), built
from the models. Nothing persists between tests.
"""
import pytest
import sys
import os
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

# Point the app at SQLite before core.database builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("GOOGLE_API_KEY", "")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base
import models  # noqa: F401
from services.record_store import RecordStore


TODAY = date(2026, 3, 10)
NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    Session = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def store(db_session):
    return RecordStore(db_session)


def mock_gemini(*responses):
    """
    GeminiClient stand-in: generate_json returns the given dicts in order
    (an Exception instance is raised instead of returned).
    """
    gemini = MagicMock()
    gemini.generate_json = AsyncMock(side_effect=list(responses))
    return gemini


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def now():
    return NOW
