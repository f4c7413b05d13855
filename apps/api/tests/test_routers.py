"""
API Router Tests

FastAPI TestClient with the database, wearable provider and Gemini client
swapped through dependency overrides.
"""

import pytest
import sys
import os
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from core.database import get_db
from core.dependencies import get_gemini_client, get_wearable_provider
from main import app
from services.dawn_protocol import operator_now
from fixtures.wearable_fixtures import FixtureWearableProvider


@pytest.fixture
def provider():
    return FixtureWearableProvider.steady(operator_now().date())


@pytest.fixture
def client(db_engine, provider):
    Session = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = Session()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_wearable_provider] = lambda: provider
    app.dependency_overrides[get_gemini_client] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestDawnRun:
    def test_run_then_cached(self, client):
        response = client.post("/v1/dawn/run")
        assert response.status_code == 200
        body = response.json()
        assert body["cached"] is False
        assert body["backfilled_days"] == 30
        assert body["record"]["vitality"] == 50
        assert body["record"]["directive"]["content"]["session_focus"]
        assert [c["type"] for c in body["cards"]] == ["GOALS_INTAKE"]

        again = client.post("/v1/dawn/run")
        assert again.json()["cached"] is True

    def test_force_bypasses_cache(self, client):
        client.post("/v1/dawn/run")
        forced = client.post("/v1/dawn/run", params={"force": "true"})
        assert forced.status_code == 200
        assert forced.json()["cached"] is False
        assert forced.json()["content_decision"] == "UNCHANGED"

    def test_permission_denied_is_403(self, client, provider):
        provider.granted = False
        response = client.post("/v1/dawn/run")
        assert response.status_code == 403
        assert response.json()["error_code"] == "WEARABLE_PERMISSION_DENIED"


class TestRecords:
    def test_today_missing_before_first_run(self, client):
        assert client.get("/v1/records/today").status_code == 404

    def test_today_and_by_date(self, client):
        client.post("/v1/dawn/run")
        today = operator_now().date()
        assert client.get("/v1/records/today").json()["date"] == today.isoformat()

        yesterday = (today - timedelta(days=1)).isoformat()
        body = client.get(f"/v1/records/{yesterday}").json()
        assert body["record_kind"] == "HISTORICAL"

    def test_unknown_date(self, client):
        assert client.get("/v1/records/1999-01-01").status_code == 404

    def test_history(self, client):
        client.post("/v1/dawn/run")
        records = client.get("/v1/records").json()
        assert len(records) == 30
        assert records[0]["record_kind"] == "LIVE"
        assert len(client.get("/v1/records", params={"days": 7}).json()) == 7

    def test_reset(self, client):
        client.post("/v1/dawn/run")
        deleted = client.delete("/v1/records").json()["deleted"]
        assert deleted["daily_record"] == 31
        assert client.get("/v1/records/today").status_code == 404


class TestCards:
    def test_complete_goals_card(self, client):
        card = client.post("/v1/dawn/run").json()["cards"][0]
        response = client.post(f"/v1/cards/{card['id']}/complete", json={"primary_goal": "Ride 100 km"})
        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"
        assert client.get("/v1/goals").json()["primary_goal"] == "Ride 100 km"
        assert client.get("/v1/cards").json() == []

    def test_completed_card_conflict(self, client):
        card = client.post("/v1/dawn/run").json()["cards"][0]
        client.post(f"/v1/cards/{card['id']}/complete", json={"primary_goal": "Ride 100 km"})
        again = client.post(f"/v1/cards/{card['id']}/complete", json={"primary_goal": "Ride 100 km"})
        assert again.status_code == 409

    def test_dismiss(self, client):
        card = client.post("/v1/dawn/run").json()["cards"][0]
        response = client.post(f"/v1/cards/{card['id']}/dismiss")
        assert response.status_code == 200
        assert response.json()["status"] == "DISMISSED"

    def test_unknown_card(self, client):
        assert client.post("/v1/cards/nope/dismiss").status_code == 404

    def test_rpe_out_of_range_rejected(self, client):
        assert client.post("/v1/cards/any/complete", json={"rpe": 11}).status_code == 422

    def test_manual_goals_intake(self, client):
        response = client.post("/v1/cards/goals-intake")
        assert response.status_code == 200
        assert response.json()["type"] == "GOALS_INTAKE"


class TestGoals:
    def test_missing_goals(self, client):
        assert client.get("/v1/goals").status_code == 404

    def test_put_and_get(self, client):
        response = client.put("/v1/goals", json={"primary_goal": "  Squat 100 kg ", "horizon": "8 weeks"})
        assert response.status_code == 200
        body = client.get("/v1/goals").json()
        assert body["primary_goal"] == "Squat 100 kg"
        assert body["horizon"] == "8 weeks"

    def test_empty_goal_rejected(self, client):
        assert client.put("/v1/goals", json={"primary_goal": ""}).status_code == 422


def test_health(client):
    assert client.get("/health").status_code in (200, 503)


def test_request_id_is_echoed(client):
    response = client.get("/v1/goals", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
