"""
Dawn Protocol Tests

End-to-end runs of the daily pipeline against the in-memory store and the
fixture wearable provider. No generator is configured, so content always
comes from the templates.
"""

import pytest
import sys
import os
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.exceptions import PermissionDeniedError, WearableProviderError
from models import DailyRecord
from services.baselines import Baselines
from services.dawn_protocol import DawnProtocol, is_cache_valid
from services.record_store import FLAG_FIRST_LAUNCH_COMPLETE
from services.smart_card_engine import CardType
from services.statistics import MetricAggregate
from conftest import NOW, TODAY
from fixtures.wearable_fixtures import FixtureWearableProvider, make_day

YESTERDAY = TODAY - timedelta(days=1)


def warm_baselines(store):
    store.save_baselines(Baselines(
        hrv=MetricAggregate(mean=50.0, stddev=5.0, sample_count=30, coverage=1.0),
        resting_heart_rate=MetricAggregate(mean=60.0, stddev=3.0, sample_count=30, coverage=1.0),
        sleep_seconds=MetricAggregate(mean=28800.0, stddev=1800.0, sample_count=30, coverage=1.0),
        steps_mean=8000.0,
        active_calories_mean=500.0,
    ))
    store.commit()


class FailingTodayProvider(FixtureWearableProvider):
    async def fetch_biometrics(self, day):
        if day == TODAY:
            raise WearableProviderError("bridge timed out")
        return await super().fetch_biometrics(day)


class TestColdStart:
    @pytest.mark.asyncio
    async def test_backfills_history_and_scores_today(self, store):
        provider = FixtureWearableProvider.steady(TODAY)
        result = await DawnProtocol(store, provider).run(now=NOW)

        assert result.backfilled_days == 30
        assert result.cached is False
        assert result.content_decision == "INITIAL"

        record = result.record
        assert record.record_kind == "LIVE"
        assert record.vitality == 50
        assert record.vitality_confidence == "HIGH"
        assert record.current_state is not None
        assert record.directive["content"]["session_focus"]
        assert record.directive["provenance"]["generation_count"] == 1
        assert record.directive["provenance"]["content_source"] == "FALLBACK"
        assert record.load_density is not None

        history = store.get_history(YESTERDAY, days=30)
        assert len(history) == 30
        assert all(r.record_kind == "HISTORICAL" for r in history)
        assert store.get_baselines().hrv.sample_count == 30
        assert store.is_flag_set(FLAG_FIRST_LAUNCH_COMPLETE)

    @pytest.mark.asyncio
    async def test_backfill_skips_existing_and_empty_days(self, store):
        store.save_record(DailyRecord(date=YESTERDAY, record_kind="LIVE", vitality=77))
        store.commit()
        provider = FixtureWearableProvider.steady(TODAY, days=10)
        result = await DawnProtocol(store, provider).run(now=NOW)

        assert result.backfilled_days == 9
        assert store.get_record(YESTERDAY).vitality == 77

    @pytest.mark.asyncio
    async def test_first_run_offers_goals_intake(self, store):
        result = await DawnProtocol(store, FixtureWearableProvider.steady(TODAY)).run(now=NOW)
        assert [c.type for c in result.cards] == [CardType.GOALS_INTAKE.value]


class TestCache:
    @pytest.mark.asyncio
    async def test_second_run_is_served_from_cache(self, store):
        provider = FixtureWearableProvider.steady(TODAY)
        protocol = DawnProtocol(store, provider)
        await protocol.run(now=NOW)

        second = await protocol.run(now=NOW + timedelta(hours=1))
        assert second.cached is True
        assert provider.permission_requests == 1

    @pytest.mark.asyncio
    async def test_forced_run_keeps_unchanged_content(self, store):
        provider = FixtureWearableProvider.steady(TODAY)
        protocol = DawnProtocol(store, provider)
        first = await protocol.run(now=NOW)
        content = dict(first.record.directive["content"])
        generated_at = first.record.directive["provenance"]["last_generated_at"]

        second = await protocol.run(force=True, now=NOW + timedelta(hours=3))
        assert second.cached is False
        assert second.content_decision == "UNCHANGED"
        provenance = second.record.directive["provenance"]
        assert provenance["generation_count"] == 1
        assert provenance["last_generated_at"] == generated_at
        assert provenance["stale"] is False
        assert second.record.directive["content"] == content

    def test_cache_requires_generated_text(self):
        assert not is_cache_valid(None)
        assert not is_cache_valid(DailyRecord(date=TODAY, vitality=60, directive={"category": "ENDURANCE"}))
        assert is_cache_valid(DailyRecord(
            date=TODAY,
            vitality=60,
            directive={"category": "ENDURANCE", "content": {"session_focus": "Easy spin."}},
        ))


class TestWarmStart:
    @pytest.mark.asyncio
    async def test_missing_yesterday_is_synced(self, store):
        warm_baselines(store)
        provider = FixtureWearableProvider.steady(TODAY)
        result = await DawnProtocol(store, provider).run(now=NOW)

        assert result.backfilled_days == 0
        yesterday = store.get_record(YESTERDAY)
        assert yesterday.record_kind == "HISTORICAL"
        assert yesterday.axes is not None
        assert store.get_record(YESTERDAY - timedelta(days=1)) is None

    @pytest.mark.asyncio
    async def test_closed_day_raw_fields_are_not_rewritten(self, store):
        warm_baselines(store)
        store.save_record(DailyRecord(date=YESTERDAY, record_kind="LIVE", activity={"steps": 1234}))
        store.commit()

        provider = FixtureWearableProvider.steady(TODAY)
        provider.days[YESTERDAY] = make_day(YESTERDAY, steps=20000)
        await DawnProtocol(store, provider).run(now=NOW)

        assert store.get_record(YESTERDAY).activity == {"steps": 1234}

    @pytest.mark.asyncio
    async def test_today_raw_snapshot_is_replaced_on_refresh(self, store):
        warm_baselines(store)
        provider = FixtureWearableProvider.steady(TODAY, steps=3000)
        protocol = DawnProtocol(store, provider)
        await protocol.run(now=NOW)

        provider.days[TODAY] = make_day(TODAY, steps=9000)
        result = await protocol.run(force=True, now=NOW + timedelta(hours=4))
        assert result.record.activity["steps"] == 9000


class TestFailures:
    @pytest.mark.asyncio
    async def test_permission_denied_persists_nothing(self, store):
        provider = FixtureWearableProvider.steady(TODAY)
        provider.granted = False
        with pytest.raises(PermissionDeniedError):
            await DawnProtocol(store, provider).run(now=NOW)
        assert store.get_record(TODAY) is None
        assert store.get_baselines_row() is None

    @pytest.mark.asyncio
    async def test_denied_refresh_keeps_previous_record(self, store):
        provider = FixtureWearableProvider.steady(TODAY)
        protocol = DawnProtocol(store, provider)
        await protocol.run(now=NOW)

        provider.granted = False
        with pytest.raises(PermissionDeniedError):
            await protocol.run(force=True, now=NOW + timedelta(hours=2))
        assert store.get_record(TODAY).vitality == 50

    @pytest.mark.asyncio
    async def test_provider_failure_rolls_back_backfill(self, store):
        provider = FailingTodayProvider(FixtureWearableProvider.steady(TODAY).days)
        with pytest.raises(WearableProviderError):
            await DawnProtocol(store, provider).run(now=NOW)
        assert store.get_baselines_row() is None
        assert store.get_history(YESTERDAY) == []
