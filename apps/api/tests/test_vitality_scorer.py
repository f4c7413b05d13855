"""
Vitality Scorer Tests

Covers the availability gate, the confidence ceiling and its caps, the
sleep fallback chain, RHR inversion, the composite weights and the
evidence list. All deterministic; the scorer is pure.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.baselines import Baselines
from services.statistics import MetricAggregate
from services.vitality_scorer import (
    Availability,
    Confidence,
    ReasonCode,
    UnavailableReason,
    VitalityScorer,
    z_score_to_score,
)
from services.wearable_provider import BiometricData, SleepData, SleepSource


def make_baselines(n=20, hrv=(50, 5), rhr=(60, 5), sleep=(28800, 3600), sleep_n=None, user_entered=False):
    return Baselines(
        hrv=MetricAggregate(mean=hrv[0], stddev=hrv[1], sample_count=n),
        resting_heart_rate=MetricAggregate(mean=rhr[0], stddev=rhr[1], sample_count=n),
        sleep_seconds=MetricAggregate(
            mean=sleep[0], stddev=sleep[1], sample_count=n if sleep_n is None else sleep_n
        ),
        sleep_user_entered=user_entered,
    )


def score(hrv=50.0, rhr=60.0, sleep_seconds=28800.0, baselines=None):
    return VitalityScorer().calculate(
        BiometricData(hrv=hrv, resting_heart_rate=rhr),
        SleepData(total_duration_seconds=sleep_seconds),
        baselines if baselines is not None else make_baselines(),
    )


class TestZScoreToScore:
    def test_zero_maps_to_fifty(self):
        assert z_score_to_score(0) == 50

    def test_bounded(self):
        assert z_score_to_score(-10) == 1
        assert z_score_to_score(10) == 100

    def test_monotonic(self):
        zs = [x / 4 for x in range(-20, 21)]
        scores = [z_score_to_score(z) for z in zs]
        assert scores == sorted(scores)


class TestAvailabilityGate:
    def test_all_counts_below_two_is_unavailable(self):
        result = score(baselines=make_baselines(n=1))
        assert result.availability == Availability.UNAVAILABLE
        assert result.unavailable_reason == UnavailableReason.INSUFFICIENT_BASELINE
        assert result.vitality is None

    def test_unavailable_regardless_of_readings(self):
        result = score(hrv=90, rhr=45, sleep_seconds=32000, baselines=make_baselines(n=0))
        assert result.availability == Availability.UNAVAILABLE
        assert result.reason_code == ReasonCode.INSUFFICIENT_BASELINE

    def test_no_baselines_at_all_is_unavailable(self):
        result = VitalityScorer().calculate(BiometricData(hrv=50), SleepData(), None)
        assert result.availability == Availability.UNAVAILABLE

    def test_thin_sleep_baseline_does_not_block(self):
        result = score(baselines=make_baselines(n=20, sleep_n=1))
        assert result.availability == Availability.AVAILABLE
        assert result.vitality is not None

    def test_no_hrv_and_no_rhr_today_is_insufficient_data(self):
        result = score(hrv=0, rhr=0)
        assert result.availability == Availability.UNAVAILABLE
        assert result.unavailable_reason == UnavailableReason.INSUFFICIENT_DATA


class TestConfidence:
    def test_golden_case_neutral_and_high(self):
        result = score()
        assert result.availability == Availability.AVAILABLE
        assert abs(result.vitality - 50) <= 1
        assert result.confidence == Confidence.HIGH
        assert result.reason_code == ReasonCode.OK
        assert result.is_estimated is False

    def test_today_counts_toward_ceiling(self):
        # 20 baseline days + today's reading = 21 samples
        assert score(baselines=make_baselines(n=20)).confidence == Confidence.HIGH
        assert score(baselines=make_baselines(n=13)).confidence == Confidence.MEDIUM
        assert score(baselines=make_baselines(n=12)).confidence == Confidence.LOW

    def test_missing_hrv_caps_to_low(self):
        result = score(hrv=0)
        assert result.availability == Availability.AVAILABLE
        assert result.confidence == Confidence.LOW
        assert result.reason_code == ReasonCode.NO_HRV_TODAY

    def test_missing_rhr_caps_to_medium(self):
        result = score(rhr=0)
        assert result.confidence == Confidence.MEDIUM
        assert result.reason_code == ReasonCode.NO_RHR_TODAY
        assert result.sub_scores["rhr"] == 50

    def test_unmeasured_sleep_caps_to_medium(self):
        result = score(sleep_seconds=0)
        assert result.confidence == Confidence.MEDIUM


class TestSleepFallback:
    def test_estimated_from_baseline(self):
        result = score(sleep_seconds=0, baselines=make_baselines(sleep=(25200, 3600)))
        assert result.sleep_source == SleepSource.ESTIMATED_7D
        assert result.sleep_seconds == 25200
        assert result.is_estimated is True
        assert result.reason_code == ReasonCode.SLEEP_ESTIMATED
        assert any("baseline average" in e for e in result.evidence)

    def test_manual_when_operator_confirmed(self):
        result = score(sleep_seconds=0, baselines=make_baselines(user_entered=True))
        assert result.sleep_source == SleepSource.MANUAL
        assert result.is_estimated is False
        assert result.reason_code == ReasonCode.SLEEP_MANUAL

    def test_six_hour_default_without_baseline(self):
        result = score(sleep_seconds=0, baselines=make_baselines(sleep=(0, 0), sleep_n=0))
        assert result.sleep_source == SleepSource.DEFAULT_6H
        assert result.sleep_seconds == 6 * 3600
        assert result.is_estimated is True
        assert result.reason_code == ReasonCode.SLEEP_DEFAULT

    def test_measured_sleep_without_real_baseline_is_neutral(self):
        result = score(sleep_seconds=20000, baselines=make_baselines(sleep_n=1))
        assert result.sub_scores["sleep"] == 50
        assert result.z_scores["sleep"] is None


class TestComposite:
    def test_high_hrv_lifts_score(self):
        # z_hrv = +2 -> 100; 0.4*50 + 0.4*100 + 0.2*50
        assert score(hrv=60).vitality == 70

    def test_rhr_is_inverted(self):
        lower = score(rhr=55)
        higher = score(rhr=65)
        assert lower.z_scores["rhr"] == pytest.approx(1.0)
        assert lower.vitality > 50 > higher.vitality

    def test_without_hrv_applies_penalty(self):
        result = score(hrv=0)
        assert 47 <= result.vitality <= 48
        assert result.sub_scores["hrv"] is None

    def test_zero_stddev_is_neutral(self):
        result = score(hrv=70, baselines=make_baselines(hrv=(50, 0)))
        assert result.z_scores["hrv"] == 0
        assert result.sub_scores["hrv"] == 50

    def test_evidence_records_large_deviations(self):
        result = score(hrv=40)
        assert any(e.startswith("HRV below baseline") for e in result.evidence)

    def test_pure(self):
        assert score(hrv=57, rhr=58).to_detail() == score(hrv=57, rhr=58).to_detail()
