"""
Statistics primitive tests.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.statistics import aggregate, clamp, normalize_to_gauge, stddev, z_score


class TestGauge:
    def test_baseline_lands_at_fifty(self):
        assert normalize_to_gauge(500, 500) == 50

    def test_double_baseline_saturates(self):
        assert normalize_to_gauge(1500, 500) == 100

    def test_sensitivity_applied_after_normalizing(self):
        assert normalize_to_gauge(500, 500, 1.5) == 75

    def test_zero_baseline(self):
        assert normalize_to_gauge(500, 0) == 0


class TestZScore:
    def test_zero_spread_is_neutral(self):
        assert z_score(70, 50, 0) == 0

    def test_signed(self):
        assert z_score(40, 50, 5) == -2


class TestAggregate:
    def test_missing_and_zero_samples_ignored(self):
        result = aggregate([50, None, 0, 60, -1], window_days=10)
        assert result.sample_count == 2
        assert result.mean == 55
        assert result.stddev == 5
        assert result.coverage == 0.2

    def test_empty(self):
        result = aggregate([None, 0], window_days=30)
        assert result.sample_count == 0
        assert result.mean == 0

    def test_coverage_capped(self):
        assert aggregate([1, 2, 3], window_days=2).coverage == 1.0


def test_population_stddev():
    assert stddev([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)


def test_clamp():
    assert clamp(120, 0, 100) == 100
    assert clamp(-3, 0, 100) == 0
