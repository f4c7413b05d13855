"""
Statistics primitives shared by the physiology engines.

Clamp, gauge normalization, z-scores and the rolling aggregate (mean,
population stddev, sample count, coverage) that every baseline is built
from. Zero baselines and zero spreads collapse to neutral
values instead of raising.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence


def clamp(value: float, lower: float, upper: float) -> float:
    return min(max(value, lower), upper)


def normalize_to_gauge(value: float, baseline: float, sensitivity: float = 1.0) -> float:
    """
    Map a load value onto 0-100 relative to its baseline.

    The baseline lands at 50 and twice the baseline at 100; the sensitivity
    multiplier is applied afterwards and the result clamped again.
    """
    if not baseline:
        return 0.0
    normalized = clamp(value / (baseline * 2) * 100, 0, 100)
    return clamp(normalized * sensitivity, 0, 100)


def z_score(current: float, mean: float, stddev: float) -> float:
    if not stddev:
        return 0.0
    return (current - mean) / stddev


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def stddev(values: Sequence[float]) -> float:
    """Population standard deviation (0 for an empty series)."""
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


@dataclass
class MetricAggregate:
    """Rolling aggregate of one metric over a trailing window."""
    mean: float = 0.0
    stddev: float = 0.0
    sample_count: int = 0
    coverage: float = 0.0


def aggregate(values: Iterable[Optional[float]], window_days: int) -> MetricAggregate:
    """
    Aggregate a per-day series, ignoring missing and non-positive samples.

    A zero reading from a wearable means "not recorded", so it must not drag
    the mean down or count toward the sample gate.
    """
    samples: List[float] = [float(v) for v in values if v is not None and v > 0]
    if not samples:
        return MetricAggregate()
    coverage = len(samples) / window_days if window_days else 0.0
    return MetricAggregate(
        mean=mean(samples),
        stddev=stddev(samples),
        sample_count=len(samples),
        coverage=round(min(coverage, 1.0), 3),
    )
