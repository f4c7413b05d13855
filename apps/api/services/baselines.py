"""
Baseline Store

Rolling 30-day aggregates per metric (mean, stddev, sample count,
coverage). Baselines are recomputed wholesale from a historical fetch,
never nudged incrementally, and live in a single row
(``OperatorBaselines``).

A stored row is stale when any of the fields added in later revisions is
missing (workout minutes, VO2max, HRV sample count): the next run treats it
as a cold start and re-derives everything. A freshly computed row always
fills those fields (0 when no samples exist) so a device without VO2max
does not trigger a backfill on every run.

The only write outside recomputation is the operator confirming last
night's sleep (sleep-confirm smart card), which pins the sleep mean and
marks it user-entered.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models import OperatorBaselines
from services.statistics import MetricAggregate
from services.wearable_provider import HistoricalData

logger = logging.getLogger(__name__)


BASELINE_WINDOW_DAYS = 30


@dataclass
class Baselines:
    hrv: MetricAggregate = field(default_factory=MetricAggregate)
    resting_heart_rate: MetricAggregate = field(default_factory=MetricAggregate)
    sleep_seconds: MetricAggregate = field(default_factory=MetricAggregate)
    steps_mean: float = 0.0
    active_calories_mean: float = 0.0
    workout_minutes_mean: float = 0.0
    vo2_max_mean: float = 0.0
    sleep_user_entered: bool = False
    window_days: int = BASELINE_WINDOW_DAYS
    calculated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, row: OperatorBaselines) -> "Baselines":
        return cls(
            hrv=MetricAggregate(
                mean=row.hrv_mean or 0.0,
                stddev=row.hrv_stddev or 0.0,
                sample_count=row.hrv_sample_count or 0,
                coverage=row.hrv_coverage or 0.0,
            ),
            resting_heart_rate=MetricAggregate(
                mean=row.rhr_mean or 0.0,
                stddev=row.rhr_stddev or 0.0,
                sample_count=row.rhr_sample_count or 0,
                coverage=row.rhr_coverage or 0.0,
            ),
            sleep_seconds=MetricAggregate(
                mean=row.sleep_mean_seconds or 0.0,
                stddev=row.sleep_stddev_seconds or 0.0,
                sample_count=row.sleep_sample_count or 0,
                coverage=row.sleep_coverage or 0.0,
            ),
            steps_mean=row.steps_mean or 0.0,
            active_calories_mean=row.active_calories_mean or 0.0,
            workout_minutes_mean=row.workout_minutes_mean or 0.0,
            vo2_max_mean=row.vo2max_mean or 0.0,
            sleep_user_entered=bool(row.sleep_user_entered),
            window_days=row.window_days or BASELINE_WINDOW_DAYS,
            calculated_at=row.calculated_at,
        )

    def apply_to(self, row: OperatorBaselines) -> OperatorBaselines:
        row.hrv_mean = self.hrv.mean
        row.hrv_stddev = self.hrv.stddev
        row.hrv_sample_count = self.hrv.sample_count
        row.hrv_coverage = self.hrv.coverage
        row.rhr_mean = self.resting_heart_rate.mean
        row.rhr_stddev = self.resting_heart_rate.stddev
        row.rhr_sample_count = self.resting_heart_rate.sample_count
        row.rhr_coverage = self.resting_heart_rate.coverage
        row.sleep_mean_seconds = self.sleep_seconds.mean
        row.sleep_stddev_seconds = self.sleep_seconds.stddev
        row.sleep_sample_count = self.sleep_seconds.sample_count
        row.sleep_coverage = self.sleep_seconds.coverage
        row.steps_mean = self.steps_mean
        row.active_calories_mean = self.active_calories_mean
        row.workout_minutes_mean = self.workout_minutes_mean
        row.vo2max_mean = self.vo2_max_mean
        row.sleep_user_entered = self.sleep_user_entered
        row.window_days = self.window_days
        row.calculated_at = self.calculated_at
        return row


def needs_recalculation(row: Optional[OperatorBaselines]) -> bool:
    """True on cold start or when the stored row predates a required field."""
    if row is None:
        return True
    return (
        row.workout_minutes_mean is None
        or row.vo2max_mean is None
        or row.hrv_sample_count is None
    )


def compute_baselines(history: HistoricalData, window_days: int = BASELINE_WINDOW_DAYS) -> Baselines:
    """Wholesale recomputation from a historical fetch."""
    averages = history.averages
    baselines = Baselines(
        hrv=averages["hrv"],
        resting_heart_rate=averages["resting_heart_rate"],
        sleep_seconds=averages["sleep_seconds"],
        steps_mean=averages["steps"].mean,
        active_calories_mean=averages["active_calories"].mean,
        workout_minutes_mean=averages["workout_minutes"].mean,
        vo2_max_mean=averages["vo2_max"].mean,
        sleep_user_entered=False,
        window_days=window_days,
        calculated_at=datetime.now(timezone.utc),
    )
    logger.info(
        f"Baselines computed: hrv n={baselines.hrv.sample_count}, "
        f"rhr n={baselines.resting_heart_rate.sample_count}, "
        f"sleep n={baselines.sleep_seconds.sample_count}"
    )
    return baselines


def apply_sleep_confirmation(row: OperatorBaselines, sleep_seconds: float) -> OperatorBaselines:
    """Pin the sleep baseline to an operator-confirmed duration."""
    row.sleep_mean_seconds = float(sleep_seconds)
    row.sleep_user_entered = True
    if not row.sleep_sample_count:
        row.sleep_sample_count = 1
    return row
