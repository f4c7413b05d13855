"""
Axes Calculator

Five 0-100 load axes from today's record:

    metabolic   - energy expenditure vs. baseline (active calories)
    mechanical  - tissue load (steps + strength-weighted workout minutes)
    neural      - CNS load (HIIT-weighted workout minutes), amplified when
                  HRV is suppressed
    recovery    - sleep quality, resting HR drift, HRV ratio
    regulation  - parasympathetic work (mindful minutes + mind-body sessions)

Every workout type maps to a fixed per-axis weight vector by family. The
weights are design constants, not tuned.

Trends compare against yesterday's axes: recovery moves by more than 5; load
follows the highest signed change across metabolic, mechanical and neural,
so one axis rising past +10 reads RISING even while another falls.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Iterable, Optional

from services.baselines import Baselines
from services.statistics import clamp, normalize_to_gauge
from services.wearable_provider import ActivityData, BiometricData, SleepData, Workout


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_STEPS = 8000
DEFAULT_ACTIVE_CALORIES = 500
DEFAULT_SLEEP_SECONDS = 7 * 3600
DEFAULT_HRV = 50
DEFAULT_RHR = 60

METABOLIC_SENSITIVITY = 2.5
STEPS_SENSITIVITY = 2.0
MECHANICAL_CEILING = 3000
NEURAL_CEILING = 2000
REGULATION_CEILING = 2000
MINDFUL_TARGET_MINUTES = 30

HRV_SUPPRESSION_RATIO = 0.85
NEURAL_SUPPRESSION_BOOST = 1.3
NEUTRAL_SLEEP_SCORE = 50

RECOVERY_TREND_DELTA = 5
LOAD_TREND_DELTA = 10


@dataclass(frozen=True)
class WorkoutWeights:
    metabolic: float
    mechanical: float
    neural: float
    regulation: float


ENDURANCE_WEIGHTS = WorkoutWeights(1.5, 0.3, 0.2, 0.0)
STRENGTH_WEIGHTS = WorkoutWeights(0.5, 2.0, 0.5, 0.0)
HIIT_WEIGHTS = WorkoutWeights(1.0, 0.5, 2.0, 0.0)
MIND_BODY_WEIGHTS = WorkoutWeights(0.2, 0.1, 0.1, 1.5)
UNCLASSIFIED_WEIGHTS = WorkoutWeights(0.8, 0.5, 0.3, 0.2)

# Checked in order; first family with a matching keyword wins.
WORKOUT_FAMILIES = [
    (("run", "cycling", "swim", "hiking", "rowing"), ENDURANCE_WEIGHTS),
    (("strength", "weight", "lift", "crossfit", "functional"), STRENGTH_WEIGHTS),
    (("hiit", "sprint", "plyometric", "boxing", "martial"), HIIT_WEIGHTS),
    (("yoga", "pilates", "stretch", "meditation", "breathwork"), MIND_BODY_WEIGHTS),
]


class Trend(str, Enum):
    RISING = "RISING"
    FALLING = "FALLING"
    STABLE = "STABLE"


@dataclass
class Axes:
    metabolic: int = 0
    mechanical: int = 0
    neural: int = 0
    recovery: int = 0
    regulation: int = 0

    @property
    def max_load(self) -> int:
        return max(self.metabolic, self.mechanical, self.neural)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["Axes"]:
        if not data:
            return None
        return cls(**{k: int(data.get(k, 0) or 0) for k in ("metabolic", "mechanical", "neural", "recovery", "regulation")})


@dataclass
class AxesTrends:
    recovery: Trend = Trend.STABLE
    load: Trend = Trend.STABLE

    def to_dict(self) -> Dict[str, str]:
        return {"recovery": self.recovery.value, "load": self.load.value}


@dataclass
class AxesResult:
    axes: Axes
    trends: AxesTrends


def weights_for(workout_type: str) -> WorkoutWeights:
    key = (workout_type or "").lower()
    for keywords, weights in WORKOUT_FAMILIES:
        if any(k in key for k in keywords):
            return weights
    return UNCLASSIFIED_WEIGHTS


def _weighted_minutes(workouts: Iterable[Workout], axis: str) -> float:
    return sum(getattr(weights_for(w.type), axis) * w.duration_minutes for w in workouts)


def _rhr_step(rhr: float, baseline_rhr: float) -> int:
    if rhr <= 0 or baseline_rhr <= 0:
        return 100
    if rhr > baseline_rhr * 1.10:
        return 30
    if rhr > baseline_rhr * 1.05:
        return 60
    return 100


def calculate_trends(axes: Axes, previous: Optional[Axes]) -> AxesTrends:
    if previous is None:
        return AxesTrends()

    recovery_delta = axes.recovery - previous.recovery
    if recovery_delta > RECOVERY_TREND_DELTA:
        recovery = Trend.RISING
    elif recovery_delta < -RECOVERY_TREND_DELTA:
        recovery = Trend.FALLING
    else:
        recovery = Trend.STABLE

    deltas = [
        axes.metabolic - previous.metabolic,
        axes.mechanical - previous.mechanical,
        axes.neural - previous.neural,
    ]
    biggest = max(deltas)
    if biggest > LOAD_TREND_DELTA:
        load = Trend.RISING
    elif biggest < -LOAD_TREND_DELTA:
        load = Trend.FALLING
    else:
        load = Trend.STABLE

    return AxesTrends(recovery=recovery, load=load)


def calculate_axes(
    activity: ActivityData,
    biometrics: BiometricData,
    sleep: SleepData,
    mindful_minutes: float = 0.0,
    baselines: Optional[Baselines] = None,
    previous_axes: Optional[Axes] = None,
) -> AxesResult:
    """Pure function of today's record, baselines (or defaults) and yesterday's axes."""
    steps_baseline = DEFAULT_STEPS
    calories_baseline = DEFAULT_ACTIVE_CALORIES
    hrv_baseline = DEFAULT_HRV
    rhr_baseline = DEFAULT_RHR
    if baselines is not None:
        steps_baseline = baselines.steps_mean or DEFAULT_STEPS
        calories_baseline = baselines.active_calories_mean or DEFAULT_ACTIVE_CALORIES
        hrv_baseline = baselines.hrv.mean or DEFAULT_HRV
        rhr_baseline = baselines.resting_heart_rate.mean or DEFAULT_RHR

    workouts = activity.workouts

    metabolic = normalize_to_gauge(activity.active_calories, calories_baseline, METABOLIC_SENSITIVITY)

    steps_gauge = normalize_to_gauge(activity.steps, steps_baseline, STEPS_SENSITIVITY)
    mechanical_load = clamp(_weighted_minutes(workouts, "mechanical") / MECHANICAL_CEILING * 100, 0, 100)
    mechanical = 0.4 * steps_gauge + 0.6 * mechanical_load

    neural = clamp(_weighted_minutes(workouts, "neural") / NEURAL_CEILING * 100, 0, 100)
    hrv_ratio = 1.0
    if biometrics.hrv > 0 and hrv_baseline > 0:
        hrv_ratio = biometrics.hrv / hrv_baseline
        if hrv_ratio < HRV_SUPPRESSION_RATIO:
            neural = clamp(neural * NEURAL_SUPPRESSION_BOOST, 0, 100)

    sleep_score = sleep.score if sleep.score > 0 else NEUTRAL_SLEEP_SCORE
    recovery = clamp(
        0.5 * sleep_score
        + 0.3 * _rhr_step(biometrics.resting_heart_rate, rhr_baseline)
        + 0.2 * (hrv_ratio * 100),
        0,
        100,
    )

    mindful_gauge = normalize_to_gauge(mindful_minutes or 0.0, MINDFUL_TARGET_MINUTES, 1.0)
    regulation_load = clamp(_weighted_minutes(workouts, "regulation") / REGULATION_CEILING * 100, 0, 100)
    regulation = clamp(mindful_gauge + regulation_load, 0, 100)

    axes = Axes(
        metabolic=int(round(metabolic)),
        mechanical=int(round(mechanical)),
        neural=int(round(neural)),
        recovery=int(round(recovery)),
        regulation=int(round(regulation)),
    )
    return AxesResult(axes=axes, trends=calculate_trends(axes, previous_axes))


def physiological_load(axes: Axes) -> float:
    """Single load figure used for load density (mean of the three load axes)."""
    return round((axes.metabolic + axes.mechanical + axes.neural) / 3, 1)
