"""
Vitality Scorer

Today's HRV, resting heart rate and sleep, scored against the operator's
rolling baselines into a single 1-100 composite, with two independent
verdicts:

    availability  - can a score be produced at all?
    confidence    - how far should the score be trusted?

Gate (floor on the minimum):
    min_samples = min(n_hrv, n_rhr, n_sleep). Sleep only joins the gate once
    its own baseline is real (n >= 2); below that, sleep goes through its
    fallback chain instead. min_samples < 2 => UNAVAILABLE /
    INSUFFICIENT_BASELINE regardless of today's readings. Otherwise the
    ceiling is LOW (>=2), MEDIUM (>=14) or HIGH (>=21), where today's reading
    counts as one more sample.

Caps on top of the ceiling:
    - HRV missing today       -> LOW (HRV is the primary signal)
    - RHR missing today       -> at most MEDIUM, neutral RHR sub-score
    - sleep not measured      -> at most MEDIUM

Sub-score = clamp((z + 2) * 25, 1, 100): z=0 maps to 50, +/-2 sigma spans
the scale. RHR z is inverted (lower is better).

Composite:
    HRV present            0.4*sleep + 0.4*hrv + 0.2*rhr
    HRV absent, RHR there  0.95 * (0.6*sleep + 0.4*rhr)
    neither                UNAVAILABLE / INSUFFICIENT_DATA

The evidence list is part of the result contract: every |z| > 0.5
deviation and every fallback taken is recorded there.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from services.baselines import Baselines
from services.statistics import clamp, z_score
from services.wearable_provider import BiometricData, SleepData, SleepSource

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GATE_LOW = 2
GATE_MEDIUM = 14
GATE_HIGH = 21

DEFAULT_SLEEP_SECONDS = 6 * 3600
EVIDENCE_Z_THRESHOLD = 0.5
NEUTRAL_SUB_SCORE = 50

WEIGHT_SLEEP = 0.4
WEIGHT_HRV = 0.4
WEIGHT_RHR = 0.2

NO_HRV_WEIGHT_SLEEP = 0.6
NO_HRV_WEIGHT_RHR = 0.4
NO_HRV_PENALTY = 0.95


class Availability(str, Enum):
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"


class UnavailableReason(str, Enum):
    INSUFFICIENT_BASELINE = "INSUFFICIENT_BASELINE"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


class Confidence(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


_CONFIDENCE_ORDER = [Confidence.LOW, Confidence.MEDIUM, Confidence.HIGH]


def _cap(confidence: Confidence, ceiling: Confidence) -> Confidence:
    return min(confidence, ceiling, key=_CONFIDENCE_ORDER.index)


class ReasonCode(str, Enum):
    OK = "OK"
    NO_HRV_TODAY = "NO_HRV_TODAY"
    NO_RHR_TODAY = "NO_RHR_TODAY"
    SLEEP_DEFAULT = "SLEEP_DEFAULT"
    SLEEP_ESTIMATED = "SLEEP_ESTIMATED"
    SLEEP_MANUAL = "SLEEP_MANUAL"
    NO_SLEEP_BASELINE = "NO_SLEEP_BASELINE"
    LIMITED_BASELINE = "LIMITED_BASELINE"
    INSUFFICIENT_BASELINE = "INSUFFICIENT_BASELINE"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"


@dataclass
class VitalityResult:
    availability: Availability
    vitality: Optional[int] = None
    confidence: Confidence = Confidence.LOW
    is_estimated: bool = False
    reason_code: ReasonCode = ReasonCode.OK
    unavailable_reason: Optional[UnavailableReason] = None
    sub_scores: Dict[str, Optional[float]] = field(default_factory=dict)
    z_scores: Dict[str, Optional[float]] = field(default_factory=dict)
    sleep_seconds: float = 0.0
    sleep_source: SleepSource = SleepSource.MEASURED
    evidence: List[str] = field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return self.availability == Availability.AVAILABLE

    def to_detail(self) -> Dict[str, Any]:
        return {
            "sub_scores": self.sub_scores,
            "z_scores": self.z_scores,
            "sleep_seconds": self.sleep_seconds,
            "sleep_source": self.sleep_source.value,
            "evidence": list(self.evidence),
        }


def z_score_to_score(z: float) -> float:
    """Map a z-score onto 1-100; monotonic, 50 at z=0."""
    return clamp((z + 2) * 25, 1, 100)


def _ceiling_for(samples: int) -> Confidence:
    if samples >= GATE_HIGH:
        return Confidence.HIGH
    if samples >= GATE_MEDIUM:
        return Confidence.MEDIUM
    return Confidence.LOW


def _describe_deviation(label: str, z: float, higher_is_better: bool = True) -> str:
    direction = "above" if z > 0 else "below"
    if not higher_is_better:
        # inverted z: positive means the raw reading is below baseline
        direction = "below" if z > 0 else "above"
    return f"{label} {direction} baseline (z={z:+.1f})"


class VitalityScorer:
    """Pure scorer: same inputs, same result."""

    def calculate(
        self,
        biometrics: BiometricData,
        sleep: SleepData,
        baselines: Optional[Baselines],
    ) -> VitalityResult:
        baselines = baselines or Baselines()
        evidence: List[str] = []

        n_hrv = baselines.hrv.sample_count
        n_rhr = baselines.resting_heart_rate.sample_count
        n_sleep = baselines.sleep_seconds.sample_count
        sleep_baseline_real = n_sleep >= GATE_LOW and baselines.sleep_seconds.mean > 0

        has_hrv = biometrics.hrv > 0
        has_rhr = biometrics.resting_heart_rate > 0
        has_measured_sleep = sleep.total_duration_seconds > 0

        # 1. Quality gate
        gate_counts = [n_hrv, n_rhr]
        if sleep_baseline_real:
            gate_counts.append(n_sleep)
        min_samples = min(gate_counts)
        if min_samples < GATE_LOW:
            logger.info(
                f"Vitality unavailable: baseline too thin (hrv={n_hrv}, rhr={n_rhr}, sleep={n_sleep})"
            )
            return VitalityResult(
                availability=Availability.UNAVAILABLE,
                unavailable_reason=UnavailableReason.INSUFFICIENT_BASELINE,
                reason_code=ReasonCode.INSUFFICIENT_BASELINE,
                evidence=[f"Baseline has fewer than {GATE_LOW} samples (min={min_samples})"],
            )

        if not has_hrv and not has_rhr:
            return VitalityResult(
                availability=Availability.UNAVAILABLE,
                unavailable_reason=UnavailableReason.INSUFFICIENT_DATA,
                reason_code=ReasonCode.INSUFFICIENT_DATA,
                evidence=["No HRV or resting heart rate reading today"],
            )

        effective = [n_hrv + (1 if has_hrv else 0), n_rhr + (1 if has_rhr else 0)]
        if sleep_baseline_real:
            effective.append(n_sleep + (1 if has_measured_sleep else 0))
        confidence = _ceiling_for(min(effective))
        reason = ReasonCode.OK if confidence == Confidence.HIGH else ReasonCode.LIMITED_BASELINE

        # 2. Sleep fallback chain
        is_estimated = False
        if has_measured_sleep:
            sleep_seconds = sleep.total_duration_seconds
            sleep_source = sleep.source
        elif baselines.sleep_seconds.mean > 0:
            sleep_seconds = baselines.sleep_seconds.mean
            if baselines.sleep_user_entered:
                sleep_source = SleepSource.MANUAL
                evidence.append(f"Sleep not measured; using confirmed {sleep_seconds / 3600:.1f}h")
            else:
                sleep_source = SleepSource.ESTIMATED_7D
                is_estimated = True
                evidence.append(f"Sleep not measured; using baseline average {sleep_seconds / 3600:.1f}h")
        else:
            sleep_seconds = float(DEFAULT_SLEEP_SECONDS)
            sleep_source = SleepSource.DEFAULT_6H
            is_estimated = True
            evidence.append("Sleep not measured and no baseline; assuming 6h")

        z_sleep: Optional[float] = None
        if sleep_source == SleepSource.MEASURED and sleep_baseline_real:
            z_sleep = z_score(sleep_seconds, baselines.sleep_seconds.mean, baselines.sleep_seconds.stddev)
            sleep_score = z_score_to_score(z_sleep)
        else:
            sleep_score = float(NEUTRAL_SUB_SCORE)
            if sleep_source == SleepSource.MEASURED:
                is_estimated = True
                evidence.append("Sleep baseline not established; sleep scored neutral")
                reason = ReasonCode.NO_SLEEP_BASELINE

        if sleep_source != SleepSource.MEASURED:
            confidence = _cap(confidence, Confidence.MEDIUM)
            reason = {
                SleepSource.DEFAULT_6H: ReasonCode.SLEEP_DEFAULT,
                SleepSource.ESTIMATED_7D: ReasonCode.SLEEP_ESTIMATED,
                SleepSource.MANUAL: ReasonCode.SLEEP_MANUAL,
            }[sleep_source]

        # 3. RHR, inverted
        z_rhr: Optional[float] = None
        if has_rhr:
            z_rhr = z_score(
                baselines.resting_heart_rate.mean,
                biometrics.resting_heart_rate,
                baselines.resting_heart_rate.stddev,
            )
            rhr_score = z_score_to_score(z_rhr)
        else:
            rhr_score = float(NEUTRAL_SUB_SCORE)
            confidence = _cap(confidence, Confidence.MEDIUM)
            reason = ReasonCode.NO_RHR_TODAY
            evidence.append("No resting heart rate today; scored neutral")

        # 4. HRV, primary
        z_hrv: Optional[float] = None
        hrv_score: Optional[float] = None
        if has_hrv:
            z_hrv = z_score(biometrics.hrv, baselines.hrv.mean, baselines.hrv.stddev)
            hrv_score = z_score_to_score(z_hrv)
        else:
            confidence = Confidence.LOW
            reason = ReasonCode.NO_HRV_TODAY
            evidence.append("No HRV reading today; confidence limited to LOW")

        for label, z, higher_is_better in (
            ("HRV", z_hrv, True),
            ("Resting HR", z_rhr, False),
            ("Sleep", z_sleep, True),
        ):
            if z is not None and abs(z) > EVIDENCE_Z_THRESHOLD:
                evidence.append(_describe_deviation(label, z, higher_is_better))

        # 6. Composite
        if hrv_score is not None:
            raw = WEIGHT_SLEEP * sleep_score + WEIGHT_HRV * hrv_score + WEIGHT_RHR * rhr_score
        else:
            raw = NO_HRV_PENALTY * (NO_HRV_WEIGHT_SLEEP * sleep_score + NO_HRV_WEIGHT_RHR * rhr_score)
        vitality = int(clamp(round(raw), 1, 100))

        return VitalityResult(
            availability=Availability.AVAILABLE,
            vitality=vitality,
            confidence=confidence,
            is_estimated=is_estimated,
            reason_code=reason,
            sub_scores={
                "hrv": round(hrv_score, 1) if hrv_score is not None else None,
                "rhr": round(rhr_score, 1),
                "sleep": round(sleep_score, 1),
            },
            z_scores={
                "hrv": round(z_hrv, 2) if z_hrv is not None else None,
                "rhr": round(z_rhr, 2) if z_rhr is not None else None,
                "sleep": round(z_sleep, 2) if z_sleep is not None else None,
            },
            sleep_seconds=sleep_seconds,
            sleep_source=sleep_source,
            evidence=evidence,
        )
