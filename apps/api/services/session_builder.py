"""
Session Builder

Turns the abstract directive into today's concrete session: title,
intensity, a validation target the wearable can check, and the expected
impact on the axes. Generated focus/avoid cues are merged in when present;
the rule-based defaults below apply otherwise.
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, Optional

from services.directive_planner import Category, Directive, Stimulus
from services.state_engine import ArchetypeLens


_STIMULUS_DEFAULTS = {
    Stimulus.FLUSH: ("Recovery Session", "STEPS", 5000, "Keep heart rate in zone 1."),
    Stimulus.MAINTENANCE: ("Maintenance Work", "DURATION", 30, "Stop before fatigue accumulates."),
    Stimulus.OVERLOAD: ("High Intensity Block", "DURATION", 30, "Stop the set when form breaks down."),
    Stimulus.TEST: ("Benchmark Assessment", "DURATION", 30, "Do not pace too conservatively."),
}

_PRIMARY_AXIS = {
    Category.STRENGTH: "MECHANICAL",
    Category.ENDURANCE: "METABOLIC",
    Category.NEURAL: "NEURAL",
    Category.REGULATION: "RECOVERY",
}

_LOAD_BY_INTENSITY = {"HIGH": 8, "MODERATE": 5, "LOW": 2}

HIGH_INTENSITY_MIN_HR = 140
LOW_INTENSITY_MAX_HR = 120


@dataclass
class SessionValidation:
    type: str
    target_value: float
    min_hr: Optional[int] = None
    max_hr: Optional[int] = None


@dataclass
class Session:
    date: str
    status: str
    title: str
    subtitle: str
    label: str
    instructions: str
    intensity: str
    session_focus: str
    avoid_cue: str
    analyst_insight: str
    validation: SessionValidation
    primary_axis: str
    physiological_load: int
    lens: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def infer_intensity(directive: Directive) -> str:
    if directive.category == Category.STRENGTH or directive.stimulus == Stimulus.OVERLOAD:
        return "HIGH"
    if directive.category == Category.REGULATION or directive.stimulus == Stimulus.FLUSH:
        return "LOW"
    return "MODERATE"


def build_session(
    directive: Directive,
    lens: Optional[ArchetypeLens],
    session_date: date,
    content: Optional[Dict[str, Any]] = None,
) -> Session:
    title, validation_type, target, avoid_cue = _STIMULUS_DEFAULTS[directive.stimulus]
    subtitle = f"{lens.value.title()} lens" if lens else "Standard session"
    instructions = "Complete the prescribed activity."
    session_focus = f"Hold a steady {directive.stimulus.value.lower()} effort."

    if directive.category == Category.REGULATION:
        title = "Nervous System Regulation"
        subtitle = "Breathwork"
        instructions = "Slow nasal breathing, long exhales."
        session_focus = "Bring the nervous system down."
        avoid_cue = "Skip loud, high-stimulation environments."

    intensity = infer_intensity(directive)

    max_hr = LOW_INTENSITY_MAX_HR if intensity == "LOW" else None
    if directive.constraints.heart_rate_cap:
        max_hr = min(max_hr or directive.constraints.heart_rate_cap, directive.constraints.heart_rate_cap)

    analyst_insight = ""
    if content:
        session_focus = content.get("session_focus") or session_focus
        avoid_cue = content.get("avoid_cue") or avoid_cue
        insight = content.get("analyst_insight") or {}
        analyst_insight = insight.get("summary") or ""

    return Session(
        date=session_date.isoformat(),
        status="PENDING",
        title=title,
        subtitle=subtitle,
        label=f"{directive.category.value} // {directive.stimulus.value}",
        instructions=instructions,
        intensity=intensity,
        session_focus=session_focus,
        avoid_cue=avoid_cue,
        analyst_insight=analyst_insight,
        validation=SessionValidation(
            type=validation_type,
            target_value=target,
            min_hr=HIGH_INTENSITY_MIN_HR if intensity == "HIGH" else None,
            max_hr=max_hr,
        ),
        primary_axis=_PRIMARY_AXIS[directive.category],
        physiological_load=_LOAD_BY_INTENSITY[intensity],
        lens=lens.value if lens else None,
    )
