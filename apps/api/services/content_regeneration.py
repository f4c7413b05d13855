"""
Content Regeneration Policy

Generated focus/avoid/insight text is day-stable: it is regenerated only
when the part of the directive it talks about changed. The comparison is a
snapshot of (category, stimulus, allow_impact, heart_rate_cap, sorted
equipment), not the whole directive, so recomputation noise in scores does
not churn the text.

Gates on a changed snapshot:
    - cooldown: 2 hours since the last generation
    - cap: 3 generations per day
Critical safety transitions skip both gates: the category moving into or
out of REGULATION, or the stimulus flipping between FLUSH and OVERLOAD.
When a gate holds, the old text is kept and marked stale.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from services.directive_planner import Category, Directive, Stimulus


REGENERATION_COOLDOWN = timedelta(hours=2)
MAX_GENERATIONS_PER_DAY = 3


class RegenerationDecision(str, Enum):
    INITIAL = "INITIAL"
    UNCHANGED = "UNCHANGED"
    CHANGED = "CHANGED"
    CRITICAL_SAFETY = "CRITICAL_SAFETY"
    COOLDOWN = "COOLDOWN"
    DAILY_CAP = "DAILY_CAP"


_REGENERATE = {RegenerationDecision.INITIAL, RegenerationDecision.CHANGED, RegenerationDecision.CRITICAL_SAFETY}


@dataclass(frozen=True)
class DirectiveSnapshot:
    category: str
    stimulus: str
    allow_impact: bool
    heart_rate_cap: Optional[int]
    equipment: List[str] = field(default_factory=list)

    @classmethod
    def from_directive(cls, directive: Directive) -> "DirectiveSnapshot":
        c = directive.constraints
        return cls(
            category=directive.category.value,
            stimulus=directive.stimulus.value,
            allow_impact=c.allow_impact,
            heart_rate_cap=c.heart_rate_cap,
            equipment=sorted(c.required_equipment),
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["DirectiveSnapshot"]:
        if not data:
            return None
        return cls(
            category=data.get("category"),
            stimulus=data.get("stimulus"),
            allow_impact=bool(data.get("allow_impact", True)),
            heart_rate_cap=data.get("heart_rate_cap"),
            equipment=sorted(data.get("equipment") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RegenerationVerdict:
    decision: RegenerationDecision

    @property
    def should_regenerate(self) -> bool:
        return self.decision in _REGENERATE


def is_critical_safety_transition(previous: DirectiveSnapshot, current: DirectiveSnapshot) -> bool:
    regulation = Category.REGULATION.value
    if (previous.category == regulation) != (current.category == regulation):
        return True
    flip = {previous.stimulus, current.stimulus}
    return flip == {Stimulus.FLUSH.value, Stimulus.OVERLOAD.value}


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def decide_regeneration(
    current: DirectiveSnapshot,
    previous: Optional[DirectiveSnapshot],
    has_content: bool,
    last_generated_at: Optional[datetime],
    generations_today: int,
    now: Optional[datetime] = None,
) -> RegenerationVerdict:
    if previous is None or not has_content:
        return RegenerationVerdict(RegenerationDecision.INITIAL)
    if previous == current:
        return RegenerationVerdict(RegenerationDecision.UNCHANGED)
    if is_critical_safety_transition(previous, current):
        return RegenerationVerdict(RegenerationDecision.CRITICAL_SAFETY)

    now = _as_utc(now or datetime.now(timezone.utc))
    if last_generated_at is not None and now - _as_utc(last_generated_at) < REGENERATION_COOLDOWN:
        return RegenerationVerdict(RegenerationDecision.COOLDOWN)
    if generations_today >= MAX_GENERATIONS_PER_DAY:
        return RegenerationVerdict(RegenerationDecision.DAILY_CAP)
    return RegenerationVerdict(RegenerationDecision.CHANGED)
