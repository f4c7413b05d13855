"""
Directive Planner

System state -> the day's directive (training category, stimulus type,
target RPE, constraints), plus a 3-day horizon forecast from the recovery
trend.

    RECOVERY_MODE      REGULATION / FLUSH        no impact, HR cap 120
    PHYSICAL_STRAIN    ENDURANCE  / FLUSH        no impact, HR cap 130
    HIGH_STRAIN        ENDURANCE  / MAINTENANCE  HR cap 145
    BUILDING_CAPACITY  ENDURANCE  / MAINTENANCE
    NEEDS_STIMULATION  ENDURANCE  / OVERLOAD
    READY_FOR_LOAD     STRENGTH   / OVERLOAD

The horizon is a small Markov-like chain: each projected day's state is a
function of the previous projected state, the recovery trend and the day
offset.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from services.axes_calculator import Trend
from services.state_engine import SystemState


class Category(str, Enum):
    STRENGTH = "STRENGTH"
    ENDURANCE = "ENDURANCE"
    NEURAL = "NEURAL"
    REGULATION = "REGULATION"


class Stimulus(str, Enum):
    OVERLOAD = "OVERLOAD"
    MAINTENANCE = "MAINTENANCE"
    FLUSH = "FLUSH"
    TEST = "TEST"


TARGET_RPE = {
    Stimulus.FLUSH: 3,
    Stimulus.MAINTENANCE: 5,
    Stimulus.OVERLOAD: 8,
    Stimulus.TEST: 9,
}

HORIZON_DAYS = 3


@dataclass
class Constraints:
    allow_impact: bool = True
    required_equipment: List[str] = field(default_factory=list)
    heart_rate_cap: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allow_impact": self.allow_impact,
            "required_equipment": list(self.required_equipment),
            "heart_rate_cap": self.heart_rate_cap,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Constraints":
        data = data or {}
        return cls(
            allow_impact=bool(data.get("allow_impact", True)),
            required_equipment=list(data.get("required_equipment") or []),
            heart_rate_cap=data.get("heart_rate_cap"),
        )


@dataclass
class Directive:
    category: Category
    stimulus: Stimulus
    target_rpe: int
    constraints: Constraints

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "stimulus": self.stimulus.value,
            "target_rpe": self.target_rpe,
            "constraints": self.constraints.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Directive":
        stimulus = Stimulus(data["stimulus"])
        return cls(
            category=Category(data["category"]),
            stimulus=stimulus,
            target_rpe=int(data.get("target_rpe") or TARGET_RPE[stimulus]),
            constraints=Constraints.from_dict(data.get("constraints")),
        )


@dataclass
class HorizonDay:
    day_offset: int
    state: SystemState
    directive: Directive

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day_offset": self.day_offset,
            "state": self.state.value,
            "directive": self.directive.to_dict(),
        }


@dataclass
class DirectivePlan:
    state: SystemState
    directive: Directive
    horizon: List[HorizonDay]

    def to_dict(self) -> Dict[str, Any]:
        data = self.directive.to_dict()
        data["state"] = self.state.value
        data["horizon"] = [d.to_dict() for d in self.horizon]
        return data


_STATE_DIRECTIVES = {
    SystemState.RECOVERY_MODE: (Category.REGULATION, Stimulus.FLUSH, False, 120),
    SystemState.PHYSICAL_STRAIN: (Category.ENDURANCE, Stimulus.FLUSH, False, 130),
    SystemState.HIGH_STRAIN: (Category.ENDURANCE, Stimulus.MAINTENANCE, True, 145),
    SystemState.BUILDING_CAPACITY: (Category.ENDURANCE, Stimulus.MAINTENANCE, True, None),
    SystemState.NEEDS_STIMULATION: (Category.ENDURANCE, Stimulus.OVERLOAD, True, None),
    SystemState.READY_FOR_LOAD: (Category.STRENGTH, Stimulus.OVERLOAD, True, None),
}


def directive_for_state(state: SystemState, equipment: Optional[List[str]] = None) -> Directive:
    category, stimulus, allow_impact, hr_cap = _STATE_DIRECTIVES[state]
    return Directive(
        category=category,
        stimulus=stimulus,
        target_rpe=TARGET_RPE[stimulus],
        constraints=Constraints(
            allow_impact=allow_impact,
            required_equipment=sorted(equipment or []),
            heart_rate_cap=hr_cap,
        ),
    )


def predict_next_state(state: SystemState, recovery_trend: Trend, day_offset: int) -> SystemState:
    if state == SystemState.RECOVERY_MODE:
        return SystemState.BUILDING_CAPACITY if recovery_trend == Trend.RISING else SystemState.RECOVERY_MODE
    if state == SystemState.PHYSICAL_STRAIN:
        return SystemState.BUILDING_CAPACITY if recovery_trend == Trend.RISING else SystemState.RECOVERY_MODE
    if state == SystemState.HIGH_STRAIN:
        return SystemState.RECOVERY_MODE
    if state == SystemState.BUILDING_CAPACITY:
        return SystemState.RECOVERY_MODE if recovery_trend == Trend.FALLING else SystemState.READY_FOR_LOAD
    if state == SystemState.READY_FOR_LOAD:
        # A loaded day is absorbed the day after
        return SystemState.BUILDING_CAPACITY if day_offset == 1 else SystemState.READY_FOR_LOAD
    return SystemState.READY_FOR_LOAD


def plan_directive(
    state: SystemState,
    recovery_trend: Trend = Trend.STABLE,
    equipment: Optional[List[str]] = None,
) -> DirectivePlan:
    horizon = [HorizonDay(0, state, directive_for_state(state, equipment))]
    projected = state
    for offset in range(1, HORIZON_DAYS):
        projected = predict_next_state(projected, recovery_trend, offset)
        horizon.append(HorizonDay(offset, projected, directive_for_state(projected, equipment)))
    return DirectivePlan(state=state, directive=horizon[0].directive, horizon=horizon)
