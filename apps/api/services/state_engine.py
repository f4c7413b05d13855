"""
State Engine

Two pure functions over the axes:

    determine_system_state   - ordered rule list, first match wins
    determine_archetype_lens - context overrides, then axis dominance

Rule order is the contract. Recovery mode outranks every strain rule
(regulation=85, mechanical=90, recovery=20 is RECOVERY_MODE, never
PHYSICAL_STRAIN).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from services.axes_calculator import Axes


class SystemState(str, Enum):
    RECOVERY_MODE = "RECOVERY_MODE"
    PHYSICAL_STRAIN = "PHYSICAL_STRAIN"
    HIGH_STRAIN = "HIGH_STRAIN"
    BUILDING_CAPACITY = "BUILDING_CAPACITY"
    NEEDS_STIMULATION = "NEEDS_STIMULATION"
    READY_FOR_LOAD = "READY_FOR_LOAD"


class ArchetypeLens(str, Enum):
    GUARDIAN = "GUARDIAN"      # short sleep, still moving: protect
    PHOENIX = "PHOENIX"        # rehab / therapy day
    NOMAD = "NOMAD"            # travel
    GLADIATOR = "GLADIATOR"    # everything high
    INITIATE = "INITIATE"      # no dominant axis
    OPERATOR = "OPERATOR"      # generalist
    RANGER = "RANGER"          # metabolic dominant
    PALADIN = "PALADIN"        # mechanical dominant, high step count
    TANK = "TANK"              # mechanical dominant
    STRIKER = "STRIKER"        # neural dominant
    MONK = "MONK"              # regulation dominant


GUARDIAN_MAX_SLEEP_HOURS = 5
GUARDIAN_MIN_STEPS = 6000
PALADIN_MIN_STEPS = 12000
GLADIATOR_FLOOR = 70
REHAB_KEYWORDS = ("rehab", "therapy", "physio")


@dataclass
class LensContext:
    sleep_hours: float = 0.0
    steps: float = 0.0
    workout_types: tuple = ()
    location_changed: bool = False


def determine_system_state(axes: Axes) -> SystemState:
    max_load = axes.max_load

    if axes.regulation > 80 or (axes.recovery < 30 and max_load > 50):
        return SystemState.RECOVERY_MODE
    if axes.mechanical > 85 and axes.recovery < 50:
        return SystemState.PHYSICAL_STRAIN
    if (axes.neural > 85 or max_load > 90) and axes.recovery < 60:
        return SystemState.HIGH_STRAIN
    if axes.recovery > 60 and (axes.metabolic > 60 or axes.mechanical > 60):
        return SystemState.BUILDING_CAPACITY
    if max_load < 30 and axes.recovery > 70:
        return SystemState.NEEDS_STIMULATION
    return SystemState.READY_FOR_LOAD


def determine_archetype_lens(axes: Axes, context: Optional[LensContext] = None) -> ArchetypeLens:
    context = context or LensContext()

    # Context overrides
    if 0 < context.sleep_hours < GUARDIAN_MAX_SLEEP_HOURS and context.steps > GUARDIAN_MIN_STEPS:
        return ArchetypeLens.GUARDIAN
    if any(k in (t or "").lower() for t in context.workout_types for k in REHAB_KEYWORDS):
        return ArchetypeLens.PHOENIX
    if context.location_changed:
        return ArchetypeLens.NOMAD

    # Dominance; order breaks ties
    ranked = [
        ("metabolic", axes.metabolic),
        ("mechanical", axes.mechanical),
        ("neural", axes.neural),
        ("regulation", axes.regulation),
    ]
    values = [v for _, v in ranked]
    if all(v > GLADIATOR_FLOOR for v in values):
        return ArchetypeLens.GLADIATOR

    top = max(values)
    dominant = next(name for name, v in ranked if v == top)
    if dominant == "metabolic":
        return ArchetypeLens.RANGER
    if dominant == "mechanical":
        return ArchetypeLens.PALADIN if context.steps > PALADIN_MIN_STEPS else ArchetypeLens.TANK
    if dominant == "neural":
        return ArchetypeLens.STRIKER
    return ArchetypeLens.MONK
