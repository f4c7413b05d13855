"""
Alignment Tracker

Did the day's actual activity match the directive's stimulus? Effort is
not rewarded; alignment is.

    FLUSH             misaligned above 600 active kcal or any workout
                      averaging > 130 bpm
    MAINTENANCE       aligned above 300 active kcal
    OVERLOAD / TEST   aligned above 600 active kcal, or any workout with
                      > 300 kcal or averaging > 140 bpm
    no directive      PENDING
"""

from enum import Enum
from typing import Optional

from services.directive_planner import Directive, Stimulus
from services.wearable_provider import ActivityData


FLUSH_CALORIE_CAP = 600
FLUSH_HR_CAP = 130
MAINTENANCE_CALORIE_FLOOR = 300
OVERLOAD_CALORIE_FLOOR = 600
OVERLOAD_WORKOUT_CALORIES = 300
OVERLOAD_WORKOUT_HR = 140


class AlignmentStatus(str, Enum):
    ALIGNED = "ALIGNED"
    MISALIGNED = "MISALIGNED"
    PENDING = "PENDING"


def check_daily_alignment(actual: ActivityData, directive: Optional[Directive]) -> AlignmentStatus:
    if directive is None:
        return AlignmentStatus.PENDING

    if directive.stimulus == Stimulus.FLUSH:
        if actual.active_calories > FLUSH_CALORIE_CAP:
            return AlignmentStatus.MISALIGNED
        if any((w.avg_heart_rate or 0) > FLUSH_HR_CAP for w in actual.workouts):
            return AlignmentStatus.MISALIGNED
        return AlignmentStatus.ALIGNED

    if directive.stimulus == Stimulus.MAINTENANCE:
        if actual.active_calories > MAINTENANCE_CALORIE_FLOOR:
            return AlignmentStatus.ALIGNED
        return AlignmentStatus.MISALIGNED

    if actual.active_calories > OVERLOAD_CALORIE_FLOOR:
        return AlignmentStatus.ALIGNED
    if any(
        w.active_calories > OVERLOAD_WORKOUT_CALORIES or (w.avg_heart_rate or 0) > OVERLOAD_WORKOUT_HR
        for w in actual.workouts
    ):
        return AlignmentStatus.ALIGNED
    return AlignmentStatus.MISALIGNED
