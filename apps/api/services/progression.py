"""
Progression

Folds per-day alignment verdicts (newest first) into an alignment score,
a consistency rank and a streak.

Today is still in progress when the dawn run scores it: a not-yet-aligned
today is left out of the fold rather than breaking the streak at 5 AM. An
aligned today counts.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from services.alignment_tracker import AlignmentStatus

PROGRESSION_WINDOW_DAYS = 30
OPERATOR_THRESHOLD = 90
CANDIDATE_THRESHOLD = 70


class ConsistencyRank(str, Enum):
    OPERATOR = "OPERATOR"
    CANDIDATE = "CANDIDATE"
    UNCALIBRATED = "UNCALIBRATED"


@dataclass
class ProgressionResult:
    alignment_score: int = 0
    rank: ConsistencyRank = ConsistencyRank.UNCALIBRATED
    consistency_streak: int = 0


def calculate_progression(
    history: List[Optional[str]],
    today_in_progress: bool = True,
) -> ProgressionResult:
    """history: alignment statuses, newest first, today at index 0."""
    statuses = list(history)
    if statuses and today_in_progress and statuses[0] != AlignmentStatus.ALIGNED.value:
        statuses = statuses[1:]
    # days without a directive (backfilled history) carry no verdict
    statuses = [s for s in statuses if s]

    window = statuses[:PROGRESSION_WINDOW_DAYS]
    if not window:
        return ProgressionResult()

    aligned = sum(1 for s in window if s == AlignmentStatus.ALIGNED.value)
    score = round(aligned / len(window) * 100)

    if score >= OPERATOR_THRESHOLD:
        rank = ConsistencyRank.OPERATOR
    elif score >= CANDIDATE_THRESHOLD:
        rank = ConsistencyRank.CANDIDATE
    else:
        rank = ConsistencyRank.UNCALIBRATED

    streak = 0
    for status in statuses:
        if status != AlignmentStatus.ALIGNED.value:
            break
        streak += 1

    return ProgressionResult(alignment_score=score, rank=rank, consistency_streak=streak)
