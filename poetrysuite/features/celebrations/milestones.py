"""Static streak milestone table. Compiled in, never mutated at runtime."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Tuple

VisualTier = Literal["spark", "bronze", "silver", "gold", "platinum", "diamond"]


@dataclass(frozen=True)
class Milestone:
    threshold_days: int
    label: str
    visual_tier: VisualTier


MILESTONES: Tuple[Milestone, ...] = (
    Milestone(3, "Three-Day Spark", "spark"),
    Milestone(7, "First Week", "bronze"),
    Milestone(14, "Fortnight of Verse", "bronze"),
    Milestone(30, "Month of Ink", "silver"),
    Milestone(50, "Fifty Days Strong", "silver"),
    Milestone(100, "Century Poet", "gold"),
    Milestone(180, "Half-Year Muse", "platinum"),
    Milestone(365, "Year of Poetry", "diamond"),
)


def validate_milestones(milestones: Sequence[Milestone]) -> Tuple[Milestone, ...]:
    """Thresholds must be positive and strictly increasing."""
    previous = 0
    for milestone in milestones:
        if milestone.threshold_days <= previous:
            raise ValueError(
                f"milestone thresholds must be strictly increasing: {milestone.threshold_days} after {previous}"
            )
        previous = milestone.threshold_days
    return tuple(milestones)


validate_milestones(MILESTONES)


def milestone_for(days: int, milestones: Sequence[Milestone] = MILESTONES) -> Optional[Milestone]:
    """The milestone whose threshold is exactly ``days``."""
    for milestone in milestones:
        if milestone.threshold_days == days:
            return milestone
    return None


def next_milestone(current_streak: int, milestones: Sequence[Milestone] = MILESTONES) -> Optional[Milestone]:
    """First milestone strictly above the current streak (None past the last one)."""
    for milestone in milestones:
        if milestone.threshold_days > current_streak:
            return milestone
    return None


def reached_milestones(current_streak: int, milestones: Sequence[Milestone] = MILESTONES) -> Tuple[Milestone, ...]:
    return tuple(m for m in milestones if m.threshold_days <= current_streak)
