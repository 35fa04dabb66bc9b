"""Streak backfill from activity history. Pure functions, no I/O.

Used for the "longest streak" sanity check on the statistics dashboard;
live streak numbers come from the authoritative store via the sync layer.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from poetrysuite.models.statistics import StreakHistory


def compute_streak_history(active_dates: Iterable[date], today: date) -> StreakHistory:
    """Walk distinct active dates once and derive streak numbers.

    A run grows while consecutive dates are exactly one day apart and resets
    to 1 otherwise. The run ending on the latest active date is the current
    streak only if that date is today or yesterday.

    >>> compute_streak_history([date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)], date(2024, 1, 3)).longest_streak
    3
    """
    unique_dates = sorted(set(active_dates))
    if not unique_dates:
        return StreakHistory(current_streak=0, longest_streak=0, total_active_days=0, last_active_date=None)

    longest = 1
    run = 1
    for previous, current in zip(unique_dates, unique_dates[1:]):
        if (current - previous).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    last_active = unique_dates[-1]
    # Dates after today (clock skew) still count as current
    current_streak = run if last_active >= today - timedelta(days=1) else 0

    return StreakHistory(
        current_streak=current_streak,
        longest_streak=longest,
        total_active_days=len(unique_dates),
        last_active_date=last_active,
    )
