from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, Iterable, List, Optional, Tuple

from poetrysuite.models.streak import Achievement, ChangeKind, StreakState
from poetrysuite.models.writing import DailyActivityLog

logger = logging.getLogger("poetrysuite.streaks")


class StreakAchievementState:
    """Authoritative in-memory streak and achievement model for one writing session.

    Constructed and owned by the session; every mutation goes through the
    apply methods, which run to completion on the event loop and return the
    transitions they caused as ``{"type", "payload"}`` dicts.
    """

    def __init__(
        self,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._tz = tz or timezone.utc
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._streak = StreakState()
        self._achievements: List[Achievement] = []
        self._today_log: Optional[DailyActivityLog] = None
        self._seeded = False
        self._closed = False

    # Read side ----------------------------------------------------------
    @property
    def streak(self) -> StreakState:
        return self._streak

    @property
    def achievements(self) -> Tuple[Achievement, ...]:
        """Newest first."""
        return tuple(self._achievements)

    @property
    def today_log(self) -> Optional[DailyActivityLog]:
        return self._today_log

    @property
    def closed(self) -> bool:
        return self._closed

    def today(self) -> date:
        return self._clock().astimezone(self._tz).date()

    def is_stale(self) -> bool:
        """True when the last active day is older than yesterday.

        The streak itself is left alone until the store says otherwise.
        """
        last = self._streak.last_active_date
        if last is None or self._streak.current_streak == 0:
            return False
        return last < self.today() - timedelta(days=1)

    def snapshot(self) -> dict:
        """Plain values for the presentation layer."""
        return {
            "streak": self._streak.model_dump(mode="json"),
            "achievements": [a.model_dump(mode="json") for a in self._achievements],
            "today_log": self._today_log.model_dump(mode="json") if self._today_log else None,
            "is_stale": self.is_stale(),
        }

    # Write side ---------------------------------------------------------
    def seed(
        self,
        streak: StreakState,
        achievements: Iterable[Achievement],
        today_log: Optional[DailyActivityLog],
    ) -> None:
        """Load the stored snapshot at session start."""
        if self._seeded:
            logger.warning("streaks.reseed_ignored")
            return
        self._seeded = True
        self._streak = streak.with_invariant()
        self._achievements = sorted(achievements, key=lambda a: a.earned_at, reverse=True)
        self._today_log = today_log if today_log is not None and today_log.date == self.today() else None

    def apply_streak_update(self, next_state: StreakState) -> List[dict]:
        """Replace the streak wholesale (last writer wins)."""
        if self._closed:
            return []
        previous = self._streak
        corrected = next_state.with_invariant()
        self._streak = corrected

        emitted: List[dict] = []
        if corrected is not next_state:
            logger.info(
                "streaks.longest_raised",
                extra={"reported_longest": next_state.longest_streak, "current_streak": next_state.current_streak},
            )
            emitted.append(
                {
                    "type": "streak.corrected",
                    "payload": {
                        "reportedLongest": next_state.longest_streak,
                        "longestStreak": corrected.longest_streak,
                    },
                }
            )
        if corrected.current_streak != previous.current_streak:
            emitted.append(
                {
                    "type": "streak.changed",
                    "payload": {
                        "previousStreak": previous.current_streak,
                        "currentStreak": corrected.current_streak,
                        "longestStreak": corrected.longest_streak,
                    },
                }
            )
        return emitted

    def apply_achievement_event(self, kind: ChangeKind, achievement: Achievement) -> List[dict]:
        """Insert prepends; update/delete match by identity and ignore unknown rows."""
        if self._closed:
            return []
        kind = ChangeKind(kind)

        if kind == ChangeKind.INSERTED:
            self._achievements.insert(0, achievement)
            return [{"type": "achievement.inserted", "payload": {"achievement": achievement}}]

        index = self._index_of(achievement)
        if index is None:
            logger.debug("streaks.achievement_unknown", extra={"kind": kind.value, "identity": achievement.identity})
            return []

        if kind == ChangeKind.UPDATED:
            self._achievements[index] = achievement
            return [{"type": "achievement.updated", "payload": {"achievement": achievement}}]

        removed = self._achievements.pop(index)
        return [{"type": "achievement.deleted", "payload": {"achievement": removed}}]

    def remove_achievement(self, identity: str) -> List[dict]:
        """Delete by identity alone (delete feeds often carry only the key)."""
        if self._closed:
            return []
        for index, existing in enumerate(self._achievements):
            if existing.identity == identity or existing.name == identity:
                removed = self._achievements.pop(index)
                return [{"type": "achievement.deleted", "payload": {"achievement": removed}}]
        return []

    def apply_today_log_update(self, log: DailyActivityLog) -> List[dict]:
        """Take the log only if it is for today; other days belong to history."""
        if self._closed:
            return []
        today = self.today()
        if log.date != today:
            logger.debug("streaks.log_not_today", extra={"log_date": log.date.isoformat(), "today": today.isoformat()})
            return []
        self._today_log = log
        return [
            {
                "type": "activity.today_updated",
                "payload": {
                    "date": log.date.isoformat(),
                    "minutesSpent": log.minutes_spent,
                    "poemsWritten": log.poems_written,
                    "wordCount": log.word_count,
                },
            }
        ]

    def close(self) -> None:
        """Stop accepting updates (session teardown)."""
        self._closed = True

    def _index_of(self, achievement: Achievement) -> Optional[int]:
        for index, existing in enumerate(self._achievements):
            if existing.identity == achievement.identity:
                return index
            # Rows without an id on either side match by name
            if (existing.id is None or achievement.id is None) and existing.name == achievement.name:
                return index
        return None
