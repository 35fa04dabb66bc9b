"""
poetrysuite/features/streaks/session.py

A live writing session for one user: seeds the streak & achievement state
from the store, keeps it current through the change feed, and owns the
celebration trigger and statistics loader lifecycles.
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional
from uuid import uuid4

from poetrysuite.core.config import get_timezone, settings
from poetrysuite.core.errors import FetchError
from poetrysuite.core.logging import log_event, session_id_ctx_var
from poetrysuite.features.celebrations.trigger import CelebrationTrigger
from poetrysuite.features.records.store import RecordFetcher
from poetrysuite.features.statistics.service import StatisticsLoader
from poetrysuite.features.streaks.state import StreakAchievementState
from poetrysuite.features.sync.feed import ChangeFeed
from poetrysuite.features.sync.service import LiveSyncLayer
from poetrysuite.models.streak import StreakState

logger = logging.getLogger("poetrysuite.streaks")


class WritingSession:
    def __init__(
        self,
        fetcher: RecordFetcher,
        feed: ChangeFeed,
        user_id: str,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
        trigger: Optional[CelebrationTrigger] = None,
        sync_options: Optional[dict] = None,
        stats_refresh_seconds: Optional[float] = None,
    ):
        self.user_id = str(user_id)
        self.session_id = str(uuid4())
        self._fetcher = fetcher
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.state = StreakAchievementState(tz=tz or get_timezone(), clock=self._clock)
        self.trigger = trigger or CelebrationTrigger()
        self.sync = LiveSyncLayer(self.state, feed, self.user_id, trigger=self.trigger, **(sync_options or {}))
        self.statistics = StatisticsLoader(fetcher, self.user_id, clock=self._clock)
        self._stats_refresh_seconds = (
            stats_refresh_seconds if stats_refresh_seconds is not None else settings.STATS_REFRESH_SECONDS
        )
        self._started = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Seed from the store, then go live. A failed fetch seeds zeros."""
        if self._started:
            return
        self._started = True
        session_id_ctx_var.set(self.session_id)

        today = self.state.today()
        try:
            stored = await self._fetcher.fetch_streak_snapshot(self.user_id, today)
            self.state.seed(stored.streak, stored.achievements, stored.today_log)
        except FetchError as e:
            log_event(
                "warning",
                "session.seed_failed",
                user_id=self.user_id,
                error_code=e.code,
                extra={"reason": e.message},
            )
            self.state.seed(StreakState(), [], None)

        await self.sync.start()
        await self.statistics.refresh()
        self.statistics.start_auto_refresh(self._stats_refresh_seconds)
        log_event(
            "info",
            "session.started",
            user_id=self.user_id,
            extra={
                "current_streak": self.state.streak.current_streak,
                "achievements": len(self.state.achievements),
            },
        )

    async def close(self) -> None:
        """Stop sync, cancel timers and the refresh task. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self.sync.stop(reason="session closed")
        self.trigger.close()
        self.state.close()
        await self.statistics.close()
        log_event("info", "session.closed", user_id=self.user_id)

    async def __aenter__(self) -> "WritingSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
