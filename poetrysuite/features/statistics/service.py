"""
Statistics loader

Fetches a snapshot through the record fetcher and reduces it for the
currently selected range. Responses that arrive after a newer request was
made are discarded; fetch failures keep the last-known statistics.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from poetrysuite.core.errors import FetchError
from poetrysuite.features.records.store import RecordFetcher
from poetrysuite.features.statistics.reducers import compute_statistics
from poetrysuite.models.statistics import DerivedStatistics, TimeRange

logger = logging.getLogger("poetrysuite.statistics")


class StatisticsLoader:
    """Tracks the latest requested range and ignores stale responses."""

    def __init__(
        self,
        fetcher: RecordFetcher,
        user_id: str,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        time_range: TimeRange = TimeRange.MONTH,
    ):
        self._fetcher = fetcher
        self._user_id = user_id
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._selected_range = time_range
        self._generation = 0
        self._current: Optional[DerivedStatistics] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def selected_range(self) -> TimeRange:
        return self._selected_range

    @property
    def current(self) -> Optional[DerivedStatistics]:
        """Statistics last accepted for display (None before the first load)."""
        return self._current

    async def select_range(self, time_range: Union[TimeRange, str]) -> Optional[DerivedStatistics]:
        """
        Request statistics for ``time_range``.

        Returns whatever is current once this request settles: the fresh
        result if it is still the latest request, the previous value if a
        newer request superseded it.
        """
        time_range = TimeRange(time_range)
        self._selected_range = time_range
        self._generation += 1
        generation = self._generation

        try:
            snapshot = await self._fetcher.fetch_writing_snapshot(self._user_id)
        except FetchError as e:
            logger.warning(
                "statistics.fetch_failed",
                extra={"user_id": self._user_id, "error_code": e.code, "error_message": e.message},
            )
            if self._current is None and generation == self._generation:
                # First load: show zeros rather than an error
                self._current = compute_statistics([], [], self._clock(), time_range)
            return self._current

        if generation != self._generation or time_range != self._selected_range:
            logger.debug(
                "statistics.stale_response_discarded",
                extra={"user_id": self._user_id, "stale_range": time_range.value},
            )
            return self._current

        self._current = compute_statistics(snapshot.records, snapshot.logs, self._clock(), time_range)
        return self._current

    async def refresh(self) -> Optional[DerivedStatistics]:
        """Re-run the current selection."""
        return await self.select_range(self._selected_range)

    def start_auto_refresh(self, interval_seconds: float) -> None:
        """Refresh on a coarse timer until close()."""
        if interval_seconds <= 0 or self._refresh_task is not None:
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop(interval_seconds))

    async def _refresh_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            await self.refresh()

    async def close(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
