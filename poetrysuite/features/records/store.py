"""
poetrysuite/features/records/store.py

Record fetcher: pulls a user's writing snapshot and stored streak state from
the external store. Request/response only, no caching.
"""

import logging
import os
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Protocol

from poetrysuite.models.streak import Achievement, StoredStreakSnapshot, StreakState
from poetrysuite.models.writing import DailyActivityLog, RecordSnapshot, WritingRecord

logger = logging.getLogger("poetrysuite.records")


class RecordFetcher(Protocol):
    """What the engine needs from the storage collaborator."""

    async def fetch_writing_snapshot(self, user_id: str) -> RecordSnapshot:
        ...

    async def fetch_streak_snapshot(self, user_id: str, today: date) -> StoredStreakSnapshot:
        ...


class InMemoryRecordStore:
    """
    Dict-backed record store.

    Used when no database is configured, and by tests.
    """

    def __init__(self):
        self._records: Dict[str, List[WritingRecord]] = defaultdict(list)
        self._logs: Dict[str, Dict[date, DailyActivityLog]] = defaultdict(dict)
        self._streaks: Dict[str, StreakState] = {}
        self._achievements: Dict[str, List[Achievement]] = defaultdict(list)

    def add_record(self, user_id: str, record: WritingRecord) -> None:
        self._records[user_id].append(record)

    def upsert_log(self, user_id: str, log: DailyActivityLog) -> None:
        # One row per (user, date)
        self._logs[user_id][log.date] = log

    def set_streak(self, user_id: str, streak: StreakState) -> None:
        self._streaks[user_id] = streak

    def add_achievement(self, user_id: str, achievement: Achievement) -> None:
        self._achievements[user_id].append(achievement)

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        self._records.clear()
        self._logs.clear()
        self._streaks.clear()
        self._achievements.clear()

    async def fetch_writing_snapshot(self, user_id: str) -> RecordSnapshot:
        return RecordSnapshot(
            user_id=user_id,
            records=list(self._records.get(user_id, [])),
            logs=sorted(self._logs.get(user_id, {}).values(), key=lambda log: log.date),
        )

    async def fetch_streak_snapshot(self, user_id: str, today: date) -> StoredStreakSnapshot:
        achievements = sorted(
            self._achievements.get(user_id, []),
            key=lambda a: a.earned_at,
            reverse=True,
        )
        return StoredStreakSnapshot(
            user_id=user_id,
            streak=self._streaks.get(user_id, StreakState()),
            achievements=achievements,
            today_log=self._logs.get(user_id, {}).get(today),
        )


def get_record_store_impl():
    """
    Pick the record store implementation.

    - SQL store if DATABASE_URL is configured and reachable
    - Falls back to in-memory otherwise
    """
    if os.getenv("DATABASE_URL") or os.getenv("TEST_DATABASE_URL"):
        from poetrysuite.core.database import check_connection
        from poetrysuite.features.records.store_sql import SqlRecordStore

        if check_connection():
            return SqlRecordStore()
        logger.warning("Record database unavailable, falling back to in-memory store")

    return InMemoryRecordStore()


_store_instance = None


def get_record_store():
    """
    Get the shared record store instance.

    This is the primary API that request handlers should use.
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = get_record_store_impl()
    return _store_instance


def set_record_store(store: Optional[RecordFetcher]) -> None:
    """Install a specific store (tests, scripts). None forces re-selection."""
    global _store_instance
    _store_instance = store
