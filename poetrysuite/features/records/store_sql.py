"""
poetrysuite/features/records/store_sql.py

SQL-backed record fetcher over the authoring flow's tables.

Queries are synchronous SQLAlchemy Core; the async fetch methods run them in
a worker thread so the event loop keeps serving push updates meanwhile.
"""

import asyncio
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError as PydanticValidationError

from poetrysuite.core.database import (
    daily_writing_logs,
    get_db_session,
    poems,
    user_achievements,
    writing_streaks,
)
from poetrysuite.core.errors import FetchError
from poetrysuite.models.streak import Achievement, StoredStreakSnapshot, StreakState
from poetrysuite.models.writing import DailyActivityLog, RecordSnapshot, WritingRecord


class SqlRecordStore:
    """
    Reads snapshots from PostgreSQL (or any SQLAlchemy URL).

    Maintains the same interface as InMemoryRecordStore.
    """

    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine

    def load_writing_snapshot(self, user_id: str) -> RecordSnapshot:
        try:
            with get_db_session(self._engine) as session:
                poem_rows = session.execute(
                    select(
                        poems.c.id,
                        poems.c.created_at,
                        poems.c.word_count,
                        poems.c.form,
                        poems.c.content,
                    )
                    .where(poems.c.user_id == user_id)
                    .order_by(poems.c.created_at, poems.c.id)
                ).all()
                log_rows = session.execute(
                    select(daily_writing_logs)
                    .where(daily_writing_logs.c.user_id == user_id)
                    .order_by(daily_writing_logs.c.log_date)
                ).all()
            return RecordSnapshot(
                user_id=user_id,
                records=[WritingRecord.model_validate(dict(row._mapping)) for row in poem_rows],
                logs=[DailyActivityLog.model_validate(dict(row._mapping)) for row in log_rows],
            )
        except (SQLAlchemyError, PydanticValidationError) as e:
            raise FetchError(f"Failed to load writing snapshot for {user_id}: {e}")

    def load_streak_snapshot(self, user_id: str, today: date) -> StoredStreakSnapshot:
        try:
            with get_db_session(self._engine) as session:
                streak_row = session.execute(
                    select(writing_streaks).where(writing_streaks.c.user_id == user_id)
                ).first()
                achievement_rows = session.execute(
                    select(user_achievements)
                    .where(user_achievements.c.user_id == user_id)
                    .order_by(user_achievements.c.earned_at.desc())
                ).all()
                today_row = session.execute(
                    select(daily_writing_logs).where(
                        daily_writing_logs.c.user_id == user_id,
                        daily_writing_logs.c.log_date == today,
                    )
                ).first()
            return StoredStreakSnapshot(
                user_id=user_id,
                streak=StreakState.model_validate(dict(streak_row._mapping)) if streak_row else StreakState(),
                achievements=[Achievement.model_validate(dict(row._mapping)) for row in achievement_rows],
                today_log=DailyActivityLog.model_validate(dict(today_row._mapping)) if today_row else None,
            )
        except (SQLAlchemyError, PydanticValidationError) as e:
            raise FetchError(f"Failed to load streak snapshot for {user_id}: {e}")

    async def fetch_writing_snapshot(self, user_id: str) -> RecordSnapshot:
        return await asyncio.to_thread(self.load_writing_snapshot, user_id)

    async def fetch_streak_snapshot(self, user_id: str, today: date) -> StoredStreakSnapshot:
        return await asyncio.to_thread(self.load_streak_snapshot, user_id, today)
