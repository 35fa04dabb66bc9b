"""SQL record fetcher against an in-memory SQLite database."""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import insert

from poetrysuite.core.database import build_engine, daily_writing_logs, poems, user_achievements, writing_streaks
from poetrysuite.core.errors import FetchError
from poetrysuite.features.records.store_sql import SqlRecordStore


@pytest.fixture
def seeded_engine(sqlite_engine):
    with sqlite_engine.begin() as conn:
        conn.execute(insert(poems), [
            {"id": "p1", "user_id": "u1", "title": "Dawn", "content": "light on the water", "word_count": None,
             "form": "haiku", "created_at": datetime(2024, 1, 2, 8, 0)},
            {"id": "p2", "user_id": "u1", "title": "Dusk", "content": "", "word_count": 42,
             "form": None, "created_at": datetime(2024, 1, 3, 20, 0)},
            {"id": "p3", "user_id": "u2", "title": "Other", "content": "not mine", "word_count": 2,
             "form": "ode", "created_at": datetime(2024, 1, 3, 9, 0)},
        ])
        conn.execute(insert(daily_writing_logs), [
            {"user_id": "u1", "log_date": date(2024, 1, 2), "minutes_spent": 15, "poems_written": 1, "word_count": 4},
            {"user_id": "u1", "log_date": date(2024, 1, 3), "minutes_spent": 30, "poems_written": 1, "word_count": 42},
        ])
        conn.execute(insert(writing_streaks), [
            {"user_id": "u1", "current_streak": 7, "longest_streak": 5, "total_writing_days": 9,
             "last_write_date": date(2024, 1, 3)},
        ])
        conn.execute(insert(user_achievements), [
            {"id": "a1", "user_id": "u1", "achievement_name": "Three-Day Spark", "achievement_description": None,
             "earned_at": datetime(2023, 12, 30, 12, 0)},
            {"id": "a2", "user_id": "u1", "achievement_name": "First Week", "achievement_description": "Seven days",
             "earned_at": datetime(2024, 1, 3, 12, 0)},
        ])
    return sqlite_engine


@pytest.mark.asyncio
async def test_writing_snapshot_is_user_scoped(seeded_engine):
    snapshot = await SqlRecordStore(seeded_engine).fetch_writing_snapshot("u1")

    assert [r.id for r in snapshot.records] == ["p1", "p2"]
    assert snapshot.records[0].word_count == 4
    assert snapshot.records[0].created_at.tzinfo is not None
    assert snapshot.records[1].category_tag == "free verse"
    assert [log.minutes_spent for log in snapshot.logs] == [15, 30]


@pytest.mark.asyncio
async def test_streak_snapshot(seeded_engine):
    stored = await SqlRecordStore(seeded_engine).fetch_streak_snapshot("u1", date(2024, 1, 3))

    assert stored.streak.current_streak == 7
    assert stored.streak.longest_streak == 5
    assert stored.streak.total_active_days == 9
    assert [a.name for a in stored.achievements] == ["First Week", "Three-Day Spark"]
    assert stored.achievements[1].description == ""
    assert stored.today_log.minutes_spent == 30


@pytest.mark.asyncio
async def test_unknown_user_gets_defaults(seeded_engine):
    stored = await SqlRecordStore(seeded_engine).fetch_streak_snapshot("nobody", date(2024, 1, 3))

    assert stored.streak.current_streak == 0
    assert stored.achievements == []
    assert stored.today_log is None


@pytest.mark.asyncio
async def test_missing_tables_raise_fetch_error():
    engine = build_engine("sqlite://")
    try:
        with pytest.raises(FetchError):
            await SqlRecordStore(engine).fetch_writing_snapshot("u1")
    finally:
        engine.dispose()
