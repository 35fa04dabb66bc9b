"""Session lifecycle: seed, go live, celebrate, tear down."""

import asyncio
from datetime import date, timedelta, timezone

import pytest

from poetrysuite.core.errors import FetchError
from poetrysuite.features.celebrations.trigger import CelebrationTrigger
from poetrysuite.features.streaks.session import WritingSession
from poetrysuite.features.sync.events import SyncChannel
from poetrysuite.models.streak import Achievement, StreakState
from poetrysuite.models.writing import DailyActivityLog, WritingRecord
from poetrysuite.realtime.hub import ChangeFeedHub

USER = "writer-1"


class FailingStore:
    async def fetch_writing_snapshot(self, user_id):
        raise FetchError("store down")

    async def fetch_streak_snapshot(self, user_id, today):
        raise FetchError("store down")


def make_session(store, hub, fixed_now, **kwargs):
    return WritingSession(
        store,
        hub,
        USER,
        tz=timezone.utc,
        clock=lambda: fixed_now,
        trigger=CelebrationTrigger(milestone_dwell_seconds=5, achievement_dwell_seconds=5),
        stats_refresh_seconds=0,
        **kwargs,
    )


async def wait_for_rooms(hub):
    for _ in range(500):
        sizes = [await hub.get_room_size(c.value, USER) for c in SyncChannel]
        if all(n == 1 for n in sizes):
            return
        await asyncio.sleep(0.001)
    raise AssertionError("session never subscribed")


@pytest.mark.asyncio
async def test_session_seeds_from_store_and_goes_live(memory_store, fixed_now, eventually):
    memory_store.set_streak(USER, StreakState(current_streak=6, longest_streak=4, last_active_date=date(2024, 1, 2)))
    memory_store.add_achievement(
        USER, Achievement(id="a1", name="Three-Day Spark", earned_at=fixed_now - timedelta(days=3))
    )
    memory_store.upsert_log(USER, DailyActivityLog(log_date=date(2024, 1, 3), minutes_spent=12))
    memory_store.add_record(USER, WritingRecord(id="p1", created_at=fixed_now, word_count=33))
    hub = ChangeFeedHub()

    async with make_session(memory_store, hub, fixed_now) as session:
        assert session.state.streak.current_streak == 6
        assert session.state.streak.longest_streak == 6
        assert session.state.today_log.minutes_spent == 12
        assert session.statistics.current.total_poems == 1

        await wait_for_rooms(hub)
        await hub.publish(
            SyncChannel.STREAKS.value,
            USER,
            {"kind": "UPDATE", "record": {"user_id": USER, "current_streak": 7, "longest_streak": 7}},
        )
        await eventually(lambda: session.state.streak.current_streak == 7)
        assert session.trigger.is_celebrating

    assert session.closed
    assert session.state.closed
    assert not session.trigger.is_celebrating
    assert await hub.get_room_size(SyncChannel.STREAKS.value, USER) == 0


@pytest.mark.asyncio
async def test_failed_seed_starts_from_zero(fixed_now):
    session = make_session(FailingStore(), ChangeFeedHub(), fixed_now)
    await session.start()
    try:
        assert session.state.streak.current_streak == 0
        assert session.state.achievements == ()
        assert session.statistics.current.total_poems == 0
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_close_is_idempotent(memory_store, fixed_now):
    session = make_session(memory_store, ChangeFeedHub(), fixed_now)
    await session.start()
    await session.close()
    await session.close()
    assert session.sync.terminal_reason == "session closed"
