"""Tests for the milestone / achievement celebration trigger."""

import asyncio
from datetime import datetime, timezone

import pytest

from poetrysuite.features.celebrations.trigger import CelebrationState, CelebrationTrigger
from poetrysuite.models.streak import Achievement

MILESTONE_DWELL = 0.1
ACHIEVEMENT_DWELL = 0.3


def streak_changed(current, previous=0):
    return {"type": "streak.changed", "payload": {"previousStreak": previous, "currentStreak": current, "longestStreak": current}}


def achievement_inserted(name="First Week"):
    earned = datetime(2024, 1, 3, 12, tzinfo=timezone.utc)
    return {"type": "achievement.inserted", "payload": {"achievement": Achievement(name=name, earned_at=earned)}}


@pytest.fixture
def trigger():
    t = CelebrationTrigger(milestone_dwell_seconds=MILESTONE_DWELL, achievement_dwell_seconds=ACHIEVEMENT_DWELL)
    yield t
    t.close()


@pytest.mark.asyncio
async def test_milestone_hit_celebrates_then_settles(trigger):
    assert trigger.observe([streak_changed(7, previous=6)]) is True
    assert trigger.state == CelebrationState.CELEBRATING
    assert trigger.payload.milestone.threshold_days == 7
    assert trigger.payload.has_achievement is False

    await asyncio.sleep(MILESTONE_DWELL * 3)
    assert trigger.state == CelebrationState.IDLE
    assert trigger.payload is None


@pytest.mark.asyncio
async def test_non_milestone_streak_is_ignored(trigger):
    assert trigger.observe([streak_changed(8, previous=7)]) is False
    assert trigger.state == CelebrationState.IDLE


@pytest.mark.asyncio
async def test_achievement_uses_longer_dwell(trigger):
    trigger.observe([achievement_inserted()])

    await asyncio.sleep(MILESTONE_DWELL * 1.5)
    assert trigger.is_celebrating
    await asyncio.sleep(ACHIEVEMENT_DWELL * 2)
    assert not trigger.is_celebrating


@pytest.mark.asyncio
async def test_milestone_and_achievement_in_one_batch_are_combined(trigger):
    trigger.observe([streak_changed(30, previous=29), achievement_inserted("Month of Ink")])

    assert trigger.payload.milestone.label == "Month of Ink"
    assert trigger.payload.achievement.name == "Month of Ink"


@pytest.mark.asyncio
async def test_retrigger_restarts_timer_with_latest_payload(trigger):
    trigger.observe([streak_changed(3, previous=2)])
    await asyncio.sleep(MILESTONE_DWELL * 0.6)
    trigger.observe([streak_changed(7, previous=3)])

    await asyncio.sleep(MILESTONE_DWELL * 0.6)
    # The first timer would have expired by now
    assert trigger.is_celebrating
    assert trigger.payload.milestone.threshold_days == 7

    await asyncio.sleep(MILESTONE_DWELL * 2)
    assert not trigger.is_celebrating


@pytest.mark.asyncio
async def test_out_of_order_channels_still_celebrate(trigger):
    transitions = []
    trigger.add_listener(lambda state, payload: transitions.append(state))

    trigger.observe([achievement_inserted()])
    trigger.observe([streak_changed(7, previous=6)])

    assert trigger.is_celebrating
    assert trigger.payload.milestone.threshold_days == 7
    assert transitions == [CelebrationState.CELEBRATING, CelebrationState.CELEBRATING]


@pytest.mark.asyncio
async def test_close_cancels_pending_timer():
    t = CelebrationTrigger(milestone_dwell_seconds=MILESTONE_DWELL, achievement_dwell_seconds=ACHIEVEMENT_DWELL)
    seen = []
    t.add_listener(lambda state, payload: seen.append(state))
    t.observe([streak_changed(14, previous=13)])

    t.close()
    await asyncio.sleep(MILESTONE_DWELL * 3)

    assert t.state == CelebrationState.IDLE
    assert seen == [CelebrationState.CELEBRATING]
    assert t.observe([streak_changed(30)]) is False


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_trigger(trigger):
    def broken(state, payload):
        raise RuntimeError("render failed")

    trigger.add_listener(broken)
    assert trigger.observe([streak_changed(3, previous=2)]) is True
    assert trigger.is_celebrating


@pytest.mark.asyncio
async def test_listener_can_unsubscribe(trigger):
    seen = []
    remove = trigger.add_listener(lambda state, payload: seen.append(state))
    remove()
    trigger.observe([streak_changed(3, previous=2)])
    assert seen == []
