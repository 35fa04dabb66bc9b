"""Tests for range selection, stale-response discard and fetch failure fallback."""

import asyncio
from datetime import timedelta

import pytest

from poetrysuite.core.errors import FetchError
from poetrysuite.features.statistics.service import StatisticsLoader
from poetrysuite.models.statistics import TimeRange
from poetrysuite.models.writing import RecordSnapshot, WritingRecord


class GatedFetcher:
    """Each fetch waits until the test releases it, so responses can resolve out of order."""

    def __init__(self, snapshot):
        self.snapshot = snapshot
        self.gates = []

    async def fetch_writing_snapshot(self, user_id):
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        return self.snapshot


class ScriptedFetcher:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)

    async def fetch_writing_snapshot(self, user_id):
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def snapshot(fixed_now):
    return RecordSnapshot(
        user_id="u1",
        records=[
            WritingRecord(id="p1", created_at=fixed_now - timedelta(days=1), word_count=90),
            WritingRecord(id="p2", created_at=fixed_now - timedelta(days=20), word_count=60),
        ],
    )


@pytest.mark.asyncio
async def test_late_response_for_superseded_range_is_discarded(snapshot, fixed_now):
    fetcher = GatedFetcher(snapshot)
    loader = StatisticsLoader(fetcher, "u1", clock=lambda: fixed_now)

    month = asyncio.create_task(loader.select_range(TimeRange.MONTH))
    await asyncio.sleep(0)
    week = asyncio.create_task(loader.select_range(TimeRange.WEEK))
    await asyncio.sleep(0)
    assert len(fetcher.gates) == 2

    fetcher.gates[1].set()
    await week
    fetcher.gates[0].set()
    await month

    assert loader.selected_range == TimeRange.WEEK
    assert loader.current.time_range == TimeRange.WEEK
    assert len(loader.current.daily_activity) == 7


@pytest.mark.asyncio
async def test_first_load_failure_shows_zeroes(fixed_now):
    loader = StatisticsLoader(ScriptedFetcher(FetchError("store down")), "u1", clock=lambda: fixed_now)

    stats = await loader.select_range("month")

    assert stats is not None
    assert stats.total_poems == 0
    assert len(stats.daily_activity) == 30


@pytest.mark.asyncio
async def test_later_failure_keeps_last_known_statistics(snapshot, fixed_now):
    loader = StatisticsLoader(ScriptedFetcher(snapshot, FetchError("store down")), "u1", clock=lambda: fixed_now)

    first = await loader.select_range(TimeRange.MONTH)
    second = await loader.refresh()

    assert first.total_poems == 2
    assert second is first


@pytest.mark.asyncio
async def test_auto_refresh_runs_until_closed(snapshot, fixed_now):
    fetcher = ScriptedFetcher(*([snapshot] * 50))
    loader = StatisticsLoader(fetcher, "u1", clock=lambda: fixed_now)

    loader.start_auto_refresh(0.01)
    await asyncio.sleep(0.05)
    await loader.close()
    remaining = len(fetcher.outcomes)
    await asyncio.sleep(0.03)

    assert loader.current.total_poems == 2
    assert remaining < 50
    assert len(fetcher.outcomes) == remaining
