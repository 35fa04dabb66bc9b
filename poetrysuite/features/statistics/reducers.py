"""
poetrysuite/features/statistics/reducers.py

Pure deterministic reducers for the writing statistics dashboard.
All reducers: (records, logs, now) -> immutable read model.
"""

import math
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from poetrysuite.features.statistics.streaks import compute_streak_history
from poetrysuite.models.statistics import (
    NOT_AVAILABLE,
    ActivityBucket,
    CategoryShare,
    DerivedStatistics,
    RecordExtreme,
    TimeRange,
    TrendComparison,
)
from poetrysuite.models.writing import DailyActivityLog, WritingRecord

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def compute_statistics(
    records: Iterable[WritingRecord],
    logs: Iterable[DailyActivityLog],
    now: Optional[datetime] = None,
    time_range: Union[TimeRange, str] = TimeRange.MONTH,
) -> DerivedStatistics:
    """
    Reduce a record snapshot to dashboard statistics.

    Pure function: same records + logs + now + range => identical output.
    Calendar dates and hours are taken in the timezone of ``now`` (naive
    ``now`` is UTC).

    Args:
        records: Finished writing records, any order
        logs: Daily activity log rows, any order
        now: Fixed timestamp for deterministic results
        time_range: Trailing window for the activity series and trend

    Returns:
        DerivedStatistics (immutable); all-zero / "N/A" for empty input
    """
    now = _now_or_utc(now)
    time_range = TimeRange(time_range)
    days = time_range.days
    tz = now.tzinfo
    today = now.date()

    records = list(records)
    logs = list(logs)
    local_times = [r.created_at.astimezone(tz) for r in records]

    poems_by_day: Dict[date, int] = defaultdict(int)
    words_by_day: Dict[date, int] = defaultdict(int)
    for record, local in zip(records, local_times):
        poems_by_day[local.date()] += 1
        words_by_day[local.date()] += record.word_count

    minutes_by_day: Dict[date, int] = defaultdict(int)
    for log in logs:
        minutes_by_day[log.date] += log.minutes_spent

    daily = _daily_series(today, days, poems_by_day, words_by_day, minutes_by_day)

    total_poems = len(records)
    total_words = sum(r.word_count for r in records)
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)

    categories = _category_distribution(records)
    hourly = [0] * 24
    weekday = [0] * 7
    for local in local_times:
        hourly[local.hour] += 1
        weekday[local.weekday()] += 1
    best_day = _earliest_max(weekday)

    active_dates = {local.date() for local in local_times}
    active_dates.update(log.date for log in logs if log.is_active)

    return DerivedStatistics(
        time_range=time_range,
        computed_at=now,
        total_poems=total_poems,
        total_words=total_words,
        avg_words_per_poem=_round_half_up(total_words / total_poems) if total_poems else 0,
        poems_this_week=sum(1 for r in records if r.created_at >= week_ago),
        poems_this_month=sum(1 for r in records if r.created_at >= month_ago),
        total_minutes_writing=sum(log.minutes_spent for log in logs),
        daily_activity=daily,
        weekly_activity=_roll_up(daily, _week_start, lambda start: start.isoformat()),
        monthly_activity=_roll_up(daily, _month_start, lambda start: start.strftime("%Y-%m")),
        category_distribution=categories,
        favorite_category=categories[0].category if categories else NOT_AVAILABLE,
        hourly_distribution=hourly,
        weekday_distribution=weekday,
        most_productive_hour=_earliest_max(hourly),
        most_productive_day=WEEKDAY_NAMES[best_day] if best_day is not None else NOT_AVAILABLE,
        streak=compute_streak_history(active_dates, today),
        longest_record=_longest_record(records),
        shortest_record=_shortest_record(records),
        trend=_trend(today, days, poems_by_day, words_by_day),
    )


def _now_or_utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _daily_series(
    today: date,
    days: int,
    poems_by_day: Dict[date, int],
    words_by_day: Dict[date, int],
    minutes_by_day: Dict[date, int],
) -> List[ActivityBucket]:
    """Exactly ``days`` buckets ending today, oldest first; empty days are zero."""
    series = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        series.append(ActivityBucket(
            key=day.isoformat(),
            start=day,
            poems=poems_by_day.get(day, 0),
            words=words_by_day.get(day, 0),
            minutes=minutes_by_day.get(day, 0),
        ))
    return series


def _week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _roll_up(
    daily: Sequence[ActivityBucket],
    start_of: Callable[[date], date],
    key_of: Callable[[date], str],
) -> List[ActivityBucket]:
    """Sum consecutive daily buckets into coarser slots, keeping order."""
    totals: Dict[date, List[int]] = {}
    for bucket in daily:
        slot = totals.setdefault(start_of(bucket.start), [0, 0, 0])
        slot[0] += bucket.poems
        slot[1] += bucket.words
        slot[2] += bucket.minutes
    return [
        ActivityBucket(key=key_of(start), start=start, poems=poems, words=words, minutes=minutes)
        for start, (poems, words, minutes) in totals.items()
    ]


def _category_distribution(records: Sequence[WritingRecord]) -> List[CategoryShare]:
    """
    Count per category tag, most common first (ties by name).

    Each percentage is rounded on its own, so the shares may not add up to
    exactly 100.
    """
    counts: Dict[str, int] = defaultdict(int)
    for record in records:
        counts[record.category_tag] += 1
    total = len(records)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        CategoryShare(category=category, count=count, percentage=_round_half_up(count * 100 / total))
        for category, count in ordered
    ]


def _earliest_max(counts: Sequence[int]) -> Optional[int]:
    """Index of the strict maximum; ties go to the earliest slot. None when all zero."""
    best: Optional[int] = None
    for index, count in enumerate(counts):
        if count > 0 and (best is None or count > counts[best]):
            best = index
    return best


def _longest_record(records: Sequence[WritingRecord]) -> Optional[RecordExtreme]:
    if not records:
        return None
    return _extreme(max(records, key=lambda r: r.word_count))


def _shortest_record(records: Sequence[WritingRecord]) -> Optional[RecordExtreme]:
    # Empty drafts never count as the shortest piece
    with_words = [r for r in records if r.word_count > 0]
    if not with_words:
        return None
    return _extreme(min(with_words, key=lambda r: r.word_count))


def _extreme(record: WritingRecord) -> RecordExtreme:
    return RecordExtreme(record_id=record.id, word_count=record.word_count, created_at=record.created_at)


def _trend(
    today: date,
    days: int,
    poems_by_day: Dict[date, int],
    words_by_day: Dict[date, int],
) -> TrendComparison:
    current_start = today - timedelta(days=days - 1)
    previous_start = current_start - timedelta(days=days)

    current_poems = previous_poems = current_words = previous_words = 0
    for day, poems in poems_by_day.items():
        if current_start <= day <= today:
            current_poems += poems
            current_words += words_by_day[day]
        elif previous_start <= day < current_start:
            previous_poems += poems
            previous_words += words_by_day[day]

    return TrendComparison(
        period_days=days,
        current_poems=current_poems,
        previous_poems=previous_poems,
        poems_change_pct=_percent_change(current_poems, previous_poems),
        current_words=current_words,
        previous_words=previous_words,
        words_change_pct=_percent_change(current_words, previous_words),
    )


def _percent_change(current: int, previous: int) -> int:
    if previous == 0:
        return 0
    return _round_half_up((current - previous) * 100 / previous)
