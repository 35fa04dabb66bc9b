"""
poetrysuite/models/statistics.py
Read models produced by the aggregation engine. Ephemeral, never persisted.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

NOT_AVAILABLE = "N/A"


class TimeRange(str, Enum):
    """Trailing window shown on the dashboard."""
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def days(self) -> int:
        return {"week": 7, "month": 30, "year": 365}[self.value]


class ActivityBucket(BaseModel):
    """Activity for a single day, week or month slot."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="YYYY-MM-DD (day/week start) or YYYY-MM (month)")
    start: date = Field(description="First calendar day covered by the slot")
    poems: int = Field(ge=0)
    words: int = Field(ge=0)
    minutes: int = Field(default=0, ge=0, description="Minutes from daily activity logs")


class CategoryShare(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    count: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100, description="Rounded independently; shares may not sum to 100")


class RecordExtreme(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_id: str
    word_count: int = Field(ge=0)
    created_at: datetime


class StreakHistory(BaseModel):
    """Streak numbers backfilled from history (sanity check, not live state)."""

    model_config = ConfigDict(frozen=True)

    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    total_active_days: int = Field(ge=0)
    last_active_date: Optional[date] = None


class TrendComparison(BaseModel):
    """This period vs the previous period of equal length."""

    model_config = ConfigDict(frozen=True)

    period_days: int = Field(ge=1)
    current_poems: int = Field(ge=0)
    previous_poems: int = Field(ge=0)
    poems_change_pct: int = Field(description="0 when the previous period had no activity")
    current_words: int = Field(ge=0)
    previous_words: int = Field(ge=0)
    words_change_pct: int


class DerivedStatistics(BaseModel):
    """Everything the statistics dashboard renders, derived from one snapshot."""

    model_config = ConfigDict(frozen=True)

    time_range: TimeRange
    computed_at: datetime

    total_poems: int = Field(ge=0)
    total_words: int = Field(ge=0)
    avg_words_per_poem: int = Field(ge=0)
    poems_this_week: int = Field(ge=0, description="Rolling last 7 days")
    poems_this_month: int = Field(ge=0, description="Rolling last 30 days")
    total_minutes_writing: int = Field(ge=0)

    daily_activity: List[ActivityBucket] = Field(description="Dense, oldest first, exactly range.days entries")
    weekly_activity: List[ActivityBucket] = Field(description="Monday-start weeks intersecting the window")
    monthly_activity: List[ActivityBucket] = Field(description="Calendar months intersecting the window")

    category_distribution: List[CategoryShare]
    favorite_category: str = NOT_AVAILABLE

    hourly_distribution: List[int] = Field(min_length=24, max_length=24)
    weekday_distribution: List[int] = Field(min_length=7, max_length=7, description="Monday first")
    most_productive_hour: Optional[int] = Field(default=None, ge=0, le=23)
    most_productive_day: str = NOT_AVAILABLE

    streak: StreakHistory

    longest_record: Optional[RecordExtreme] = None
    shortest_record: Optional[RecordExtreme] = None

    trend: TrendComparison
