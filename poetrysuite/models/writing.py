"""
poetrysuite/models/writing.py
Raw writing records as read from the store: finished poems and daily activity logs.
"""

import re
from datetime import date as DateType, datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_CATEGORY = "free verse"

_WHITESPACE = re.compile(r"\s+")


def count_words(text: Optional[str]) -> int:
    """Number of whitespace-separated words in text."""
    if not text:
        return 0
    return len([w for w in _WHITESPACE.split(text) if w.strip()])


def ensure_aware(moment: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class WritingRecord(BaseModel):
    """One finished piece. Read-only for the engine."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    created_at: datetime
    word_count: int = Field(default=0, ge=0)
    category_tag: str = Field(default=DEFAULT_CATEGORY, alias="form")

    @model_validator(mode="before")
    @classmethod
    def _derive_word_count(cls, data: Any) -> Any:
        # Older rows carry content but no stored count
        if isinstance(data, dict) and data.get("word_count") is None:
            data = dict(data)
            data["word_count"] = count_words(data.get("content"))
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("category_tag", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_CATEGORY
        tag = str(value).replace("_", " ").strip()
        return tag or DEFAULT_CATEGORY

    @field_validator("created_at")
    @classmethod
    def _aware_created_at(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class DailyActivityLog(BaseModel):
    """Activity numbers for one (user, calendar date)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    date: DateType = Field(alias="log_date")
    minutes_spent: int = Field(default=0, ge=0)
    poems_written: int = Field(default=0, ge=0)
    word_count: int = Field(default=0, ge=0)
    user_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.minutes_spent > 0 or self.poems_written > 0


class RecordSnapshot(BaseModel):
    """Point-in-time read of a user's records, input to the aggregation engine."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    records: List[WritingRecord] = Field(default_factory=list)
    logs: List[DailyActivityLog] = Field(default_factory=list)
