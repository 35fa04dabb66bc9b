from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from poetrysuite.models.writing import DailyActivityLog, ensure_aware


class ChangeKind(str, Enum):
    """Kind of row change delivered by a change feed."""

    INSERTED = "inserted"
    UPDATED = "updated"
    DELETED = "deleted"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ChangeKind"]:
        # Feeds speak SQL verbs ("INSERT", "update", ...)
        if not isinstance(value, str):
            return None
        lowered = value.strip().lower()
        for member in cls:
            if member.value == lowered:
                return member
        aliases = {"insert": cls.INSERTED, "update": cls.UPDATED, "delete": cls.DELETED}
        return aliases.get(lowered)


class StreakState(BaseModel):
    """
    Authoritative streak numbers for one user. Day-level, no DB concerns.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    total_active_days: int = Field(default=0, ge=0, alias="total_writing_days")
    last_active_date: Optional[date] = Field(default=None, alias="last_write_date")

    def with_invariant(self) -> StreakState:
        """Raise longest_streak to current_streak if an update arrived ahead of its recompute."""
        if self.current_streak > self.longest_streak:
            return self.model_copy(update={"longest_streak": self.current_streak})
        return self


class Achievement(BaseModel):
    """An unlocked achievement row."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    name: str = Field(alias="achievement_name", min_length=1)
    description: str = Field(default="", alias="achievement_description")
    earned_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("earned_at")
    @classmethod
    def _aware_earned_at(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def identity(self) -> str:
        """Row id when known, otherwise the achievement name."""
        return self.id or self.name


class StoredStreakSnapshot(BaseModel):
    """Stored state used to seed a live session."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    streak: StreakState = Field(default_factory=StreakState)
    achievements: List[Achievement] = Field(default_factory=list)
    today_log: Optional[DailyActivityLog] = None
