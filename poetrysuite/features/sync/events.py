"""
poetrysuite/features/sync/events.py

Change-feed messages as a tagged variant: {table, kind, record, old_record}.
"""

from enum import Enum
from typing import Any, Dict, Iterable, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from poetrysuite.core.errors import MalformedEventError
from poetrysuite.models.streak import ChangeKind


class SyncChannel(str, Enum):
    """The three push channels, named after the table they follow."""
    STREAKS = "writing_streaks"
    ACHIEVEMENTS = "user_achievements"
    DAILY_LOGS = "daily_writing_logs"


class ChangeEvent(BaseModel):
    """One delivered row change."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    table: SyncChannel
    kind: ChangeKind = Field(validation_alias=AliasChoices("kind", "eventKind", "event_kind", "eventType"))
    record: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("record", "new"))
    old_record: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("old_record", "old"))

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, value: Any) -> Any:
        # Feeds spell kinds as SQL verbs ("INSERT") or past tense ("inserted")
        if isinstance(value, str):
            try:
                return ChangeKind(value)
            except ValueError:
                return value
        return value

    def row(self) -> Dict[str, Any]:
        """The row the change is about (old row for deletes when the new one is empty)."""
        if self.kind == ChangeKind.DELETED:
            return self.old_record or self.record
        return self.record


def parse_change_event(channel: SyncChannel, message: Any) -> ChangeEvent:
    """
    Validate a raw feed message delivered on ``channel``.

    Raises:
        MalformedEventError: not a mapping, wrong table, unknown kind, bad row shape
    """
    if not isinstance(message, Mapping):
        raise MalformedEventError(f"expected a mapping, got {type(message).__name__}")
    data = dict(message)
    data.setdefault("table", channel.value)
    try:
        event = ChangeEvent.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedEventError(f"invalid change event on {channel.value}: {e.error_count()} error(s)")
    if event.table != channel:
        raise MalformedEventError(f"event for {event.table.value} delivered on {channel.value}")
    return event


def require_fields(row: Mapping[str, Any], fields: Iterable[str], table: SyncChannel) -> None:
    missing = [f for f in fields if row.get(f) is None]
    if missing:
        raise MalformedEventError(f"{table.value} row missing {', '.join(missing)}")
