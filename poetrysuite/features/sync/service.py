"""
poetrysuite/features/sync/service.py

Live synchronization layer: three user-scoped push channels feeding the
streak & achievement state through one reducer.

FIFO is assumed within a channel only. Each channel task reconnects on its
own; when any channel ends for good the whole layer becomes terminal.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from poetrysuite.core.config import parse_backoff, settings
from poetrysuite.core.errors import MalformedEventError
from poetrysuite.core.logging import log_event
from poetrysuite.features.celebrations.trigger import CelebrationTrigger
from poetrysuite.features.streaks.state import StreakAchievementState
from poetrysuite.features.sync.events import ChangeEvent, SyncChannel, parse_change_event, require_fields
from poetrysuite.features.sync.feed import ChangeFeed, FeedSubscription
from poetrysuite.models.streak import Achievement, ChangeKind, StreakState
from poetrysuite.models.writing import DailyActivityLog

logger = logging.getLogger("poetrysuite.sync")

AppliedListener = Callable[[ChangeEvent, List[dict]], None]


def compute_backoff(failures: int, schedule: Sequence[float]) -> float:
    """Delay before reconnect attempt ``failures`` (1-based), capped at the last step."""
    if not schedule:
        return 0.0
    return schedule[min(max(failures, 1), len(schedule)) - 1]


class LiveSyncLayer:
    """Routes change events from three channels into a StreakAchievementState."""

    def __init__(
        self,
        state: StreakAchievementState,
        feed: ChangeFeed,
        user_id: str,
        *,
        trigger: Optional[CelebrationTrigger] = None,
        backoff: Optional[Sequence[float]] = None,
        max_reconnect_attempts: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._state = state
        self._feed = feed
        self._user_id = user_id
        self._trigger = trigger
        self._backoff = list(backoff) if backoff is not None else parse_backoff()
        self._max_attempts = (
            max_reconnect_attempts if max_reconnect_attempts is not None else settings.SYNC_MAX_RECONNECT_ATTEMPTS
        )
        self._sleep = sleep
        self._tasks: Dict[SyncChannel, asyncio.Task] = {}
        self._subscriptions: Dict[SyncChannel, FeedSubscription] = {}
        self._listeners: List[AppliedListener] = []
        self._started = False
        self._closed = False
        self._terminal_reason: Optional[str] = None
        self._closed_event = asyncio.Event()
        self._reducers: Dict[SyncChannel, Callable[[ChangeEvent], List[dict]]] = {
            SyncChannel.STREAKS: self._apply_streak,
            SyncChannel.ACHIEVEMENTS: self._apply_achievement,
            SyncChannel.DAILY_LOGS: self._apply_daily_log,
        }

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def terminal_reason(self) -> Optional[str]:
        return self._terminal_reason

    @property
    def connected_channels(self) -> List[SyncChannel]:
        return [c for c in SyncChannel if c in self._subscriptions]

    def add_listener(self, listener: AppliedListener) -> None:
        """Called after every applied event with the transitions it caused."""
        self._listeners.append(listener)

    async def start(self) -> None:
        """Open all three channel subscriptions."""
        if self._started or self._closed:
            return
        self._started = True
        loop = asyncio.get_running_loop()
        for channel in SyncChannel:
            self._tasks[channel] = loop.create_task(self._run_channel(channel), name=f"sync:{channel.value}")
        log_event("info", "sync.started", user_id=self._user_id)

    async def stop(self, reason: str = "stopped") -> None:
        """Tear down all channels together. Idempotent."""
        if not self._closed:
            self._closed = True
            self._terminal_reason = reason
            log_event("info", "sync.stopped", user_id=self._user_id, extra={"reason": reason})

        current = asyncio.current_task()
        others = [task for task in self._tasks.values() if task is not current and not task.done()]
        for task in others:
            task.cancel()
        if others:
            await asyncio.gather(*others, return_exceptions=True)
        for subscription in list(self._subscriptions.values()):
            await subscription.close()
        self._subscriptions.clear()
        self._state.close()
        self._closed_event.set()

    async def wait_closed(self) -> None:
        await self._closed_event.wait()

    # Reducer ------------------------------------------------------------
    def handle_message(self, channel: SyncChannel, message: Any) -> List[dict]:
        """Parse a raw feed message and apply it; malformed messages are dropped."""
        try:
            event = parse_change_event(channel, message)
        except MalformedEventError as e:
            log_event(
                "warning",
                "sync.event_dropped",
                user_id=self._user_id,
                channel=channel.value,
                error_code=e.code,
                extra={"reason": e.message},
            )
            return []
        return self.dispatch(event)

    def dispatch(self, event: ChangeEvent) -> List[dict]:
        """Apply one change event to the state. Never raises."""
        if self._closed:
            logger.debug("sync.event_after_close", extra={"channel": event.table.value})
            return []

        owner = event.row().get("user_id")
        if owner is not None and str(owner) != self._user_id:
            log_event("warning", "sync.foreign_user_event", user_id=self._user_id, channel=event.table.value)
            return []

        try:
            emitted = self._reducers[event.table](event)
        except (MalformedEventError, PydanticValidationError) as e:
            log_event(
                "warning",
                "sync.event_dropped",
                user_id=self._user_id,
                channel=event.table.value,
                event_type=event.kind.value,
                error_code="malformed_event",
                extra={"reason": e.message if isinstance(e, MalformedEventError) else f"{e.error_count()} validation error(s)"},
            )
            return []

        if emitted and self._trigger is not None:
            try:
                self._trigger.observe(emitted)
            except RuntimeError:
                logger.warning("sync.celebration_skipped", extra={"channel": event.table.value})
        for listener in list(self._listeners):
            try:
                listener(event, emitted)
            except Exception:
                logger.exception("sync.listener_failed")
        return emitted

    def _apply_streak(self, event: ChangeEvent) -> List[dict]:
        if event.kind == ChangeKind.DELETED:
            # Streak rows are never deleted by the store; a reset arrives as an update
            logger.debug("sync.streak_delete_ignored")
            return []
        row = event.row()
        require_fields(row, ("current_streak", "longest_streak"), event.table)
        return self._state.apply_streak_update(StreakState.model_validate(row))

    def _apply_achievement(self, event: ChangeEvent) -> List[dict]:
        row = event.row()
        if event.kind == ChangeKind.DELETED:
            identity = row.get("id") or row.get("achievement_name") or row.get("name")
            if identity is None:
                raise MalformedEventError("achievement delete without id or name")
            return self._state.remove_achievement(str(identity))
        return self._state.apply_achievement_event(event.kind, Achievement.model_validate(row))

    def _apply_daily_log(self, event: ChangeEvent) -> List[dict]:
        if event.kind == ChangeKind.DELETED:
            logger.debug("sync.daily_log_delete_ignored")
            return []
        return self._state.apply_today_log_update(DailyActivityLog.model_validate(event.row()))

    # Channel tasks ------------------------------------------------------
    async def _run_channel(self, channel: SyncChannel) -> None:
        try:
            await self._consume_channel(channel)
        except Exception as e:
            # Any other failure ends the channel for good and takes the layer down with it
            log_event("error", "sync.channel_failed", user_id=self._user_id, channel=channel.value, extra={"error": e})
            if not self._closed:
                await self.stop(reason=f"{channel.value} failed: {type(e).__name__}")

    async def _consume_channel(self, channel: SyncChannel) -> None:
        failures = 0
        while not self._closed:
            try:
                subscription = await self._feed.subscribe(channel.value, self._user_id)
            except OSError as e:
                failures += 1
                if not await self._wait_before_reconnect(channel, failures, e):
                    return
                continue

            self._subscriptions[channel] = subscription
            log_event("info", "sync.channel_subscribed", user_id=self._user_id, channel=channel.value)
            try:
                async for message in subscription:
                    failures = 0
                    self.handle_message(channel, message)
            except OSError as e:
                failures += 1
                if not await self._wait_before_reconnect(channel, failures, e):
                    return
                continue
            finally:
                self._subscriptions.pop(channel, None)
                await subscription.close()

            # The feed ended this channel: the session cannot stay partially live
            if not self._closed:
                await self.stop(reason=f"{channel.value} closed by feed")
            return

    async def _wait_before_reconnect(self, channel: SyncChannel, failures: int, error: Exception) -> bool:
        if failures > self._max_attempts:
            log_event(
                "error",
                "sync.channel_gave_up",
                user_id=self._user_id,
                channel=channel.value,
                extra={"attempts": failures - 1, "error": error},
            )
            await self.stop(reason=f"{channel.value} reconnect attempts exhausted")
            return False
        delay = compute_backoff(failures, self._backoff)
        log_event(
            "warning",
            "sync.channel_reconnecting",
            user_id=self._user_id,
            channel=channel.value,
            extra={"attempt": failures, "delay_seconds": delay, "error": error},
        )
        await self._sleep(delay)
        return not self._closed
