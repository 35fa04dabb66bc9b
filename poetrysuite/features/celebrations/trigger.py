"""
Celebration trigger

Two-state machine (idle / celebrating) watching state transitions emitted by
the streak & achievement state. Side-effect only: it never touches the
state it observes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence

from poetrysuite.core.config import settings
from poetrysuite.features.celebrations.milestones import MILESTONES, Milestone, milestone_for
from poetrysuite.models.streak import Achievement

logger = logging.getLogger("poetrysuite.celebrations")


class CelebrationState(str, Enum):
    IDLE = "idle"
    CELEBRATING = "celebrating"


@dataclass(frozen=True)
class CelebrationPayload:
    """What the presentation layer shows while celebrating."""

    milestone: Optional[Milestone] = None
    achievement: Optional[Achievement] = None

    @property
    def has_achievement(self) -> bool:
        return self.achievement is not None


Listener = Callable[[CelebrationState, Optional[CelebrationPayload]], None]


class CelebrationTrigger:
    """
    idle -> celebrating when a streak lands exactly on a milestone or an
    achievement is inserted; celebrating -> idle after the dwell time.

    A trigger arriving mid-celebration replaces the payload and restarts the
    dwell timer (last trigger wins, nothing is queued).
    """

    def __init__(
        self,
        milestones: Sequence[Milestone] = MILESTONES,
        *,
        milestone_dwell_seconds: Optional[float] = None,
        achievement_dwell_seconds: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._milestones = tuple(milestones)
        self._milestone_dwell = (
            milestone_dwell_seconds
            if milestone_dwell_seconds is not None
            else settings.CELEBRATION_MILESTONE_DWELL_SECONDS
        )
        self._achievement_dwell = (
            achievement_dwell_seconds
            if achievement_dwell_seconds is not None
            else settings.CELEBRATION_ACHIEVEMENT_DWELL_SECONDS
        )
        self._loop = loop
        self._state = CelebrationState.IDLE
        self._payload: Optional[CelebrationPayload] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._listeners: List[Listener] = []
        self._closed = False

    @property
    def state(self) -> CelebrationState:
        return self._state

    @property
    def payload(self) -> Optional[CelebrationPayload]:
        """The triggering payload while celebrating, else None."""
        return self._payload

    @property
    def is_celebrating(self) -> bool:
        return self._state == CelebrationState.CELEBRATING

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a transition callback; returns an unsubscribe function."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def observe(self, events: Iterable[dict]) -> bool:
        """
        Inspect emitted state transitions; returns True if a celebration fired.

        A milestone and an achievement in the same batch are shown together.
        """
        if self._closed:
            return False

        milestone: Optional[Milestone] = None
        achievement: Optional[Achievement] = None
        for event in events:
            event_type = event.get("type")
            payload = event.get("payload") or {}
            if event_type == "streak.changed":
                hit = milestone_for(payload.get("currentStreak", -1), self._milestones)
                if hit is not None:
                    milestone = hit
            elif event_type == "achievement.inserted":
                achievement = payload.get("achievement")

        if milestone is None and achievement is None:
            return False
        self._fire(CelebrationPayload(milestone=milestone, achievement=achievement))
        return True

    def close(self) -> None:
        """Cancel any running dwell timer; later observations are ignored."""
        self._closed = True
        self._cancel_timer()
        self._state = CelebrationState.IDLE
        self._payload = None
        self._listeners.clear()

    def _fire(self, payload: CelebrationPayload) -> None:
        dwell = self._achievement_dwell if payload.has_achievement else self._milestone_dwell
        loop = self._loop or asyncio.get_running_loop()

        self._cancel_timer()
        restarted = self.is_celebrating
        self._state = CelebrationState.CELEBRATING
        self._payload = payload
        self._timer = loop.call_later(dwell, self._settle)

        logger.info(
            "celebration.started",
            extra={
                "milestone": payload.milestone.label if payload.milestone else None,
                "achievement": payload.achievement.name if payload.achievement else None,
                "restarted": restarted,
                "dwell_seconds": dwell,
            },
        )
        self._notify()

    def _settle(self) -> None:
        self._timer = None
        if self._closed:
            return
        self._state = CelebrationState.IDLE
        self._payload = None
        logger.debug("celebration.ended")
        self._notify()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state, self._payload)
            except Exception:
                logger.exception("celebration.listener_failed")
