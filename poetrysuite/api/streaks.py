from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from poetrysuite.api._common import parse_now
from poetrysuite.core.errors import FetchError
from poetrysuite.core.logging import log_event
from poetrysuite.features.celebrations.milestones import MILESTONES, Milestone, next_milestone, reached_milestones
from poetrysuite.features.records.store import get_record_store
from poetrysuite.features.streaks.state import StreakAchievementState
from poetrysuite.models.streak import StreakState

router = APIRouter(tags=["streaks"])


@router.get("/v1/writing/streak")
async def get_writing_streak(
    user_id: str = Query(..., min_length=1),
    now: Optional[str] = Query(None, description="ISO timestamp for deterministic results (testing only)"),
):
    """Stored streak, achievements (newest first) and today's log for a user.

    A store failure answers with a zero streak instead of an error.
    """
    now_dt = parse_now(now)
    state = StreakAchievementState(tz=now_dt.tzinfo, clock=lambda: now_dt)
    try:
        stored = await get_record_store().fetch_streak_snapshot(user_id, state.today())
        state.seed(stored.streak, stored.achievements, stored.today_log)
    except FetchError as e:
        log_event("warning", "streak.fetch_failed", user_id=user_id, error_code=e.code, extra={"reason": e.message})
        state.seed(StreakState(), [], None)

    data = state.snapshot()
    upcoming = next_milestone(state.streak.current_streak)
    data["next_milestone"] = _milestone_dict(upcoming) if upcoming else None
    return {"success": True, "data": data}


@router.get("/v1/writing/milestones")
def get_milestones(current_streak: int = Query(0, ge=0)):
    upcoming = next_milestone(current_streak)
    return {
        "milestones": [_milestone_dict(m) for m in MILESTONES],
        "reached": [m.threshold_days for m in reached_milestones(current_streak)],
        "next": _milestone_dict(upcoming) if upcoming else None,
        "days_to_next": upcoming.threshold_days - current_streak if upcoming else None,
    }


def _milestone_dict(milestone: Milestone) -> dict:
    return {
        "threshold_days": milestone.threshold_days,
        "label": milestone.label,
        "visual_tier": milestone.visual_tier,
    }
