"""
poetrysuite/api/statistics.py

Writing statistics dashboard endpoint.
Records -> Reducers -> Read Model -> API.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query

from poetrysuite.api._common import parse_now
from poetrysuite.core.errors import FetchError, ValidationError
from poetrysuite.core.logging import log_event
from poetrysuite.features.records.store import get_record_store
from poetrysuite.features.statistics.reducers import compute_statistics
from poetrysuite.models.statistics import TimeRange

logger = logging.getLogger("poetrysuite.statistics")

router = APIRouter(tags=["statistics"])


@router.get("/v1/writing/statistics", response_model=Dict[str, Any])
async def get_writing_statistics(
    user_id: str = Query(..., min_length=1),
    range_: str = Query("month", alias="range", description="week | month | year"),
    now: Optional[str] = Query(None, description="ISO timestamp for deterministic results (testing only)"),
) -> Dict[str, Any]:
    """
    Derived statistics for one user over a trailing window.

    A store failure answers with zeroed statistics instead of an error.
    """
    try:
        time_range = TimeRange(range_)
    except ValueError:
        valid = ", ".join(r.value for r in TimeRange)
        raise ValidationError(f"Invalid range. Must be one of: {valid}")
    now_dt = parse_now(now)

    try:
        snapshot = await get_record_store().fetch_writing_snapshot(user_id)
        records, logs = snapshot.records, snapshot.logs
    except FetchError as e:
        log_event("warning", "statistics.fetch_failed", user_id=user_id, error_code=e.code, extra={"reason": e.message})
        records, logs = [], []

    stats = compute_statistics(records, logs, now_dt, time_range)
    return {"success": True, "data": stats.model_dump(mode="json")}
