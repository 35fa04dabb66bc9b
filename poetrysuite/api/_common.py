from datetime import datetime
from typing import Optional

from poetrysuite.core.config import get_timezone
from poetrysuite.core.errors import ValidationError


def parse_now(now: Optional[str]) -> datetime:
    """Resolve the ``now`` query parameter in the configured calendar timezone.

    Naive timestamps are read as wall-clock time in that timezone.
    """
    tz = get_timezone()
    if not now:
        return datetime.now(tz)
    try:
        parsed = datetime.fromisoformat(now.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid 'now' timestamp: {now}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)
