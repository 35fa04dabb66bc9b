import logging
from datetime import timezone, tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings
from pydantic import ConfigDict


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Record storage (external collaborator)
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Calendar used for "today", daily buckets and hour-of-day stats
    TIMEZONE: str = "UTC"

    # Celebration dwell times
    CELEBRATION_MILESTONE_DWELL_SECONDS: float = 3.0
    CELEBRATION_ACHIEVEMENT_DWELL_SECONDS: float = 4.0

    # Live sync reconnect policy (per channel)
    SYNC_RECONNECT_BACKOFF_SECONDS: str = "1,2,5,10,30"  # comma-separated
    SYNC_MAX_RECONNECT_ATTEMPTS: int = 5

    # Coarse statistics refresh timer (0 = disabled)
    STATS_REFRESH_SECONDS: int = 300

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


def parse_backoff(raw: Optional[str] = None) -> List[float]:
    """Parse the reconnect backoff schedule, falling back to the default."""
    default = [1.0, 2.0, 5.0, 10.0, 30.0]
    value = raw if raw is not None else settings.SYNC_RECONNECT_BACKOFF_SECONDS
    try:
        parsed = [float(x.strip()) for x in value.split(",") if x.strip()]
    except ValueError:
        return default
    if any(x < 0 for x in parsed):
        return default
    return parsed or default


def get_timezone(name: Optional[str] = None) -> tzinfo:
    """Resolve the configured calendar timezone."""
    tz_name = name or settings.TIMEZONE or "UTC"
    if tz_name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(tz_name)


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate engine configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("poetrysuite")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if not getattr(cfg, "DATABASE_URL", None):
        problems.append("DATABASE_URL is not set; using in-memory record store")
    if cfg.CELEBRATION_MILESTONE_DWELL_SECONDS <= 0 or cfg.CELEBRATION_ACHIEVEMENT_DWELL_SECONDS <= 0:
        problems.append("celebration dwell times must be positive")
    if cfg.SYNC_MAX_RECONNECT_ATTEMPTS < 0:
        problems.append("SYNC_MAX_RECONNECT_ATTEMPTS must be >= 0")

    if problems:
        message = "Configuration issues: " + "; ".join(problems)
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
