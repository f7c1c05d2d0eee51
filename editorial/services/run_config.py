from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import Session
from editorial.db import crud

KILL_SWITCH_KEY = "auto_publish_global_enabled"
AUTO_BLOG_KEY = "auto_blog_global_enabled"
EVERY_HOURS_KEY = "auto_blog_every_hours"
JITTER_KEY = "scheduler_jitter_minutes"
LOOKBACK_KEY = "avoid_lookback_runs"


@dataclass(frozen=True)
class RunConfig:
    """Global switches read once per invocation and passed down explicitly."""
    auto_publish_global_enabled: bool = False
    auto_blog_global_enabled: bool = True
    every_hours: int = 4
    jitter_minutes: int = 45
    avoid_lookback_runs: Optional[int] = None


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")

def _parse_int(value: Optional[str], default: int, lo: int, hi: int) -> int:
    try:
        n = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return n if lo <= n <= hi else default


def load_run_config(db: Session) -> RunConfig:
    lookback = _parse_int(crud.get_setting(db, LOOKBACK_KEY), 0, 1, 500)
    return RunConfig(
        # publishing is off unless someone turned it on
        auto_publish_global_enabled=_parse_bool(crud.get_setting(db, KILL_SWITCH_KEY), False),
        auto_blog_global_enabled=_parse_bool(crud.get_setting(db, AUTO_BLOG_KEY), True),
        every_hours=_parse_int(crud.get_setting(db, EVERY_HOURS_KEY), 4, 1, 24),
        jitter_minutes=_parse_int(crud.get_setting(db, JITTER_KEY), 45, 0, 720),
        avoid_lookback_runs=lookback or None,
    )
