import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from editorial.db import base, crud, models
from editorial.services import orchestrator
from editorial.services.run_config import load_run_config
from editorial.services.seeding import seeded_index

logger = logging.getLogger(__name__)


def cycle_key(now: datetime, every_hours: int) -> str:
    slot = (now.hour // every_hours) * every_hours
    return f"{now:%Y-%m-%d}T{slot:02d}"


def jitter_offset(candidate_id: int, window_minutes: int, key: str) -> int:
    """Minutes to delay a candidate within the window; same inputs give the same offset."""
    if window_minutes <= 0:
        return 0
    return seeded_index(f"{candidate_id}|{key}", window_minutes + 1)


def is_due(candidate: models.Candidate, now: datetime, every_hours: int) -> bool:
    last = candidate.last_auto_blog_at
    if last is None:
        return True
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    return now - last >= timedelta(hours=every_hours)


def due_candidates(db: Session, now: datetime, every_hours: int) -> List[models.Candidate]:
    return [c for c in crud.list_auto_blog_candidates(db) if is_due(c, now, every_hours)]


def run_candidate(candidate_id: int) -> Dict[str, Any]:
    # each job run gets its own session
    db = base.SessionLocal()
    request_id = uuid.uuid4().hex
    try:
        body = orchestrator.orchestrate(db, orchestrator.RunOptions(candidate_id=candidate_id), request_id)
        return {"candidate_id": candidate_id, "status": "skipped" if body.get("skipped") else "ok", **body}
    except orchestrator.OrchestrationError as e:
        logger.warning("[%s] scheduled run for candidate %s failed: %s", request_id, candidate_id, e.error)
        return {"candidate_id": candidate_id, "status": "failed", "error": e.error, "request_id": request_id}
    finally:
        db.close()


def run_once(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Run every due candidate right away, one after another."""
    now = now or datetime.now(timezone.utc)
    db = base.SessionLocal()
    try:
        rc = load_run_config(db)
        if not rc.auto_blog_global_enabled:
            return {"status": "disabled"}
        ids = [c.id for c in due_candidates(db, now, rc.every_hours)]
    finally:
        db.close()
    if not ids:
        return {"status": "nothing-due"}
    return {"status": "ran", "results": [run_candidate(cid) for cid in ids]}


def plan_cycle(schedule: Callable[[int, datetime], None], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Hand every due candidate to `schedule` at now + its jitter offset."""
    now = now or datetime.now(timezone.utc)
    db = base.SessionLocal()
    try:
        rc = load_run_config(db)
        if not rc.auto_blog_global_enabled:
            return {"status": "disabled"}
        key = cycle_key(now, rc.every_hours)
        planned = []
        for c in due_candidates(db, now, rc.every_hours):
            offset = jitter_offset(c.id, rc.jitter_minutes, key)
            run_at = now + timedelta(minutes=offset)
            schedule(c.id, run_at)
            planned.append({"candidate_id": c.id, "run_at": run_at.isoformat(), "offset_minutes": offset})
    finally:
        db.close()
    logger.info("cycle %s: %d candidate(s) planned", key, len(planned))
    return {"status": "planned", "cycle": key, "planned": planned}
