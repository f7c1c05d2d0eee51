from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from fastapi import APIRouter, Depends

from editorial.auth.automation import require_automation_token
from editorial.db.base import SessionLocal
from editorial.services.run_config import load_run_config
from editorial.services.scheduler import plan_cycle, run_candidate, run_once

router = APIRouter(prefix="/scheduler", tags=["scheduler"], dependencies=[Depends(require_automation_token)])

scheduler: Optional[BackgroundScheduler] = None


def _schedule_candidate(candidate_id: int, run_at: datetime) -> None:
    scheduler.add_job(run_candidate, DateTrigger(run_date=run_at), args=[candidate_id],
                      id=f"candidate_{candidate_id}", replace_existing=True, max_instances=1)


def _plan() -> Dict[str, Any]:
    return plan_cycle(_schedule_candidate)


@router.post("/run")
def run_now() -> Dict[str, Any]:
    return run_once()


@router.post("/start")
def start(cron: Optional[str] = None) -> Dict[str, Any]:
    # default: top of every cycle (auto_blog_every_hours). Standard 5-field cron: m h dom mon dow
    global scheduler
    if scheduler and scheduler.running:
        return {"status": "already-running"}

    if not cron:
        db = SessionLocal()
        try:
            every = load_run_config(db).every_hours
        finally:
            db.close()
        cron = f"0 */{every} * * *"

    scheduler = BackgroundScheduler(timezone="UTC")
    trigger = CronTrigger.from_crontab(cron)
    scheduler.add_job(_plan, trigger, id="editorial_cycle", replace_existing=True, max_instances=1, coalesce=True)
    scheduler.start()
    return {"status": "started", "cron": cron}


@router.post("/stop")
def stop() -> Dict[str, Any]:
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        return {"status": "stopped"}
    return {"status": "not-running"}


@router.get("/status")
def status() -> Dict[str, Any]:
    running = bool(scheduler and scheduler.running)
    jobs = []
    if running:
        jobs = [{"id": j.id, "next_run": j.next_run_time.isoformat() if j.next_run_time else None}
                for j in scheduler.get_jobs()]
    return {"running": running, "jobs": jobs}
