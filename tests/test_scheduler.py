from datetime import datetime, timedelta, timezone

from editorial.db import crud
from editorial.routers import scheduler_api
from editorial.services import orchestrator, scheduler
from editorial.services.run_config import AUTO_BLOG_KEY, JITTER_KEY

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def test_jitter_is_deterministic_and_bounded():
    offsets = [scheduler.jitter_offset(cid, 45, "2026-03-01T08") for cid in range(1, 40)]
    assert offsets == [scheduler.jitter_offset(cid, 45, "2026-03-01T08") for cid in range(1, 40)]
    assert all(0 <= o <= 45 for o in offsets)
    assert len(set(offsets)) > 1
    assert scheduler.jitter_offset(1, 0, "k") == 0


def test_cycle_key_buckets_hours():
    assert scheduler.cycle_key(NOW, 4) == "2026-03-01T08"
    assert scheduler.cycle_key(NOW.replace(hour=3), 4) == "2026-03-01T00"


def test_due_candidates(db, make_candidate):
    fresh = make_candidate()
    recent = make_candidate(slug="reciente", last_auto_blog_at=NOW - timedelta(hours=1))
    old = make_candidate(slug="viejo", last_auto_blog_at=NOW - timedelta(hours=5))
    make_candidate(slug="apagado", auto_blog_enabled=False)
    due = [c.id for c in scheduler.due_candidates(db, NOW, 4)]
    assert due == [fresh.id, old.id]
    assert recent.id not in due


def test_plan_cycle_uses_jitter(db, make_candidate):
    crud.set_setting(db, JITTER_KEY, "30")
    c = make_candidate()
    planned = []
    result = scheduler.plan_cycle(lambda cid, run_at: planned.append((cid, run_at)), now=NOW)
    offset = scheduler.jitter_offset(c.id, 30, "2026-03-01T08")
    assert planned == [(c.id, NOW + timedelta(minutes=offset))]
    assert result["planned"][0]["offset_minutes"] == offset


def test_global_switch_disables_cycle(db, make_candidate):
    crud.set_setting(db, AUTO_BLOG_KEY, "false")
    make_candidate()
    assert scheduler.run_once(now=NOW) == {"status": "disabled"}
    assert scheduler.plan_cycle(lambda cid, run_at: None, now=NOW) == {"status": "disabled"}


def test_run_once_reports_each_candidate(make_candidate, monkeypatch):
    ok = make_candidate()
    bad = make_candidate(slug="falla")

    def fake_orchestrate(db, options, request_id, policy=None):
        if options.candidate_id == bad.id:
            raise orchestrator.OrchestrationError(502, "engines_failed")
        return {"ok": True, "id": 1, "request_id": request_id}

    monkeypatch.setattr(orchestrator, "orchestrate", fake_orchestrate)
    result = scheduler.run_once(now=NOW)
    assert result["status"] == "ran"
    by_id = {r["candidate_id"]: r for r in result["results"]}
    assert by_id[ok.id]["status"] == "ok"
    assert by_id[bad.id]["status"] == "failed"
    assert by_id[bad.id]["error"] == "engines_failed"


def test_scheduler_api_requires_token_and_starts(client, auth):
    assert client.get("/scheduler/status").status_code == 401
    try:
        resp = client.post("/scheduler/start", headers=auth)
        assert resp.json() == {"status": "started", "cron": "0 */4 * * *"}
        status = client.get("/scheduler/status", headers=auth).json()
        assert status["running"] is True
        assert status["jobs"][0]["id"] == "editorial_cycle"
        assert client.post("/scheduler/start", headers=auth).json() == {"status": "already-running"}
    finally:
        assert client.post("/scheduler/stop", headers=auth).json() == {"status": "stopped"}
    assert scheduler_api.scheduler.running is False
