"""Fire-and-forget fan-out of published posts to the workflow-automation webhook."""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import httpx
from sqlalchemy.orm import Session

from editorial.config import settings
from editorial.db import crud, models
from editorial.services.variants import CHANNELS

logger = logging.getLogger(__name__)

NETWORK_ALIASES = {
    "fb": "facebook",
    "meta": "facebook",
    "facebook page": "facebook",
    "ig": "instagram",
    "twitter": "x",
    "x.com": "x",
    "tg": "telegram",
    "threads.net": "threads",
}

SCOPES = ("page", "profile", "group", "channel", "community", "account")

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="dispatch")


def canonical_network(name: Optional[str]) -> Optional[str]:
    n = (name or "").strip().lower()
    n = NETWORK_ALIASES.get(n, n)
    return n if n in CHANNELS else None


def _scope(network_type: Optional[str]) -> str:
    t = (network_type or "").strip().lower()
    if t in ("subreddit", "community"):
        return "community"
    return t if t in SCOPES else "profile"


def _target_from_url(url: Optional[str]) -> str:
    try:
        path = urlparse(url or "").path
    except ValueError:
        return ""
    parts = [p for p in path.split("/") if p]
    return parts[-1].lstrip("@") if parts else ""


def build_routing_table(destinations: Iterable[models.SocialDestination]) -> List[Dict[str, Any]]:
    """Normalize approved destinations to {network, scope, target_id, credential_ref}, one row per target."""
    routes: List[Dict[str, Any]] = []
    seen = set()
    for d in destinations:
        network = canonical_network(d.network_name)
        if network is None:
            logger.info("destination %s skipped: unknown network %r", d.id, d.network_name)
            continue
        target = (d.target_id or "").strip() or _target_from_url(d.profile_or_page_url)
        if not target or (network, target.lower()) in seen:
            continue
        seen.add((network, target.lower()))
        routes.append({
            "network": network,
            "scope": _scope(d.network_type),
            "target_id": target,
            "credential_ref": d.credential_ref,
        })
    return routes


def build_payload(post: models.PublishedPost, draft: models.Draft, routes: List[Dict[str, Any]],
                  request_id: str) -> Dict[str, Any]:
    variants = draft.variants or {}
    networks = {r["network"] for r in routes}
    return {
        "request_id": request_id,
        "candidate_id": post.candidate_id,
        "draft_id": draft.id,
        "post": {
            "id": post.id,
            "slug": post.slug,
            "title": post.title,
            "image_url": draft.image_url,
            "source_url": post.source_url,
        },
        "channels": {ch: variants.get(ch, "") for ch in CHANNELS if ch in networks},
        "routes": routes,
    }


def send(payload: Dict[str, Any]) -> int:
    headers = {"Content-Type": "application/json"}
    if settings.dispatch_webhook_token:
        headers["x-webhook-token"] = settings.dispatch_webhook_token
    with httpx.Client(timeout=httpx.Timeout(settings.dispatch_timeout, connect=5)) as c:
        r = c.post(settings.dispatch_webhook_url, headers=headers, json=payload)
    r.raise_for_status()
    return r.status_code


def _observe(request_id: str, post_id: int):
    def callback(fut: Future) -> None:
        try:
            status = fut.result()
        except Exception:
            # nobody awaits this future; the log line is the only trace
            logger.exception("[%s] dispatch of post %s failed", request_id, post_id)
            return
        logger.info("[%s] dispatch of post %s accepted (HTTP %s)", request_id, post_id, status)
    return callback


def dispatch(db: Session, post: models.PublishedPost, draft: models.Draft, request_id: str = "") -> Optional[Future]:
    """Submit the fan-out and return immediately; the caller never waits on it."""
    if not (settings.dispatch_enabled and settings.dispatch_webhook_url):
        logger.info("[%s] dispatch disabled; post %s not fanned out", request_id, post.id)
        return None
    try:
        routes = build_routing_table(crud.approved_destinations(db, post.candidate_id))
        if not routes:
            logger.info("[%s] no approved destinations for candidate %s", request_id, post.candidate_id)
            return None
        fut = _executor.submit(send, build_payload(post, draft, routes, request_id))
    except Exception:
        # the post is already committed; the response must not depend on the fan-out
        logger.exception("[%s] dispatch of post %s could not be submitted", request_id, post.id)
        db.rollback()
        return None
    fut.add_done_callback(_observe(request_id, post.id))
    return fut
