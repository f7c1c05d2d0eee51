import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from time import mktime
from typing import List, Optional, Sequence
from urllib.parse import urljoin, urlparse

import feedparser
import httpx

from editorial.config import settings
from editorial.db import models
from editorial.services.signals import NewsSignal

logger = logging.getLogger(__name__)

MAX_FEED_BYTES = 500_000


def _parse_time(entry) -> Optional[datetime]:
    dt = getattr(entry, "published_parsed", None) or getattr(entry, "updated_parsed", None)
    if dt:
        try:
            return datetime.fromtimestamp(mktime(dt), tz=timezone.utc)
        except (OverflowError, ValueError):
            return None
    return None


def _safe_url(raw: str, base: str) -> Optional[str]:
    v = (raw or "").strip()
    if not v:
        return None
    u = urljoin(base, v)
    return u if urlparse(u).scheme in ("http", "https") else None


def fetch_feed(source: models.FeedSource, limit: int = 12, timeout: Optional[float] = None) -> List[NewsSignal]:
    """Fetch one feed with a hard timeout and parse it with feedparser."""
    timeout = timeout or settings.feed_timeout
    with httpx.Client(timeout=httpx.Timeout(timeout, connect=min(timeout, 5)), follow_redirects=True) as c:
        r = c.get(source.rss_url)
        r.raise_for_status()
        body = r.content[:MAX_FEED_BYTES]
    feed = feedparser.parse(body)
    results: List[NewsSignal] = []
    for entry in getattr(feed, "entries", [])[:limit]:
        title = " ".join((getattr(entry, "title", "") or "").split())[:220]
        url = _safe_url(getattr(entry, "link", ""), source.base_url)
        if not title or not url:
            continue
        results.append(NewsSignal(
            title=title,
            url=url,
            published_at=_parse_time(entry),
            source_name=source.name,
            region=source.region_key or "",
            provider="rss",
        ))
    return results


def collect_feed_items(sources: Sequence[models.FeedSource], max_sources: Optional[int] = None) -> List[NewsSignal]:
    """Fetch the first `max_sources` feeds concurrently; failed feeds are skipped."""
    picked = list(sources)[: max_sources or settings.feed_max_sources]
    if not picked:
        return []
    items: List[NewsSignal] = []
    with ThreadPoolExecutor(max_workers=len(picked), thread_name_prefix="feed") as pool:
        futures = [(s, pool.submit(fetch_feed, s)) for s in picked]
        for source, fut in futures:
            try:
                items.extend(fut.result())
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                logger.info("feed %s skipped: %s", source.rss_url, e)
            except Exception:
                logger.exception("feed %s skipped", source.rss_url)
    return items
