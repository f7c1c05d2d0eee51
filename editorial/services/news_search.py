import logging
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from editorial.config import settings
from editorial.services.signals import NewsSignal

logger = logging.getLogger(__name__)


def _parse_seendate(raw: str) -> Optional[datetime]:
    raw = (raw or "").strip()
    for fmt in ("%Y%m%dT%H%M%SZ", "%Y-%m-%dT%H:%M:%SZ"):
        try:
            return datetime.strptime(raw, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def search_articles(query: str, max_records: int = 20, timespan: str = "3d") -> List[NewsSignal]:
    """Query the news-search provider (GDELT DOC API). Returns [] on any upstream problem."""
    params = {
        "query": query,
        "mode": "ArtList",
        "format": "json",
        "maxrecords": str(max_records),
        "sort": "HybridRel",
        "timespan": timespan,
    }
    try:
        with httpx.Client(timeout=httpx.Timeout(settings.news_search_timeout, connect=5)) as c:
            r = c.get(settings.news_search_url, params=params)
        if r.status_code != 200:
            logger.info("news search %r -> HTTP %s", query, r.status_code)
            return []
        data = r.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.info("news search %r failed: %s", query, e)
        return []

    articles = data.get("articles") if isinstance(data, dict) else None
    out: List[NewsSignal] = []
    for a in articles or []:
        if not isinstance(a, dict):
            continue
        title = str(a.get("title") or "").strip()
        url = str(a.get("url") or "").strip()
        if not title or not url.startswith(("http://", "https://")):
            continue
        out.append(NewsSignal(
            title=title[:220],
            url=url,
            published_at=_parse_seendate(str(a.get("seendate") or "")),
            source_name=str(a.get("domain") or ""),
            provider="news_search",
            query=query,
        ))
    return out
