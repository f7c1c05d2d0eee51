"""Pick one news signal for a candidate from licensed feeds and the news-search provider."""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Set, Tuple
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from editorial.db import crud, models
from editorial.policy import EditorialPolicy
from editorial.services import news_search, rss_fetcher
from editorial.services.signals import NewsSignal, domain_of, normalize_url

logger = logging.getLogger(__name__)

MODES = ("grave", "viral", "any")

BUCKET_ORDER = {
    "grave": ("grave", "viral", "general"),
    "viral": ("viral", "grave", "general"),
}


@dataclass
class SignalSelection:
    signal: Optional[NewsSignal] = None
    reframe_body: Optional[str] = None
    reframe_post_id: Optional[int] = None
    queries: List[str] = field(default_factory=list)
    feed_items: int = 0
    search_items: int = 0

    @property
    def article_found(self) -> bool:
        return self.signal is not None and self.signal.provider != "reframe"


def is_national(office: str) -> bool:
    off = (office or "").lower()
    return "senado" in off or "presiden" in off


def normalize_region_key(region: str, office: str) -> str:
    if is_national(office):
        return "colombia"
    r = (region or "").strip().lower()
    if not r:
        return "default"
    if "bogot" in r:
        return "bogota"
    if r == "meta" or "departamento del meta" in r or r.startswith("meta ("):
        return "meta"
    if "colombia" in r or "nacional" in r:
        return "colombia"
    return "default"


def feed_region_keys(candidate: models.Candidate) -> List[str]:
    key = normalize_region_key(candidate.region, candidate.office)
    return [key] if key == "colombia" else [key, "colombia"]


def query_cascade(candidate: models.Candidate, policy: EditorialPolicy) -> List[str]:
    """Search queries from most to least specific."""
    region = (candidate.region or "").strip()
    topic = policy.topic_keywords[0] if policy.topic_keywords else ""
    queries: List[str] = []
    if region and not is_national(candidate.office) and region.lower() != "colombia":
        queries.append(f"{region} {topic}".strip())
        queries.append(f"{region} Colombia")
    elif topic:
        queries.append(f"Colombia {topic}")
    queries.append(policy.national_query)
    seen: Set[str] = set()
    return [q for q in queries if not (q.lower() in seen or seen.add(q.lower()))]


def query_terms(candidate: models.Candidate, policy: EditorialPolicy) -> List[str]:
    key = normalize_region_key(candidate.region, candidate.office)
    terms = [t for t in (candidate.region or "").split() if t]
    terms.extend(policy.topic_keywords)
    terms.extend(policy.region_providers.get(key, []))
    return terms


def recency_points(published_at: Optional[datetime], now: datetime, policy: EditorialPolicy) -> int:
    if published_at is None:
        return 0
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=timezone.utc)
    hours = (now - published_at).total_seconds() / 3600
    for max_hours, points in policy.recency_buckets:
        if hours <= max_hours:
            return points
    return policy.recency_stale_points


def _hits(text: str, keywords: Iterable[str]) -> int:
    t = (text or "").lower()
    return sum(1 for k in keywords if k and k.lower() in t)


def classify(title: str, policy: EditorialPolicy) -> str:
    if _hits(title, policy.grave_keywords):
        return "grave"
    if _hits(title, policy.viral_keywords):
        return "viral"
    return "general"


def score_signal(signal: NewsSignal, terms: Sequence[str], now: datetime, policy: EditorialPolicy) -> int:
    severity = min(policy.severity_cap, _hits(signal.title, policy.severity_keywords) * policy.severity_hit_points)
    overlap = sum(1 for t in terms if len(t) >= policy.query_term_min_len and t.lower() in (signal.title or "").lower())
    query_match = min(policy.query_cap, overlap * policy.query_hit_points)
    return recency_points(signal.published_at, now, policy) + severity * policy.severity_weight + query_match


def is_denylisted(url: str, policy: EditorialPolicy) -> bool:
    host = domain_of(url)
    return any(host == d or host.endswith("." + d) for d in policy.denylisted_domains)


def _sort_key(s: NewsSignal) -> Tuple[int, float]:
    ts = s.published_at.timestamp() if s.published_at else 0.0
    return s.score, ts


def rank_signals(items: Iterable[NewsSignal], mode: str, terms: Sequence[str], exclude: Iterable[str],
                 policy: EditorialPolicy, now: Optional[datetime] = None) -> Optional[NewsSignal]:
    """Score, bucket and pick the best eligible signal, or None."""
    now = now or datetime.now(timezone.utc)
    excluded = {normalize_url(u) for u in exclude if u}
    seen: Set[str] = set()
    pool: List[NewsSignal] = []
    for it in items:
        key = normalize_url(it.url)
        if not key or key in seen or key in excluded or is_denylisted(it.url, policy):
            continue
        seen.add(key)
        it.classification = classify(it.title, policy)
        it.score = score_signal(it, terms, now, policy)
        pool.append(it)
    if not pool:
        return None
    if mode not in BUCKET_ORDER:
        return max(pool, key=_sort_key)
    for bucket in BUCKET_ORDER[mode]:
        members = [s for s in pool if s.classification == bucket]
        if members:
            return max(members, key=_sort_key)
    return None


def manual_signal(links: Sequence[str], exclude: Iterable[str], policy: EditorialPolicy) -> Optional[NewsSignal]:
    excluded = {normalize_url(u) for u in exclude if u}
    for link in links or []:
        link = (link or "").strip()
        if urlparse(link).scheme not in ("http", "https"):
            continue
        if normalize_url(link) in excluded or is_denylisted(link, policy):
            continue
        return NewsSignal(title="", url=link, source_name=domain_of(link), provider="manual")
    return None


def _search_cascade(queries: Sequence[str], mode: str, terms: Sequence[str], exclude: Iterable[str],
                    policy: EditorialPolicy) -> List[NewsSignal]:
    exclude = list(exclude)
    for q in queries:
        found = news_search.search_articles(q)
        if rank_signals(list(found), mode, terms, exclude, policy) is not None:
            return found
    return []


def _settle(fut: Future, what: str, candidate_id: int) -> List[NewsSignal]:
    # a failing provider contributes no items
    try:
        return list(fut.result())
    except Exception:
        logger.exception("%s failed for candidate %s", what, candidate_id)
        return []


def select_signal(db: Session, candidate: models.Candidate, mode: str, exclude: Iterable[str],
                  policy: EditorialPolicy, news_links: Optional[Sequence[str]] = None) -> SignalSelection:
    exclude = list(exclude)
    mode = mode if mode in MODES else "any"
    queries = query_cascade(candidate, policy)
    selection = SignalSelection(queries=queries)

    manual = manual_signal(news_links or [], exclude, policy)
    if manual is not None:
        manual.region = candidate.region or ""
        manual.classification = "grave" if mode == "grave" else "general"
        selection.signal = manual
        return selection

    terms = query_terms(candidate, policy)
    sources = crud.eligible_feed_sources(db, feed_region_keys(candidate))
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="news") as pool:
        feeds_f = pool.submit(rss_fetcher.collect_feed_items, sources)
        search_f = pool.submit(_search_cascade, queries, mode, terms, exclude, policy)
        feed_items = _settle(feeds_f, "feed fan-out", candidate.id)
        search_items = _settle(search_f, "news search", candidate.id)
    selection.feed_items = len(feed_items)
    selection.search_items = len(search_items)

    picked = rank_signals(feed_items + search_items, mode, terms, exclude, policy)
    if picked is not None:
        if not picked.region:
            picked.region = candidate.region or ""
        selection.signal = picked
        return selection

    last = crud.last_published_post(db, candidate.id)
    if last is not None:
        selection.signal = NewsSignal(
            title=last.title,
            url=last.source_url or "",
            published_at=last.published_at,
            source_name="citizen_news_posts",
            region=candidate.region or "",
            provider="reframe",
        )
        selection.reframe_body = last.body
        selection.reframe_post_id = last.id
        return selection

    logger.info("no signal for candidate %s (mode=%s); continuing without news", candidate.id, mode)
    return selection
