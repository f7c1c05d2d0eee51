from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import urlparse


@dataclass
class NewsSignal:
    title: str
    url: str
    published_at: Optional[datetime] = None
    source_name: str = ""
    region: str = ""
    classification: str = "general"  # grave | viral | general
    score: int = 0
    provider: str = "rss"            # rss | news_search | manual | reframe
    query: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def host(self) -> str:
        return domain_of(self.url)

    def to_meta(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "title": self.title,
            "url": self.url,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "source_name": self.source_name or self.host,
            "region": self.region,
            "classification": self.classification,
            "score": self.score,
            "query": self.query,
        }


def normalize_url(url: str) -> str:
    return (url or "").strip().rstrip("/").lower()


def domain_of(url: str) -> str:
    try:
        host = urlparse(url or "").netloc.lower()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host
