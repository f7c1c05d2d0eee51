"""Image acquisition: licensed photo, then synthesized image, then placeholder."""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import quote

import httpx

from editorial.config import settings
from editorial.policy import EditorialPolicy
from editorial.services import generator, storage
from editorial.services.prompts import build_image_prompt
from editorial.services.seeding import seeded_index, short_hash
from editorial.services.signals import normalize_url

logger = logging.getLogger(__name__)

TIERS = ("licensed", "synthesized", "placeholder")

EXTENSIONS = {"image/jpeg": "jpg", "image/jpg": "jpg", "image/png": "png", "image/webp": "webp", "image/avif": "avif"}

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass
class ImageChoice:
    url: str
    tier: str
    attribution: Dict[str, Any] = field(default_factory=dict)

    def to_meta(self) -> Dict[str, Any]:
        return {"url": self.url, "tier": self.tier, **self.attribution}


def _text(v: Any) -> Optional[str]:
    if not isinstance(v, str) or not v.strip():
        return None
    return _TAG_RE.sub("", v).strip() or None


def license_allowed(license_short: Optional[str], policy: EditorialPolicy) -> bool:
    s = (license_short or "").lower()
    return bool(s) and any(m in s for m in policy.allowed_license_markers)


def is_denylisted(title_and_url: str, policy: EditorialPolicy) -> bool:
    s = (title_and_url or "").lower()
    return any(d in s for d in policy.image_denylist)


def query_variants(keywords: Iterable[str], region: str) -> List[str]:
    semantic = " ".join(k for k in list(keywords)[:6] if k).strip()
    region = (region or "Colombia").strip()
    out = []
    for q in (semantic, f"{region} foto", f"{region} calle personas foto"):
        q = " ".join(q.split())[:180]
        if q and q not in out:
            out.append(q)
    return out


def search_commons(query: str, policy: EditorialPolicy) -> List[Dict[str, Any]]:
    """Search Wikimedia Commons files; only free-licensed raster photos are returned."""
    params = {
        "action": "query",
        "format": "json",
        "generator": "search",
        "gsrsearch": query,
        "gsrlimit": "18",
        "gsrnamespace": "6",
        "prop": "imageinfo",
        "iiprop": "url|mime|extmetadata",
        "iiurlwidth": "1400",
    }
    try:
        with httpx.Client(timeout=httpx.Timeout(8, connect=5),
                          headers={"User-Agent": settings.media_user_agent}) as c:
            r = c.get(settings.media_search_url, params=params)
        if r.status_code != 200:
            return []
        pages = (r.json().get("query") or {}).get("pages") or {}
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.info("commons search %r failed: %s", query, e)
        return []

    out = []
    for page in pages.values():
        title = _text(page.get("title"))
        infos = page.get("imageinfo") or []
        info = infos[0] if infos and isinstance(infos[0], dict) else {}
        url = _text(info.get("url"))
        mime = (info.get("mime") or "").lower()
        if not title or not url or mime not in policy.raster_mimes:
            continue
        if is_denylisted(f"{title} {url}", policy):
            continue
        meta = info.get("extmetadata") or {}
        license_short = _text((meta.get("LicenseShortName") or {}).get("value"))
        if not license_allowed(license_short, policy):
            continue
        out.append({
            "image_url": url,
            "thumb_url": _text(info.get("thumburl")),
            "page_url": "https://commons.wikimedia.org/wiki/" + quote(title.replace(" ", "_")),
            "mime": mime,
            "license": license_short,
            "author": _text((meta.get("Artist") or {}).get("value")),
            "attribution": _text((meta.get("Attribution") or {}).get("value"))
            or _text((meta.get("Credit") or {}).get("value")),
        })
    return out


def _relevance(c: Dict[str, Any], query: str) -> int:
    haystack = f"{c['page_url']} {c['image_url']}".lower()
    tokens = [t for t in re.split(r"[\s,;|]+", query.lower()) if len(t) >= 4][:10]
    score = sum(1 for t in tokens if t in haystack)
    if c.get("thumb_url") and re.search(r"/\d+px-", c["thumb_url"]):
        score += 1
    return score


def pick_licensed(keywords: List[str], region: str, avoid: Set[str], seed: str,
                  policy: EditorialPolicy) -> Optional[ImageChoice]:
    for query in query_variants(keywords, region):
        pool = [c for c in search_commons(query, policy) if normalize_url(c["image_url"]) not in avoid]
        if not pool:
            continue
        pool.sort(key=lambda c: _relevance(c, query), reverse=True)
        top = pool[: policy.image_top_slice]
        c = top[seeded_index(f"{seed}|{query}", len(top))]
        return ImageChoice(url=c["image_url"], tier="licensed", attribution={
            "source": "wikimedia_commons",
            "license": c["license"],
            "author": c["author"],
            "attribution": c["attribution"],
            "page_url": c["page_url"],
            "query": query,
        })
    return None


def download_image(url: str, policy: EditorialPolicy) -> Tuple[bytes, str]:
    """Fetch a raster image, refusing other content types and anything past the size cap."""
    cap = settings.image_max_bytes
    with httpx.Client(timeout=httpx.Timeout(settings.image_download_timeout, connect=5),
                      follow_redirects=True) as c:
        with c.stream("GET", url) as r:
            r.raise_for_status()
            ctype = r.headers.get("content-type", "").split(";")[0].strip().lower()
            if ctype not in policy.raster_mimes:
                raise ValueError(f"unsupported content type {ctype!r}")
            if int(r.headers.get("content-length") or 0) > cap:
                raise ValueError("image too large")
            buf = bytearray()
            for chunk in r.iter_bytes():
                buf.extend(chunk)
                if len(buf) > cap:
                    raise ValueError("image too large")
    return bytes(buf), ctype


def synthesize(candidate_id: int, keywords: List[str], region: str, seed: str, avoid: Set[str],
               policy: EditorialPolicy, backends: Optional[Dict[str, Any]] = None) -> Optional[ImageChoice]:
    if not storage.configured():
        return None
    reply, diagnostics = generator.generate_image(build_image_prompt(keywords, region), backends)
    if reply is None:
        logger.info("image synthesis unavailable: %s", diagnostics)
        return None
    try:
        if reply.image_bytes:
            data, ctype = reply.image_bytes, reply.image_content_type or "image/png"
            if len(data) > settings.image_max_bytes:
                raise ValueError("image too large")
        else:
            data, ctype = download_image(reply.image_url, policy)
        day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        path = f"{candidate_id}/news-images/{day}/{short_hash(seed, 'image')}.{EXTENSIONS.get(ctype, 'png')}"
        url = storage.upload(path, data, ctype)
    except (httpx.HTTPError, ValueError, storage.StorageError) as e:
        logger.warning("synthesized image dropped: %s", e)
        return None
    if normalize_url(url) in avoid:
        return None
    return ImageChoice(url=url, tier="synthesized", attribution={
        "source": "ai_generated",
        "provider": reply.engine,
        "license": None,
        "storage_path": path,
        "engines": diagnostics,
    })


def placeholder(candidate_id: int, seed: str, avoid: Set[str]) -> ImageChoice:
    """Deterministic placeholder; the salt moves forward until the URL is not avoided."""
    base = settings.placeholder_base_url.rstrip("/")
    # at most len(avoid) URLs can collide, so this always returns
    for salt in range(len(avoid) + 1):
        key = short_hash(candidate_id, seed, salt)
        url = f"{base}/seed/{key}/1200/630"
        if normalize_url(url) not in avoid:
            return ImageChoice(url=url, tier="placeholder",
                               attribution={"source": "placeholder", "license": None, "salt": salt})
    raise RuntimeError("unreachable")


def acquire_image(candidate_id: int, keywords: List[str], region: str, seed: str, avoid: Iterable[str],
                  policy: EditorialPolicy, backends: Optional[Dict[str, Any]] = None) -> ImageChoice:
    """Run the cascade. Never fails: the last tier always yields a URL."""
    avoid_set = {normalize_url(u) for u in avoid if u}
    choice = pick_licensed(keywords, region, avoid_set, seed, policy)
    if choice is None:
        choice = synthesize(candidate_id, keywords, region, seed, avoid_set, policy, backends)
    if choice is None:
        choice = placeholder(candidate_id, seed, avoid_set)
    logger.info("image tier=%s url=%s", choice.tier, choice.url)
    return choice
