import logging
import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from editorial.db import crud, models
from editorial.policy import EditorialPolicy
from editorial.services.run_config import RunConfig
from editorial.services.variants import INFO_PATH

logger = logging.getLogger(__name__)

SLUG_MAX = 80


def gate_open(run_config: RunConfig, candidate: models.Candidate) -> Tuple[bool, str]:
    """Both the global kill-switch and the candidate flag must be on."""
    if not run_config.auto_publish_global_enabled:
        return False, "kill_switch_off"
    if not candidate.auto_publish_enabled:
        return False, "candidate_auto_publish_off"
    return True, "open"


def render_public_text(body: str, policy: EditorialPolicy) -> str:
    """Drop internal meta lines (SEO lists, notes to editors) from the public body."""
    prefixes = tuple(p.lower() for p in policy.internal_line_prefixes)
    kept = [l for l in (body or "").replace("\r", "").split("\n")
            if not l.strip().lower().lstrip("*#- ").startswith(prefixes)]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(kept)).strip()


def slugify(text: str) -> str:
    s = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii").lower()
    s = re.sub(r"[^a-z0-9]+", "-", s).strip("-")
    return s[:SLUG_MAX].rstrip("-") or "nota"


def unique_slug(db: Session, title: str) -> str:
    base = slugify(title)
    slug, n = base, 2
    while crud.slug_exists(db, slug):
        slug = f"{base}-{n}"
        n += 1
    return slug


def publish_draft(db: Session, draft: models.Draft, candidate: models.Candidate, title: str,
                  subtitle: str, policy: EditorialPolicy, request_id: str = "") -> models.PublishedPost:
    post = crud.create_published_post(db, {
        "candidate_id": candidate.id,
        "slug": unique_slug(db, title),
        "title": title,
        "subtitle": subtitle,
        "body": render_public_text(draft.generated_text, policy),
        "media_urls": [draft.image_url],
        "source_url": draft.source_url,
        "status": "published",
        "published_at": datetime.now(timezone.utc),
    })
    crud.link_draft_to_post(db, draft, post)
    # post row and draft back-link land together or not at all
    db.commit()
    db.refresh(post)
    logger.info("[%s] published draft %s as post %s (%s)", request_id, draft.id, post.id, post.slug)
    return post


def public_url(post: models.PublishedPost, base_url: Optional[str]) -> str:
    path = f"{INFO_PATH}/{post.slug}"
    return f"{base_url.rstrip('/')}{path}" if base_url else path
