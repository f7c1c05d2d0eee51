from datetime import datetime, timezone
from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any
from editorial.db import models

def get_candidate(db: Session, candidate_id: int) -> Optional[models.Candidate]:
    return db.query(models.Candidate).filter(models.Candidate.id == candidate_id).first()

def list_auto_blog_candidates(db: Session) -> List[models.Candidate]:
    return (
        db.query(models.Candidate)
        .filter(models.Candidate.auto_blog_enabled.is_(True))
        .order_by(models.Candidate.id.asc())
        .all()
    )

def touch_last_auto_blog(db: Session, candidate: models.Candidate) -> None:
    candidate.last_auto_blog_at = datetime.now(timezone.utc)
    db.add(candidate)
    db.commit()

def get_setting(db: Session, key: str) -> Optional[str]:
    row = db.query(models.AppSetting).filter(models.AppSetting.key == key).first()
    return row.value if row else None

def set_setting(db: Session, key: str, value: str) -> None:
    row = db.query(models.AppSetting).filter(models.AppSetting.key == key).first()
    if row is None:
        row = models.AppSetting(key=key, value=value)
    else:
        row.value = value
    db.add(row)
    db.commit()

def eligible_feed_sources(db: Session, region_keys: List[str]) -> List[models.FeedSource]:
    # Only sources whose license has been explicitly confirmed are eligible.
    return (
        db.query(models.FeedSource)
        .filter(models.FeedSource.active.is_(True))
        .filter(models.FeedSource.license_confirmed.is_(True))
        .filter(models.FeedSource.region_key.in_(region_keys))
        .order_by(models.FeedSource.id.asc())
        .all()
    )

def last_published_post(db: Session, candidate_id: int) -> Optional[models.PublishedPost]:
    return (
        db.query(models.PublishedPost)
        .filter(models.PublishedPost.candidate_id == candidate_id)
        .filter(models.PublishedPost.status == "published")
        .order_by(models.PublishedPost.published_at.desc(), models.PublishedPost.id.desc())
        .first()
    )

def recent_source_urls(db: Session, candidate_id: Optional[int], limit: int) -> List[str]:
    q = db.query(models.Draft.source_url).filter(models.Draft.source_url.isnot(None))
    if candidate_id is not None:
        q = q.filter(models.Draft.candidate_id == candidate_id)
    return [row[0] for row in q.order_by(models.Draft.id.desc()).limit(limit).all() if row[0]]

def recent_image_urls(db: Session, candidate_id: Optional[int], limit: int) -> List[str]:
    urls: List[str] = []
    q = db.query(models.Draft.image_url)
    if candidate_id is not None:
        q = q.filter(models.Draft.candidate_id == candidate_id)
    urls.extend(row[0] for row in q.order_by(models.Draft.id.desc()).limit(limit).all() if row[0])

    pq = db.query(models.PublishedPost.media_urls)
    if candidate_id is not None:
        pq = pq.filter(models.PublishedPost.candidate_id == candidate_id)
    for (media,) in pq.order_by(models.PublishedPost.id.desc()).limit(limit).all():
        urls.extend(u for u in (media or []) if isinstance(u, str) and u)
    return urls

def count_drafts(db: Session, candidate_id: int) -> int:
    return db.query(models.Draft).filter(models.Draft.candidate_id == candidate_id).count()

def create_draft(db: Session, data: Dict[str, Any]) -> models.Draft:
    obj = models.Draft(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_draft(db: Session, draft_id: int) -> Optional[models.Draft]:
    return db.query(models.Draft).filter(models.Draft.id == draft_id).first()

def list_drafts(db: Session, candidate_id: Optional[int] = None, limit: int = 20) -> List[models.Draft]:
    q = db.query(models.Draft)
    if candidate_id is not None:
        q = q.filter(models.Draft.candidate_id == candidate_id)
    return q.order_by(models.Draft.id.desc()).limit(limit).all()

def slug_exists(db: Session, slug: str) -> bool:
    return db.query(models.PublishedPost.id).filter(models.PublishedPost.slug == slug).first() is not None

def create_published_post(db: Session, data: Dict[str, Any]) -> models.PublishedPost:
    """Stage a post and assign its id; the caller commits."""
    obj = models.PublishedPost(**data)
    db.add(obj)
    db.flush()
    return obj

def link_draft_to_post(db: Session, draft: models.Draft, post: models.PublishedPost) -> None:
    draft.published_post_id = post.id
    draft.status = "published"
    meta = dict(draft.meta or {})
    meta["published_post"] = {"id": post.id, "slug": post.slug}
    draft.meta = meta
    db.add(draft)
    db.flush()

def approved_destinations(db: Session, candidate_id: int) -> List[models.SocialDestination]:
    return (
        db.query(models.SocialDestination)
        .filter(models.SocialDestination.candidate_id == candidate_id)
        .filter(models.SocialDestination.active.is_(True))
        .filter(models.SocialDestination.authorization_status == "approved")
        .order_by(models.SocialDestination.id.asc())
        .all()
    )
