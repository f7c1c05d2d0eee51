from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.sql import func
from editorial.db.base import Base


class Candidate(Base):
    __tablename__ = "candidates"
    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(160), unique=True, index=True)
    name = Column(String(256), nullable=False)
    office = Column(String(128), nullable=False)   # e.g. 'Senado', 'Cámara'
    party = Column(String(256), nullable=True)
    region = Column(String(128), nullable=False, default="")
    ballot_number = Column(String(16), nullable=True)
    biography = Column(Text, default="")
    proposals = Column(Text, default="")           # platform text
    auto_blog_enabled = Column(Boolean, default=True)
    auto_publish_enabled = Column(Boolean, default=False)
    last_auto_blog_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class FeedSource(Base):
    __tablename__ = "feed_sources"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), nullable=False)
    region_key = Column(String(32), index=True)    # 'meta','bogota','colombia','default'
    base_url = Column(String(1024), nullable=False)
    rss_url = Column(String(1024), nullable=False)
    active = Column(Boolean, default=True)
    license_confirmed = Column(Boolean, default=False)


class Draft(Base):
    __tablename__ = "drafts"
    id = Column(Integer, primary_key=True, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), index=True, nullable=False)
    content_type = Column(String(32), default="blog")
    topic = Column(String(512))
    tone = Column(String(64), default="orchestrated")
    generated_text = Column(Text, nullable=False)
    variants = Column(JSON, default=dict)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, default=dict)
    image_keywords = Column(JSON, nullable=True)
    source_url = Column(String(1024), nullable=True, index=True)
    image_url = Column(String(2048), nullable=False)
    status = Column(String(32), default="pending_review")  # 'pending_review','published',...
    published_post_id = Column(Integer, ForeignKey("published_posts.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class PublishedPost(Base):
    __tablename__ = "published_posts"
    id = Column(Integer, primary_key=True, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), index=True, nullable=False)
    slug = Column(String(200), unique=True, index=True, nullable=False)
    title = Column(String(512), nullable=False)     # never carries the candidate
    subtitle = Column(String(512), nullable=True)   # carries name/office/ballot
    body = Column(Text, nullable=False)
    media_urls = Column(JSON, default=list)
    source_url = Column(String(1024), nullable=True)
    status = Column(String(32), default="published")
    published_at = Column(DateTime(timezone=True), server_default=func.now())


class SocialDestination(Base):
    __tablename__ = "social_destinations"
    id = Column(Integer, primary_key=True, index=True)
    candidate_id = Column(Integer, ForeignKey("candidates.id"), index=True, nullable=False)
    network_name = Column(String(64), nullable=False)
    network_type = Column(String(64), nullable=True)  # page, profile, channel, group...
    profile_or_page_url = Column(String(1024), nullable=True)
    target_id = Column(String(256), nullable=True)
    credential_ref = Column(String(256), nullable=True)
    authorization_status = Column(String(32), default="pending")
    active = Column(Boolean, default=True)


class AppSetting(Base):
    __tablename__ = "app_settings"
    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
