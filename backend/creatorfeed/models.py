from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship as sa_relationship

from .db import Base


def relationship(*args, **kwargs):
    """Wrap SQLAlchemy relationship to forbid lazy loading by default."""
    kwargs.setdefault("lazy", "raise")
    return sa_relationship(*args, **kwargs)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> str:
    return str(uuid4())


class Platform(str, Enum):
    rss = "rss"
    youtube = "youtube"
    twitter = "twitter"
    linkedin = "linkedin"
    threads = "threads"
    website = "website"


SOCIAL_PLATFORMS = frozenset({Platform.twitter, Platform.linkedin, Platform.threads})


class ProcessingStatus(str, Enum):
    pending = "pending"
    processed = "processed"
    failed = "failed"


class ReferenceType(str, Enum):
    none = "none"
    quote = "quote"
    retweet = "retweet"
    reply = "reply"


class MediaType(str, Enum):
    image = "image"
    video = "video"
    audio = "audio"
    document = "document"
    link_preview = "link_preview"


class Creator(Base):
    __tablename__ = "creators"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    platform: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), onupdate=utcnow, nullable=False
    )

    contents: Mapped[list["Content"]] = relationship(
        back_populates="creator",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Content(Base):
    __tablename__ = "content"
    __table_args__ = (
        sa.UniqueConstraint("creator_id", "platform", "platform_content_id", name="uq_content_identity"),
        sa.Index("ix_content_creator_published", "creator_id", "published_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    creator_id: Mapped[str] = mapped_column(sa.ForeignKey("creators.id", ondelete="CASCADE"), nullable=False)
    platform: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    platform_content_id: Mapped[str] = mapped_column(sa.String(512), nullable=False)
    url: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    title: Mapped[str] = mapped_column(sa.Text(), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    content_body: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    media_urls: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    word_count: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0)
    reading_time_minutes: Mapped[int] = mapped_column(sa.Integer(), nullable=False, default=0)
    published_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=utcnow)
    engagement_metrics: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    reference_type: Mapped[str] = mapped_column(sa.String(16), nullable=False, default=ReferenceType.none.value)
    referenced_content: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    content_hash: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    content_simhash: Mapped[str | None] = mapped_column(sa.String(16), nullable=True)
    duplicate_group_id: Mapped[str | None] = mapped_column(sa.String(36), nullable=True, index=True)
    is_primary: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False)
    processing_status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, default=ProcessingStatus.pending.value, index=True
    )
    ai_summary: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    error_message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), onupdate=utcnow, nullable=False
    )

    creator: Mapped["Creator"] = relationship(back_populates="contents")


class DuplicateGroup(Base):
    """One row per creator and seed hash; primary_content_id is the compare-and-swap target."""

    __tablename__ = "duplicate_groups"
    __table_args__ = (sa.UniqueConstraint("creator_id", "content_hash", name="uq_duplicate_groups_creator_hash"),)

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=new_uuid)
    creator_id: Mapped[str] = mapped_column(sa.ForeignKey("creators.id", ondelete="CASCADE"), nullable=False)
    content_hash: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    primary_content_id: Mapped[int | None] = mapped_column(
        sa.ForeignKey("content.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, server_default=sa.func.now(), onupdate=utcnow, nullable=False
    )
