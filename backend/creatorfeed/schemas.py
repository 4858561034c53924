from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .models import MediaType, Platform, ProcessingStatus, ReferenceType


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _drop_media_without_url(value: Any) -> Any:
    if not isinstance(value, list):
        return value
    kept = []
    for entry in value:
        if isinstance(entry, MediaUrl):
            kept.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        url = entry.get("url")
        if isinstance(url, str) and url.strip():
            kept.append({**entry, "url": url.strip()})
    return kept


class MediaUrl(BaseModel):
    url: str = Field(min_length=1)
    type: MediaType
    width: int | None = None
    height: int | None = None
    duration: float | None = None
    size: int | None = None
    bitrate: int | None = None
    thumbnail_url: str | None = None
    title: str | None = None
    link_url: str | None = None
    link_title: str | None = None
    link_description: str | None = None
    link_domain: str | None = None
    link_display_url: str | None = None
    card_type: str | None = None


class ReferenceAuthor(BaseModel):
    id: str | None = None
    username: str | None = None
    name: str | None = None
    avatar_url: str | None = None
    is_verified: bool | None = None


class ReferencedContent(BaseModel):
    id: str | None = None
    platform_content_id: str | None = None
    url: str | None = None
    text: str | None = None
    author: ReferenceAuthor | None = None
    created_at: datetime | None = None
    media_urls: list[MediaUrl] = Field(default_factory=list)
    engagement_metrics: dict[str, int | float] = Field(default_factory=dict)

    @field_validator("media_urls", mode="before")
    @classmethod
    def drop_media_without_url(cls, value: Any) -> Any:
        return _drop_media_without_url(value)


class ContentCreate(BaseModel):
    creator_id: str = Field(min_length=1)
    platform: Platform
    platform_content_id: str = Field(min_length=1, max_length=512)
    url: str = Field(min_length=1)
    title: str = ""
    description: str | None = None
    content_body: str | None = None
    thumbnail_url: str | None = None
    media_urls: list[MediaUrl] = Field(default_factory=list)
    word_count: int | None = Field(default=None, ge=0)
    reading_time_minutes: int | None = Field(default=None, ge=0)
    published_at: datetime | None = None
    engagement_metrics: dict[str, int | float] = Field(default_factory=dict)
    reference_type: ReferenceType = ReferenceType.none
    referenced_content: ReferencedContent | None = None
    processing_status: ProcessingStatus | None = None
    ai_summary: str | None = None

    @field_validator("media_urls", mode="before")
    @classmethod
    def drop_media_without_url(cls, value: Any) -> Any:
        return _drop_media_without_url(value)

    @field_validator("published_at")
    @classmethod
    def normalize_published_at(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class ContentUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    content_body: str | None = None
    thumbnail_url: str | None = None
    media_urls: list[MediaUrl] | None = None
    engagement_metrics: dict[str, int | float] | None = None
    word_count: int | None = Field(default=None, ge=0)
    reading_time_minutes: int | None = Field(default=None, ge=0)
    processing_status: ProcessingStatus | None = None
    ai_summary: str | None = None
    error_message: str | None = None

    @field_validator("media_urls", mode="before")
    @classmethod
    def drop_media_without_url(cls, value: Any) -> Any:
        return _drop_media_without_url(value)


class ContentRead(BaseModel):
    id: int
    creator_id: str
    platform: Platform
    platform_content_id: str
    url: str
    title: str
    description: str | None = None
    content_body: str | None = None
    thumbnail_url: str | None = None
    media_urls: list[MediaUrl] = Field(default_factory=list)
    word_count: int
    reading_time_minutes: int
    published_at: datetime
    engagement_metrics: dict[str, int | float] = Field(default_factory=dict)
    reference_type: ReferenceType
    referenced_content: ReferencedContent | None = None
    content_hash: str
    content_simhash: str | None = None
    duplicate_group_id: str | None = None
    is_primary: bool
    processing_status: ProcessingStatus
    ai_summary: str | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_validator("media_urls", "engagement_metrics", mode="before")
    @classmethod
    def default_empty(cls, value: Any, info) -> Any:
        if value is None:
            return [] if info.field_name == "media_urls" else {}
        return value

    @field_validator("published_at", "created_at", "updated_at")
    @classmethod
    def attach_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class ContentListResponse(BaseModel):
    items: list[ContentRead]
    total: int
    limit: int
    offset: int
    has_more: bool


class ContentFilters(BaseModel):
    creator_id: str | None = None
    platform: Platform | None = None
    processing_status: ProcessingStatus | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    search: str | None = None
    primary_only: bool = False
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    sort_by: Literal["published_at", "created_at", "updated_at", "word_count"] = "published_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @field_validator("from_date", "to_date")
    @classmethod
    def normalize_dates(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class BatchItemError(BaseModel):
    platform_content_id: str
    error: str


class BatchContentResult(BaseModel):
    success: bool = True
    created: int = 0
    updated: int = 0
    skipped: int = 0
    rejected: int = 0
    errors: list[BatchItemError] = Field(default_factory=list)


class ContentBatchCreate(BaseModel):
    contents: list[dict[str, Any]] = Field(min_length=1)


class NormalizeRequest(BaseModel):
    creator_id: str = Field(min_length=1)
    platform: Platform
    platform_data: Any
    source_url: str | None = None


class IngestRequest(BaseModel):
    creator_id: str = Field(min_length=1)
    platform: Platform
    items: list[Any] = Field(min_length=1)
    source_url: str | None = None


class DuplicateGroupRead(BaseModel):
    id: str
    creator_id: str
    content_hash: str
    primary_content_id: int | None = None
    member_count: int
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def attach_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class SetPrimaryRequest(BaseModel):
    content_id: int


class CreatorCreate(BaseModel):
    id: str | None = None
    name: str = Field(min_length=1)
    platform: Platform | None = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        return value.strip()


class CreatorRead(BaseModel):
    id: str
    name: str
    platform: Platform | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class CreatorStats(BaseModel):
    creator_id: str
    total: int
    by_platform: dict[str, int]
    by_status: dict[str, int]
    duplicates: int
    total_words: int
    latest_published_at: datetime | None = None
