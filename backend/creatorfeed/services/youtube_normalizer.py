from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from creatorfeed.models import MediaType, Platform
from creatorfeed.payloads import YouTubeVideo
from creatorfeed.schemas import ContentCreate
from creatorfeed.services.content_text import parse_datetime, word_count

_THUMBNAIL_ORDER = ("maxres", "standard", "high", "medium", "default")


def video_id(video: YouTubeVideo) -> str | None:
    if isinstance(video.id, dict):
        return video.id.get("videoId")
    return video.id or None


def best_thumbnail(thumbnails: dict[str, Any] | None) -> dict[str, Any] | None:
    for key in _THUMBNAIL_ORDER:
        thumb = (thumbnails or {}).get(key)
        if isinstance(thumb, dict) and thumb.get("url"):
            return thumb
    return None


def normalize_youtube_video(video: YouTubeVideo, creator_id: str, source_url: str | None = None) -> ContentCreate:
    vid = video_id(video)
    snippet = video.snippet
    description = (snippet.description if snippet else None) or ""
    thumb = best_thumbnail(snippet.thumbnails if snippet else None)
    media = []
    if thumb:
        media.append({"url": thumb["url"], "type": MediaType.image, "width": thumb.get("width"), "height": thumb.get("height")})

    engagement = {}
    if video.statistics is not None:
        for key, value in (
            ("views", video.statistics.view_count),
            ("likes", video.statistics.like_count),
            ("comments", video.statistics.comment_count),
        ):
            if value is not None:
                engagement[key] = value

    published_at = parse_datetime(snippet.published_at) if snippet else None
    return ContentCreate(
        creator_id=creator_id,
        platform=Platform.youtube,
        platform_content_id=vid or video.url or "",
        url=video.url or (f"https://www.youtube.com/watch?v={vid}" if vid else ""),
        title=(snippet.title if snippet else None) or "Untitled Video",
        description=description,
        content_body=description,
        thumbnail_url=thumb["url"] if thumb else None,
        media_urls=media,
        word_count=word_count(description),
        reading_time_minutes=0,
        published_at=published_at or datetime.now(timezone.utc),
        engagement_metrics=engagement,
    )
