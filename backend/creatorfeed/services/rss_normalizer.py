from __future__ import annotations

from datetime import datetime, timezone

from creatorfeed.errors import ContentRejectedError
from creatorfeed.models import MediaType, Platform
from creatorfeed.payloads import RssEnclosure, RssItem
from creatorfeed.schemas import ContentCreate
from creatorfeed.services.content_text import (
    extract_image_sources,
    extract_text_from_html,
    parse_datetime,
    reading_time_minutes,
    word_count,
)

DESCRIPTION_LIMIT = 300


def enclosure_media_type(mime_type: str | None) -> MediaType:
    mime = (mime_type or "").lower()
    if mime.startswith("image/"):
        return MediaType.image
    if mime.startswith("video/"):
        return MediaType.video
    if mime.startswith("audio/"):
        return MediaType.audio
    return MediaType.document


def _enclosure_media(enclosure: RssEnclosure | None) -> dict | None:
    if enclosure is None or not (enclosure.url or "").strip():
        return None
    return {
        "url": enclosure.url.strip(),
        "type": enclosure_media_type(enclosure.type),
        "size": enclosure.length,
    }


def normalize_rss_item(item: RssItem, creator_id: str, source_url: str | None = None) -> ContentCreate:
    feed_url = source_url or item.feed_url
    content_body = next(
        (
            value
            for value in (item.content, item.content_encoded, item.description, item.summary, item.content_snippet)
            if value and value.strip()
        ),
        "",
    )
    text = extract_text_from_html(content_body)
    words = word_count(text)

    media: list[dict] = []
    enclosure = _enclosure_media(item.enclosure)
    if enclosure:
        media.append(enclosure)
    seen = {entry["url"] for entry in media}
    for src in extract_image_sources(content_body):
        if src not in seen:
            seen.add(src)
            media.append({"url": src, "type": MediaType.image})

    # guid, then link, then feed url plus pubDate; the feed url doubles as the item url
    platform_content_id = item.guid or item.link
    if not platform_content_id:
        if not feed_url:
            raise ContentRejectedError("RSS item has no guid or link and no feed URL to key it by")
        if not item.pub_date:
            raise ContentRejectedError("RSS item has no guid, link or pubDate")
        platform_content_id = f"{feed_url}_{item.pub_date}"

    published_at = parse_datetime(item.pub_date) or parse_datetime(item.iso_date) or datetime.now(timezone.utc)
    thumbnail = next((entry["url"] for entry in media if entry["type"] == MediaType.image), None)

    return ContentCreate(
        creator_id=creator_id,
        platform=Platform.rss,
        platform_content_id=platform_content_id,
        url=item.link or feed_url or "",
        title=(item.title or "").strip() or "Untitled",
        description=item.content_snippet or text[:DESCRIPTION_LIMIT],
        content_body=content_body,
        thumbnail_url=thumbnail,
        media_urls=media,
        word_count=words,
        reading_time_minutes=reading_time_minutes(words),
        published_at=published_at,
        engagement_metrics={},
    )
