from __future__ import annotations

from datetime import datetime, timezone

from creatorfeed.models import MediaType, Platform
from creatorfeed.payloads import WebsiteArticle
from creatorfeed.schemas import ContentCreate
from creatorfeed.services.content_text import parse_datetime, text_metrics


def normalize_website_article(
    article: WebsiteArticle, creator_id: str, source_url: str | None = None
) -> ContentCreate:
    url = article.url or article.source_url or source_url or ""
    content_body = article.content or article.body or ""
    words, minutes = text_metrics(content_body)

    media = []
    for image in article.images or []:
        image_url = image if isinstance(image, str) else image.get("url")
        if image_url:
            media.append({"url": image_url, "type": MediaType.image})

    return ContentCreate(
        creator_id=creator_id,
        platform=Platform.website,
        platform_content_id=url,
        url=url,
        title=(article.title or "").strip() or "Untitled",
        description=article.description or article.excerpt or "",
        content_body=content_body,
        thumbnail_url=article.image or article.thumbnail,
        media_urls=media,
        word_count=words,
        reading_time_minutes=minutes,
        published_at=parse_datetime(article.publish_date) or datetime.now(timezone.utc),
        engagement_metrics={},
    )
