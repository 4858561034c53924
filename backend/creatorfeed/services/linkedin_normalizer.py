from __future__ import annotations

import re
from datetime import datetime, timezone

from creatorfeed.errors import ContentRejectedError
from creatorfeed.models import MediaType, Platform, ReferenceType
from creatorfeed.payloads import LinkedInAuthor, LinkedInMedia, LinkedInPost, LinkedInPostedAt, LinkedInStats
from creatorfeed.schemas import ContentCreate
from creatorfeed.services.content_text import domain_of, parse_datetime, reading_time_minutes, word_count

_VIDEO_CDN_HOST = "dms.licdn.com"
_VIDEO_EXT_RE = re.compile(r"\.(mp4|m3u8)(?=$|\?)")


def derive_video_thumbnail(video_url: str | None) -> str | None:
    """Guess the poster image for a LinkedIn CDN video; ``None`` for other hosts."""
    if not video_url or _VIDEO_CDN_HOST not in video_url:
        return None
    thumbnail = video_url.replace("/playlist/vid/", "/image/")
    thumbnail = thumbnail.replace("/mp4-720p-30fp-crf28/", "/image-shrink_800_800/")
    thumbnail = _VIDEO_EXT_RE.sub(".jpg", thumbnail)
    return thumbnail if thumbnail != video_url else None


def post_identity(post: LinkedInPost) -> str | None:
    return post.urn or post.full_urn or post.id


def post_url(post: LinkedInPost) -> str | None:
    if post.url:
        return post.url
    identity = post_identity(post)
    if not identity:
        return None
    urn = identity if identity.startswith("urn:") else f"urn:li:activity:{identity}"
    return f"https://www.linkedin.com/feed/update/{urn}/"


def author_name(author: LinkedInAuthor | None) -> str:
    if author is None:
        return ""
    return " ".join(part for part in (author.first_name, author.last_name) if part).strip()


def posted_at(value: LinkedInPostedAt | str | int | None) -> datetime | None:
    if isinstance(value, LinkedInPostedAt):
        return parse_datetime(value.timestamp) or parse_datetime(value.date)
    return parse_datetime(value)


def _media_entries(media: LinkedInMedia | None) -> list[dict]:
    if media is None:
        return []
    kind = (media.type or "").lower()
    if kind == "video" and media.url:
        return [
            {
                "url": media.url,
                "type": MediaType.video,
                "thumbnail_url": media.thumbnail or derive_video_thumbnail(media.url),
            }
        ]
    entries: list[dict] = []
    for image in media.images or []:
        if isinstance(image, str):
            entries.append({"url": image, "type": MediaType.image})
        elif isinstance(image, dict) and image.get("url"):
            entries.append(
                {"url": image["url"], "type": MediaType.image, "width": image.get("width"), "height": image.get("height")}
            )
    if not entries and media.url:
        entries.append({"url": media.url, "type": MediaType.image})
    return entries


def extract_post_media(post: LinkedInPost) -> list[dict]:
    entries = _media_entries(post.media)

    article = post.article
    if article is not None and (article.thumbnail or article.url):
        entries.append(
            {
                "url": article.thumbnail or article.url,
                "type": MediaType.link_preview,
                "link_url": article.url,
                "link_title": article.title,
                "link_description": article.subtitle,
                "link_domain": article.source or domain_of(article.url),
            }
        )

    document = post.document
    if document is not None and (document.thumbnail or document.url):
        entries.append(
            {
                "url": document.thumbnail or document.url,
                "type": MediaType.link_preview,
                "link_url": document.url,
                "link_title": document.title or "Document",
                "link_description": f"{document.page_count} pages" if document.page_count else None,
                "link_domain": domain_of(document.url),
            }
        )

    unique: list[dict] = []
    seen: set[str] = set()
    for entry in entries:
        if entry["url"] in seen:
            continue
        seen.add(entry["url"])
        unique.append(entry)
    return unique


def post_engagement(stats: LinkedInStats | None) -> dict[str, int]:
    if stats is None:
        return {}
    fields = {
        "likes": stats.like,
        "comments": stats.comments,
        "shares": stats.reposts,
        "reactions": stats.total_reactions,
    }
    return {key: value for key, value in fields.items() if value is not None}


def _thumbnail(media: list[dict]) -> str | None:
    for entry in media:
        if entry["type"] == MediaType.video:
            if entry.get("thumbnail_url"):
                return entry["thumbnail_url"]
            continue
        return entry["url"]
    return None


def _reshare(post: LinkedInPost) -> dict:
    author = post.author
    return {
        "platform_content_id": post_identity(post),
        "url": post_url(post),
        "text": post.text,
        "author": {
            "username": author.username if author else None,
            "name": author_name(author) or None,
            "avatar_url": author.profile_picture if author else None,
        },
        "created_at": posted_at(post.posted_at),
        "media_urls": extract_post_media(post),
        "engagement_metrics": post_engagement(post.stats),
    }


def normalize_linkedin_post(post: LinkedInPost, creator_id: str, source_url: str | None = None) -> ContentCreate:
    identity = post_identity(post)
    if not identity and not post.url:
        raise ContentRejectedError("LinkedIn post has neither an id nor a url")

    text = post.text or ""
    words = word_count(text)
    media = extract_post_media(post)
    name = author_name(post.author)
    reference_type, referenced = ReferenceType.none, None
    if post.reshared_post is not None:
        reference_type, referenced = ReferenceType.retweet, _reshare(post.reshared_post)

    return ContentCreate(
        creator_id=creator_id,
        platform=Platform.linkedin,
        platform_content_id=identity or post.url,
        url=post_url(post),
        title=f"LinkedIn post by {name}" if name else "LinkedIn post",
        description=text,
        content_body=text,
        thumbnail_url=_thumbnail(media),
        media_urls=media,
        word_count=words,
        reading_time_minutes=reading_time_minutes(words),
        published_at=posted_at(post.posted_at) or datetime.now(timezone.utc),
        engagement_metrics=post_engagement(post.stats),
        reference_type=reference_type,
        referenced_content=referenced,
    )
