from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from creatorfeed.models import MediaType, Platform, ReferenceType
from creatorfeed.payloads import ThreadsPost
from creatorfeed.schemas import ContentCreate
from creatorfeed.services.content_text import parse_datetime, reading_time_minutes, word_count

logger = logging.getLogger(__name__)


def post_url(post: ThreadsPost) -> str | None:
    if post.url:
        return post.url
    username = post.user.username if post.user else None
    if username and post.code:
        return f"https://www.threads.net/@{username}/post/{post.code}"
    return None


def post_text(post: ThreadsPost) -> str:
    if isinstance(post.caption, str):
        return post.caption
    if post.caption is not None and post.caption.text:
        return post.caption.text
    return post.text or ""


def _first_image(image_versions2: dict[str, Any] | None) -> dict[str, Any] | None:
    candidates = (image_versions2 or {}).get("candidates") or []
    for candidate in candidates:
        if isinstance(candidate, dict) and candidate.get("url"):
            return candidate
    return None


def media_entry(
    video_versions: list[dict[str, Any]] | None,
    image_versions2: dict[str, Any] | None,
    width: int | None = None,
    height: int | None = None,
) -> dict | None:
    """One entry per post: the video when there is one, otherwise the first image."""
    image = _first_image(image_versions2)
    video = next((v for v in video_versions or [] if isinstance(v, dict) and v.get("url")), None)
    if video is not None:
        return {
            "url": video["url"],
            "type": MediaType.video,
            "thumbnail_url": image.get("url") if image else None,
            "width": width or video.get("width"),
            "height": height or video.get("height"),
        }
    if image is not None:
        return {
            "url": image["url"],
            "type": MediaType.image,
            "width": image.get("width") or width,
            "height": image.get("height") or height,
        }
    return None


def extract_post_media(post: ThreadsPost) -> list[dict]:
    entries: list[dict] = []
    if post.carousel_media:
        for item in post.carousel_media:
            if not isinstance(item, dict):
                continue
            entry = media_entry(
                item.get("video_versions"),
                item.get("image_versions2"),
                item.get("original_width"),
                item.get("original_height"),
            )
            if entry:
                entries.append(entry)
    else:
        entry = media_entry(post.video_versions, post.image_versions2, post.original_width, post.original_height)
        if entry:
            entries.append(entry)

    unique: list[dict] = []
    seen: set[str] = set()
    for entry in entries:
        if entry["url"] not in seen:
            seen.add(entry["url"])
            unique.append(entry)
    return unique


def post_engagement(post: ThreadsPost) -> dict[str, int]:
    fields = {
        "likes": post.like_count,
        "comments": post.reply_count,
        "shares": post.repost_count,
        "quotes": post.quote_count,
    }
    return {key: value for key, value in fields.items() if value is not None}


def _author(post: ThreadsPost) -> dict | None:
    if post.user is None:
        return None
    return {
        "id": post.user.pk,
        "username": post.user.username,
        "name": post.user.full_name,
        "avatar_url": post.user.profile_pic_url,
        "is_verified": post.user.is_verified,
    }


def _reduced(raw: Any) -> dict | None:
    if not isinstance(raw, dict):
        return None
    try:
        shared = ThreadsPost.model_validate(raw)
    except ValidationError:
        logger.warning("Ignoring malformed shared Threads post")
        return None
    return {
        "platform_content_id": shared.id or shared.pk or shared.code,
        "url": post_url(shared),
        "text": post_text(shared),
        "author": _author(shared),
        "created_at": parse_datetime(shared.taken_at),
        "media_urls": extract_post_media(shared),
        "engagement_metrics": post_engagement(shared),
    }


def post_reference(post: ThreadsPost) -> tuple[ReferenceType, dict | None]:
    info = post.text_post_app_info or {}
    share_info = info.get("share_info") or {}
    reposted = _reduced(share_info.get("reposted_post"))
    if reposted:
        return ReferenceType.retweet, reposted
    quoted = _reduced(share_info.get("quoted_post"))
    if quoted:
        return ReferenceType.quote, quoted
    reply_to = info.get("reply_to_author")
    if isinstance(reply_to, dict) and (reply_to.get("username") or reply_to.get("pk") or reply_to.get("id")):
        author_id = reply_to.get("pk") or reply_to.get("id")
        return ReferenceType.reply, {
            "author": {
                "id": str(author_id) if author_id is not None else None,
                "username": reply_to.get("username"),
            }
        }
    return ReferenceType.none, None


def normalize_threads_post(post: ThreadsPost, creator_id: str, source_url: str | None = None) -> ContentCreate:
    text = post_text(post)
    words = word_count(text)
    media = extract_post_media(post)
    url = post_url(post)
    reference_type, referenced = post_reference(post)
    thumbnail = None
    if media:
        thumbnail = media[0].get("thumbnail_url") if media[0]["type"] == MediaType.video else media[0]["url"]

    return ContentCreate(
        creator_id=creator_id,
        platform=Platform.threads,
        platform_content_id=post.id or post.pk or post.code or url or "",
        url=url or "",
        title="",
        description=text,
        content_body=text,
        thumbnail_url=thumbnail,
        media_urls=media,
        word_count=words,
        reading_time_minutes=reading_time_minutes(words),
        published_at=parse_datetime(post.taken_at) or datetime.now(timezone.utc),
        engagement_metrics=post_engagement(post),
        reference_type=reference_type,
        referenced_content=referenced,
    )
