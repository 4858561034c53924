"""Tweet normalization for the actor payload shape.

Media lives in ``extendedEntities``; link previews come from summary cards
and plain ``entities.urls``. Quotes keep a reduced copy of the quoted tweet,
replies only keep who was replied to.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from creatorfeed.models import MediaType, Platform, ReferenceType
from creatorfeed.payloads import TweetItem
from creatorfeed.schemas import ContentCreate
from creatorfeed.services.content_text import domain_of, parse_datetime, reading_time_minutes, word_count

_CARD_IMAGE_KEYS = ("thumbnail_image_large", "photo_image_full_size", "thumbnail_image", "summary_photo_image")
_SELF_DOMAINS = {"twitter.com", "x.com", "mobile.twitter.com"}


def tweet_url(tweet: TweetItem) -> str | None:
    if tweet.url:
        return tweet.url
    if tweet.twitter_url:
        return tweet.twitter_url
    if tweet.id:
        return f"https://x.com/i/status/{tweet.id}"
    return None


def _best_mp4(video_info: dict[str, Any]) -> dict[str, Any] | None:
    variants = [
        v for v in video_info.get("variants") or []
        if isinstance(v, dict) and v.get("url") and v.get("content_type") == "video/mp4"
    ]
    if not variants:
        return None
    return max(variants, key=lambda v: v.get("bitrate") or 0)


def _large_size(item: dict[str, Any]) -> tuple[int | None, int | None]:
    large = ((item.get("sizes") or {}).get("large")) or {}
    if large.get("w") and large.get("h"):
        return large["w"], large["h"]
    original = item.get("original_info") or {}
    return original.get("width"), original.get("height")


def extract_tweet_media(tweet: TweetItem) -> list[dict]:
    media: list[dict] = []
    for item in (tweet.extended_entities or {}).get("media") or []:
        if not isinstance(item, dict):
            continue
        still = item.get("media_url_https") or item.get("media_url")
        width, height = _large_size(item)
        if item.get("type") in ("video", "animated_gif"):
            video_info = item.get("video_info") or {}
            best = _best_mp4(video_info)
            duration_ms = video_info.get("duration_millis")
            media.append(
                {
                    "url": (best or {}).get("url") or still,
                    "type": MediaType.video,
                    "thumbnail_url": still,
                    "width": width,
                    "height": height,
                    "duration": duration_ms / 1000 if duration_ms else None,
                    "bitrate": (best or {}).get("bitrate"),
                }
            )
        elif still:
            media.append({"url": still, "type": MediaType.image, "width": width, "height": height})

    links_seen: set[str] = set()
    card = extract_card(tweet.card)
    if card:
        media.append(card)
        links_seen.add(card["link_url"])

    for entry in (tweet.entities or {}).get("urls") or []:
        if not isinstance(entry, dict):
            continue
        expanded = entry.get("expanded_url") or entry.get("url")
        if not expanded or expanded in links_seen or entry.get("url") in links_seen:
            continue
        if domain_of(expanded) in _SELF_DOMAINS:
            continue
        links_seen.add(expanded)
        media.append(
            {
                "url": expanded,
                "type": MediaType.link_preview,
                "link_url": expanded,
                "link_display_url": entry.get("display_url"),
                "link_domain": domain_of(expanded),
            }
        )
    return media


def _binding_values(card: dict[str, Any]) -> dict[str, Any]:
    values = card.get("binding_values") or card.get("values") or {}
    if isinstance(values, list):
        # legacy shape: [{"key": ..., "value": {...}}]
        return {v["key"]: v.get("value") for v in values if isinstance(v, dict) and v.get("key")}
    return values if isinstance(values, dict) else {}


def extract_card(card: dict[str, Any] | None) -> dict | None:
    """Summary cards become a link_preview entry; other card kinds are ignored."""
    if not card:
        return None
    name = str(card.get("name") or "")
    if "summary" not in name:
        return None
    values = _binding_values(card)

    def string(key: str) -> str | None:
        value = values.get(key)
        if isinstance(value, dict):
            return value.get("string_value")
        return value if isinstance(value, str) else None

    def image(key: str) -> str | None:
        value = values.get(key)
        if isinstance(value, dict):
            return (value.get("image_value") or {}).get("url")
        return None

    link_url = string("card_url") or string("url") or string("website_url") or card.get("url")
    title = string("title")
    image_url = next((image(key) for key in _CARD_IMAGE_KEYS if image(key)), None)
    if not link_url or not (title or image_url):
        return None
    return {
        "url": image_url or link_url,
        "type": MediaType.link_preview,
        "link_url": link_url,
        "link_title": title,
        "link_description": string("description"),
        "link_domain": string("domain") or string("vanity_url") or domain_of(link_url),
        "card_type": name,
    }


def first_thumbnail(media: list[dict]) -> str | None:
    for entry in media:
        if entry["type"] == MediaType.image:
            return entry["url"]
        if entry["type"] == MediaType.video and entry.get("thumbnail_url"):
            return entry["thumbnail_url"]
    return None


def tweet_engagement(tweet: TweetItem) -> dict[str, int]:
    fields = {
        "likes": tweet.like_count,
        "comments": tweet.reply_count,
        "shares": tweet.retweet_count,
        "quotes": tweet.quote_count,
        "views": tweet.view_count,
        "bookmarks": tweet.bookmark_count,
    }
    return {key: value for key, value in fields.items() if value is not None}


def _author(tweet: TweetItem) -> dict | None:
    if tweet.author is None:
        return None
    return {
        "id": tweet.author.id,
        "username": tweet.author.username,
        "name": tweet.author.name,
        "avatar_url": tweet.author.avatar_url,
        "is_verified": tweet.author.is_verified,
    }


def _reduced(tweet: TweetItem) -> dict:
    return {
        "platform_content_id": tweet.id,
        "url": tweet_url(tweet),
        "text": tweet.text,
        "author": _author(tweet),
        "created_at": parse_datetime(tweet.created_at),
        "media_urls": extract_tweet_media(tweet),
        "engagement_metrics": tweet_engagement(tweet),
    }


def tweet_reference(tweet: TweetItem) -> tuple[ReferenceType, dict | None]:
    if tweet.retweet is not None:
        return ReferenceType.retweet, _reduced(tweet.retweet)
    if tweet.quote is not None:
        return ReferenceType.quote, _reduced(tweet.quote)
    if tweet.is_reply or tweet.in_reply_to_id:
        url = None
        if tweet.in_reply_to_username and tweet.in_reply_to_id:
            url = f"https://x.com/{tweet.in_reply_to_username}/status/{tweet.in_reply_to_id}"
        return ReferenceType.reply, {
            "platform_content_id": tweet.in_reply_to_id,
            "url": url,
            "author": {"id": tweet.in_reply_to_user_id, "username": tweet.in_reply_to_username},
        }
    return ReferenceType.none, None


def normalize_tweet(tweet: TweetItem, creator_id: str, source_url: str | None = None) -> ContentCreate:
    text = tweet.text or ""
    url = tweet_url(tweet)
    words = word_count(text)
    reference_type, referenced = tweet_reference(tweet)
    media = extract_tweet_media(tweet)
    return ContentCreate(
        creator_id=creator_id,
        platform=Platform.twitter,
        platform_content_id=tweet.id or url or "",
        url=url or "",
        title="",
        description=text,
        content_body=text,
        thumbnail_url=first_thumbnail(media),
        media_urls=media,
        word_count=words,
        reading_time_minutes=reading_time_minutes(words),
        published_at=parse_datetime(tweet.created_at) or datetime.now(timezone.utc),
        engagement_metrics=tweet_engagement(tweet),
        reference_type=reference_type,
        referenced_content=referenced,
    )
