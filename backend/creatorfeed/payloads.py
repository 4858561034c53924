"""Typed raw payloads, one variant per platform.

Scraper output is loose JSON: field names drift between camelCase and
snake_case, counters arrive as strings, ids as numbers. These models accept
that drift while still rejecting payloads whose shape is wrong. Unknown
fields are kept (``extra="allow"``) so normalizers can reach for them.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import ContentValidationError


def _lenient_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace(" ", "").strip()
        try:
            return int(float(cleaned))
        except ValueError:
            return None
    return None


def _lenient_str(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


LenientInt = Annotated[int | None, BeforeValidator(_lenient_int)]
LenientStr = Annotated[str | None, BeforeValidator(_lenient_str)]


class RawPayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


def _alias(*names: str) -> Any:
    return Field(default=None, validation_alias=AliasChoices(*names))


# --- RSS ---


class RssEnclosure(RawPayload):
    url: str | None = None
    type: str | None = None
    length: LenientInt = None


class RssItem(RawPayload):
    title: str | None = None
    link: str | None = None
    guid: LenientStr = None
    pub_date: str | None = _alias("pubDate", "pub_date", "published")
    iso_date: str | None = _alias("isoDate", "iso_date")
    content: str | None = None
    content_encoded: str | None = _alias("content:encoded", "contentEncoded", "content_encoded")
    description: str | None = None
    summary: str | None = None
    content_snippet: str | None = _alias("contentSnippet", "content_snippet")
    enclosure: RssEnclosure | None = None
    author: str | None = _alias("creator", "author", "dc:creator")
    feed_url: str | None = _alias("feedUrl", "feed_url")


# --- Twitter ---


class TweetAuthor(RawPayload):
    id: LenientStr = None
    username: str | None = _alias("userName", "username", "screen_name")
    name: str | None = None
    avatar_url: str | None = _alias("profilePicture", "profile_image_url_https", "profile_image_url")
    is_verified: bool | None = _alias("isVerified", "isBlueVerified", "verified")


class TweetItem(RawPayload):
    id: LenientStr = _alias("id", "id_str")
    url: str | None = None
    twitter_url: str | None = _alias("twitterUrl", "twitter_url")
    text: str | None = _alias("text", "full_text", "fullText")
    created_at: str | None = _alias("createdAt", "created_at")
    author: TweetAuthor | None = None
    like_count: LenientInt = _alias("likeCount", "like_count", "favorite_count")
    reply_count: LenientInt = _alias("replyCount", "reply_count")
    retweet_count: LenientInt = _alias("retweetCount", "retweet_count")
    quote_count: LenientInt = _alias("quoteCount", "quote_count")
    view_count: LenientInt = _alias("viewCount", "view_count")
    bookmark_count: LenientInt = _alias("bookmarkCount", "bookmark_count")
    extended_entities: dict[str, Any] | None = _alias("extendedEntities", "extended_entities")
    entities: dict[str, Any] | None = None
    card: dict[str, Any] | None = None
    is_quote: bool | None = _alias("isQuote", "is_quote_status")
    quote: TweetItem | None = _alias("quote", "quoted_tweet")
    is_reply: bool | None = _alias("isReply", "is_reply")
    in_reply_to_id: LenientStr = _alias("inReplyToId", "in_reply_to_status_id_str")
    in_reply_to_user_id: LenientStr = _alias("inReplyToUserId", "in_reply_to_user_id_str")
    in_reply_to_username: str | None = _alias("inReplyToUsername", "in_reply_to_screen_name")
    is_retweet: bool | None = _alias("isRetweet", "is_retweet")
    retweet: TweetItem | None = _alias("retweet", "retweeted_tweet")


# --- LinkedIn ---


class LinkedInPostedAt(RawPayload):
    timestamp: LenientInt = None
    date: str | None = None


class LinkedInAuthor(RawPayload):
    first_name: str | None = _alias("first_name", "firstName")
    last_name: str | None = _alias("last_name", "lastName")
    username: str | None = None
    profile_picture: str | None = _alias("profile_picture", "profilePicture")
    profile_url: str | None = _alias("profile_url", "profileUrl")


class LinkedInStats(RawPayload):
    like: LenientInt = _alias("like", "likes")
    comments: LenientInt = None
    reposts: LenientInt = _alias("reposts", "shares")
    total_reactions: LenientInt = _alias("total_reactions", "totalReactions")


class LinkedInMedia(RawPayload):
    type: str | None = None
    url: str | None = None
    thumbnail: str | None = None
    images: list[Any] | None = None


class LinkedInArticle(RawPayload):
    url: str | None = None
    title: str | None = None
    subtitle: str | None = None
    thumbnail: str | None = None
    source: str | None = None


class LinkedInDocument(RawPayload):
    url: str | None = None
    title: str | None = None
    page_count: LenientInt = _alias("page_count", "pageCount")
    thumbnail: str | None = None


class LinkedInPost(RawPayload):
    urn: LenientStr = None
    full_urn: str | None = None
    id: LenientStr = None
    url: str | None = _alias("url", "post_url")
    text: str | None = None
    posted_at: LinkedInPostedAt | str | int | None = None
    author: LinkedInAuthor | None = None
    stats: LinkedInStats | None = None
    media: LinkedInMedia | None = None
    article: LinkedInArticle | None = None
    document: LinkedInDocument | None = None
    reshared_post: LinkedInPost | None = None


# --- Threads ---


class ThreadsUser(RawPayload):
    pk: LenientStr = _alias("pk", "id")
    username: str | None = None
    full_name: str | None = None
    profile_pic_url: str | None = None
    is_verified: bool | None = None


class ThreadsCaption(RawPayload):
    text: str | None = None


class ThreadsPost(RawPayload):
    id: LenientStr = None
    pk: LenientStr = None
    code: str | None = None
    url: str | None = None
    user: ThreadsUser | None = None
    caption: ThreadsCaption | str | None = None
    text: str | None = None
    taken_at: LenientInt = None
    like_count: LenientInt = None
    reply_count: LenientInt = _alias("reply_count", "direct_reply_count")
    repost_count: LenientInt = None
    quote_count: LenientInt = None
    video_versions: list[dict[str, Any]] | None = None
    image_versions2: dict[str, Any] | None = None
    original_width: LenientInt = None
    original_height: LenientInt = None
    carousel_media: list[dict[str, Any]] | None = None
    text_post_app_info: dict[str, Any] | None = None


# --- YouTube ---


class YouTubeSnippet(RawPayload):
    title: str | None = None
    description: str | None = None
    published_at: str | None = _alias("publishedAt", "published_at")
    channel_title: str | None = _alias("channelTitle", "channel_title")
    thumbnails: dict[str, Any] | None = None


class YouTubeStatistics(RawPayload):
    view_count: LenientInt = _alias("viewCount", "view_count")
    like_count: LenientInt = _alias("likeCount", "like_count")
    comment_count: LenientInt = _alias("commentCount", "comment_count")


class YouTubeVideo(RawPayload):
    id: str | dict[str, Any] | None = None
    snippet: YouTubeSnippet | None = None
    statistics: YouTubeStatistics | None = None
    url: str | None = None


# --- Website ---


class WebsiteArticle(RawPayload):
    url: str | None = None
    source_url: str | None = _alias("sourceUrl", "source_url")
    title: str | None = None
    description: str | None = None
    excerpt: str | None = None
    image: str | None = None
    thumbnail: str | None = None
    publish_date: str | None = _alias("publishDate", "datePublished", "publishedAt", "published_at")
    content: str | None = None
    body: str | None = None
    images: list[str | dict[str, Any]] | None = None


# --- tagged union ---


class _RssVariant(BaseModel):
    platform: Literal["rss"]
    data: RssItem


class _YouTubeVariant(BaseModel):
    platform: Literal["youtube"]
    data: YouTubeVideo


class _TwitterVariant(BaseModel):
    platform: Literal["twitter"]
    data: TweetItem


class _LinkedInVariant(BaseModel):
    platform: Literal["linkedin"]
    data: LinkedInPost


class _ThreadsVariant(BaseModel):
    platform: Literal["threads"]
    data: ThreadsPost


class _WebsiteVariant(BaseModel):
    platform: Literal["website"]
    data: WebsiteArticle


PlatformPayload = Annotated[
    Union[_RssVariant, _YouTubeVariant, _TwitterVariant, _LinkedInVariant, _ThreadsVariant, _WebsiteVariant],
    Field(discriminator="platform"),
]

_payload_adapter: TypeAdapter = TypeAdapter(PlatformPayload)


def parse_payload(platform: str, raw: Any) -> RawPayload:
    """Validate ``raw`` against the variant for ``platform``."""
    platform = getattr(platform, "value", platform)
    try:
        variant = _payload_adapter.validate_python({"platform": platform, "data": raw})
    except ValidationError as exc:
        errors = exc.errors()
        if errors and errors[0].get("type") == "union_tag_invalid":
            raise ContentValidationError(f"Unsupported platform: {platform}") from exc
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("data", platform))
        raise ContentValidationError(
            f"Malformed {platform} payload: {location or 'payload'}: {first.get('msg', 'invalid')}"
        ) from exc
    return variant.data
