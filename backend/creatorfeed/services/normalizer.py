"""Entry point that turns raw platform payloads into ``ContentCreate`` items."""
from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import ValidationError

from creatorfeed.errors import ContentRejectedError, ContentValidationError
from creatorfeed.models import Platform
from creatorfeed.payloads import parse_payload
from creatorfeed.schemas import ContentCreate
from creatorfeed.services.linkedin_normalizer import normalize_linkedin_post
from creatorfeed.services.rss_normalizer import normalize_rss_item
from creatorfeed.services.threads_normalizer import normalize_threads_post
from creatorfeed.services.twitter_normalizer import normalize_tweet
from creatorfeed.services.website_normalizer import normalize_website_article
from creatorfeed.services.youtube_normalizer import normalize_youtube_video

logger = logging.getLogger(__name__)

Handler = Callable[..., ContentCreate]

_HANDLERS: dict[Platform, Handler] = {
    Platform.rss: normalize_rss_item,
    Platform.youtube: normalize_youtube_video,
    Platform.twitter: normalize_tweet,
    Platform.linkedin: normalize_linkedin_post,
    Platform.threads: normalize_threads_post,
    Platform.website: normalize_website_article,
}


def coerce_platform(platform: Platform | str) -> Platform:
    try:
        return Platform(platform)
    except ValueError as exc:
        raise ContentValidationError(f"Unsupported platform: {platform}") from exc


class ContentNormalizer:
    """Pure mapping from platform payloads to the canonical item; no I/O."""

    def normalize(
        self,
        platform: Platform | str,
        raw_payload: Any,
        creator_id: str,
        source_url: str | None = None,
    ) -> ContentCreate:
        platform = coerce_platform(platform)
        payload = parse_payload(platform, raw_payload)
        try:
            return _HANDLERS[platform](payload, creator_id, source_url)
        except ValidationError as exc:
            first = exc.errors()[0] if exc.errors() else {}
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise ContentValidationError(
                f"Invalid {platform.value} item: {location or 'item'}: {first.get('msg', 'invalid')}"
            ) from exc

    def normalize_many(
        self,
        creator_id: str,
        platform: Platform | str,
        items: list[Any],
        source_url: str | None = None,
    ) -> list[ContentCreate]:
        """Normalize a list, dropping items without a usable identity."""
        platform = coerce_platform(platform)
        normalized: list[ContentCreate] = []
        for item in items:
            try:
                normalized.append(self.normalize(platform, item, creator_id, source_url))
            except ContentRejectedError as exc:
                logger.info("Skipping %s item: %s", platform.value, exc)
        return normalized
