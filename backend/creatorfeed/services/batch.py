from __future__ import annotations

import logging
from typing import Any, Sequence

from pydantic import ValidationError

from creatorfeed.errors import ContentError, ContentRejectedError, ContentValidationError
from creatorfeed.models import Platform
from creatorfeed.schemas import BatchContentResult, BatchItemError, ContentCreate
from creatorfeed.services.content_store import ContentStore
from creatorfeed.services.normalizer import ContentNormalizer, coerce_platform

logger = logging.getLogger(__name__)

_RAW_ID_KEYS = ("platform_content_id", "id", "urn", "full_urn", "guid", "pk", "code", "link", "url")


def raw_identity(raw: Any) -> str:
    """Best-effort id of an unvalidated item, for error reporting."""
    if isinstance(raw, ContentCreate):
        return raw.platform_content_id
    if isinstance(raw, dict):
        for key in _RAW_ID_KEYS:
            value = raw.get(key)
            if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
                return str(value)
            if key == "id" and isinstance(value, dict) and value.get("videoId"):
                return str(value["videoId"])
    return "unknown"


def describe_error(exc: Exception) -> str:
    if isinstance(exc, ContentError):
        return exc.message
    if isinstance(exc, ValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        return f"{location or 'item'}: {first.get('msg', 'invalid')}"
    return str(exc) or exc.__class__.__name__


class BatchOrchestrator:
    """Runs items through the store one at a time; one bad item never stops the batch."""

    def __init__(self, store: ContentStore, normalizer: ContentNormalizer):
        self.store = store
        self.normalizer = normalizer

    async def store_many(self, items: Sequence[ContentCreate | dict[str, Any]]) -> BatchContentResult:
        result = BatchContentResult()
        for raw in items:
            item_id = raw_identity(raw)
            try:
                item = raw if isinstance(raw, ContentCreate) else ContentCreate.model_validate(raw)
                item_id = item.platform_content_id
                if await self.store.exists(item.creator_id, item.platform, item.platform_content_id):
                    await self.store.update_by_identity(item.creator_id, item.platform, item.platform_content_id, item)
                    result.updated += 1
                else:
                    await self.store.store(item)
                    result.created += 1
            except Exception as e:
                logger.error("Failed to store content %s: %s", item_id, e)
                result.errors.append(BatchItemError(platform_content_id=item_id, error=describe_error(e)))
                await self.store.rollback()

        result.skipped = len(items) - result.created - result.updated - len(result.errors)
        result.success = not result.errors
        logger.info(
            "Batch stored: created=%d updated=%d skipped=%d errors=%d",
            result.created,
            result.updated,
            result.skipped,
            len(result.errors),
        )
        return result

    async def normalize_and_store_many(
        self,
        creator_id: str,
        platform: Platform | str,
        raw_items: Sequence[Any],
        source_url: str | None = None,
    ) -> BatchContentResult:
        platform = coerce_platform(platform)
        normalized: list[ContentCreate] = []
        malformed: list[BatchItemError] = []
        rejected = 0
        for raw in raw_items:
            try:
                normalized.append(self.normalizer.normalize(platform, raw, creator_id, source_url))
            except ContentRejectedError as e:
                rejected += 1
                logger.info("Rejected %s item %s: %s", platform.value, raw_identity(raw), e)
            except ContentValidationError as e:
                logger.warning("Malformed %s item %s: %s", platform.value, raw_identity(raw), e)
                malformed.append(BatchItemError(platform_content_id=raw_identity(raw), error=e.message))

        result = await self.store_many(normalized)
        result.errors = malformed + result.errors
        result.rejected = rejected
        total = len(raw_items) - rejected
        result.skipped = total - result.created - result.updated - len(result.errors)
        result.success = not result.errors
        return result
