"""Persistence gateway for canonical content.

Rows are keyed by (creator_id, platform, platform_content_id). ``store``
creates, ``update_by_identity`` refreshes the mutable fields of an existing
row; neither changes identity or duplicate-group membership of another row
except through the deduplication engine.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator

from pydantic import BaseModel
from sqlalchemy import delete, func, inspect, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from creatorfeed.errors import (
    ContentError,
    ContentNotFoundError,
    ContentValidationError,
    DuplicateContentError,
    StorageError,
)
from creatorfeed.models import Content, Creator, Platform, ProcessingStatus, utcnow
from creatorfeed.schemas import ContentCreate, ContentFilters, ContentUpdate, CreatorCreate, MediaUrl
from creatorfeed.services.content_text import ensure_utc, text_metrics
from creatorfeed.services.deduplication import DeduplicationEngine

logger = logging.getLogger(__name__)

AUTO_PROCESSED_PLATFORMS = frozenset(
    {Platform.rss, Platform.youtube, Platform.twitter, Platform.threads, Platform.linkedin}
)

# Fields an existing row may have refreshed by a later ingestion run
REFRESHABLE_FIELDS = (
    "title",
    "description",
    "thumbnail_url",
    "content_body",
    "media_urls",
    "engagement_metrics",
    "word_count",
    "reading_time_minutes",
)
EDITABLE_FIELDS = REFRESHABLE_FIELDS + ("processing_status", "ai_summary", "error_message")
_NOT_NULL_FIELDS = frozenset({"title", "word_count", "reading_time_minutes", "processing_status", "media_urls", "engagement_metrics"})


def default_status(platform: Platform) -> ProcessingStatus:
    if platform in AUTO_PROCESSED_PLATFORMS:
        return ProcessingStatus.processed
    return ProcessingStatus.pending


def _serialize_media(media: list[MediaUrl | dict] | None) -> list[dict]:
    entries = [MediaUrl.model_validate(entry) if isinstance(entry, dict) else entry for entry in media or []]
    return [entry.model_dump(mode="json", exclude_none=True) for entry in entries]


def _serialize(field: str, value: Any) -> Any:
    if field == "media_urls":
        return _serialize_media(value)
    if field == "engagement_metrics":
        return dict(value) if value is not None else {}
    if field == "processing_status" and value is not None:
        return ProcessingStatus(value).value
    return value


class ContentStore:
    def __init__(self, session: AsyncSession, dedup: DeduplicationEngine):
        self.session = session
        self.dedup = dedup

    @asynccontextmanager
    async def _writing(self, action: str) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            message = str(exc.orig).lower()
            if "uq_content_identity" in message or "content.platform_content_id" in message:
                raise DuplicateContentError("Content already exists for this creator and platform") from exc
            if "foreign key" in message:
                raise ContentValidationError("Unknown creator") from exc
            logger.error("Integrity error while trying to %s: %s", action, exc)
            raise StorageError(f"Failed to {action}") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("Database error while trying to %s: %s", action, exc)
            raise StorageError(f"Failed to {action}: {exc.__class__.__name__}") from exc
        except ContentError:
            await self.session.rollback()
            raise

    async def rollback(self) -> None:
        """Discard the open unit of work so the next call starts clean."""
        await self.session.rollback()

    # --- reads ---

    async def find_by_identity(self, creator_id: str, platform: Platform | str, platform_content_id: str) -> Content | None:
        try:
            return await self.session.scalar(
                select(Content).where(
                    Content.creator_id == creator_id,
                    Content.platform == Platform(platform).value,
                    Content.platform_content_id == platform_content_id,
                )
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to look up content: {exc.__class__.__name__}") from exc

    async def exists(self, creator_id: str, platform: Platform | str, platform_content_id: str) -> bool:
        try:
            found = await self.session.scalar(
                select(Content.id).where(
                    Content.creator_id == creator_id,
                    Content.platform == Platform(platform).value,
                    Content.platform_content_id == platform_content_id,
                )
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to check content existence: {exc.__class__.__name__}") from exc
        return found is not None

    async def get(self, content_id: int) -> Content:
        try:
            content = await self.session.get(Content, content_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load content: {exc.__class__.__name__}") from exc
        if content is None:
            raise ContentNotFoundError(f"Content {content_id} not found")
        return content

    async def list(self, filters: ContentFilters) -> tuple[list[Content], int]:
        conditions = []
        if filters.creator_id:
            conditions.append(Content.creator_id == filters.creator_id)
        if filters.platform:
            conditions.append(Content.platform == filters.platform.value)
        if filters.processing_status:
            conditions.append(Content.processing_status == filters.processing_status.value)
        if filters.from_date:
            conditions.append(Content.published_at >= filters.from_date)
        if filters.to_date:
            conditions.append(Content.published_at <= filters.to_date)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            conditions.append(
                or_(
                    Content.title.ilike(pattern),
                    Content.description.ilike(pattern),
                    Content.content_body.ilike(pattern),
                )
            )
        if filters.primary_only:
            conditions.append(Content.is_primary.is_(True))

        sort_column = getattr(Content, filters.sort_by)
        if filters.sort_order == "asc":
            ordering = (sort_column.asc(), Content.id.asc())
        else:
            ordering = (sort_column.desc(), Content.id.desc())

        try:
            total = await self.session.scalar(select(func.count(Content.id)).where(*conditions))
            result = await self.session.execute(
                select(Content).where(*conditions).order_by(*ordering).limit(filters.limit).offset(filters.offset)
            )
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to list content: {exc.__class__.__name__}") from exc
        return list(result.scalars().all()), total or 0

    async def creator_stats(self, creator_id: str) -> dict:
        try:
            by_platform = dict(
                (
                    await self.session.execute(
                        select(Content.platform, func.count(Content.id))
                        .where(Content.creator_id == creator_id)
                        .group_by(Content.platform)
                    )
                ).all()
            )
            by_status = dict(
                (
                    await self.session.execute(
                        select(Content.processing_status, func.count(Content.id))
                        .where(Content.creator_id == creator_id)
                        .group_by(Content.processing_status)
                    )
                ).all()
            )
            duplicates, total_words, latest = (
                await self.session.execute(
                    select(
                        func.count(Content.id).filter(Content.is_primary.is_(False)),
                        func.coalesce(func.sum(Content.word_count), 0),
                        func.max(Content.published_at),
                    ).where(Content.creator_id == creator_id)
                )
            ).one()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to compute creator stats: {exc.__class__.__name__}") from exc
        return {
            "creator_id": creator_id,
            "total": sum(by_platform.values()),
            "by_platform": by_platform,
            "by_status": by_status,
            "duplicates": duplicates or 0,
            "total_words": int(total_words or 0),
            "latest_published_at": ensure_utc(latest) if isinstance(latest, datetime) else None,
        }

    # --- writes ---

    def _forget(self, content_ids: set[int]) -> None:
        """Drop deleted rows from the identity map."""
        for obj in list(self.session.sync_session.identity_map.values()):
            if isinstance(obj, Content) and inspect(obj).identity[0] in content_ids:
                self.session.expunge(obj)

    async def store(self, item: ContentCreate) -> Content:
        platform = Platform(item.platform)
        if await self.exists(item.creator_id, platform, item.platform_content_id):
            raise DuplicateContentError(
                f"Content {item.platform_content_id} already exists for creator {item.creator_id} on {platform.value}"
            )

        words, minutes = item.word_count, item.reading_time_minutes
        if words is None or minutes is None:
            computed_words, computed_minutes = text_metrics(item.content_body)
            words = computed_words if words is None else words
            minutes = computed_minutes if minutes is None else minutes

        content_hash, content_simhash = self.dedup.fingerprint(item)
        now = utcnow()
        content = Content(
            creator_id=item.creator_id,
            platform=platform.value,
            platform_content_id=item.platform_content_id,
            url=item.url,
            title=item.title or "",
            description=item.description,
            content_body=item.content_body,
            thumbnail_url=item.thumbnail_url,
            media_urls=_serialize_media(item.media_urls),
            word_count=words,
            reading_time_minutes=minutes,
            published_at=item.published_at or now,
            engagement_metrics=dict(item.engagement_metrics),
            reference_type=item.reference_type.value,
            referenced_content=(
                item.referenced_content.model_dump(mode="json", exclude_none=True)
                if item.referenced_content is not None
                else None
            ),
            content_hash=content_hash,
            content_simhash=content_simhash,
            is_primary=False,
            processing_status=(item.processing_status or default_status(platform)).value,
            ai_summary=item.ai_summary,
            created_at=now,
            updated_at=now,
        )
        async with self._writing("store content"):
            self.session.add(content)
            await self.session.flush()
            decision = await self.dedup.assign(self.session, content)
        logger.debug(
            "Stored %s content %s (group=%s primary=%s match=%s)",
            platform.value,
            content.id,
            decision.duplicate_group_id,
            decision.is_primary,
            decision.match,
        )
        return content

    def _apply(self, content: Content, data: dict[str, Any], allowed: tuple[str, ...]) -> None:
        data = {key: value for key, value in data.items() if not (key in _NOT_NULL_FIELDS and value is None)}
        body_changed = "content_body" in data and data["content_body"] != content.content_body
        for field in allowed:
            if field in data:
                setattr(content, field, _serialize(field, data[field]))
        if body_changed and "word_count" not in data:
            content.word_count, minutes = text_metrics(content.content_body)
            if "reading_time_minutes" not in data:
                content.reading_time_minutes = minutes
        content.updated_at = utcnow()

    @staticmethod
    def _changes(fields: BaseModel | dict[str, Any]) -> dict[str, Any]:
        if isinstance(fields, BaseModel):
            # keep nested models as models; _serialize dumps them
            return {name: getattr(fields, name) for name in fields.model_fields_set}
        return dict(fields)

    async def update_by_identity(
        self,
        creator_id: str,
        platform: Platform | str,
        platform_content_id: str,
        fields: ContentCreate | ContentUpdate | dict[str, Any],
    ) -> Content:
        content = await self.find_by_identity(creator_id, platform, platform_content_id)
        if content is None:
            raise ContentNotFoundError(f"Content {platform_content_id} not found for creator {creator_id}")
        async with self._writing("update content"):
            self._apply(content, self._changes(fields), REFRESHABLE_FIELDS)
        return content

    async def update(self, content_id: int, fields: ContentUpdate | dict[str, Any]) -> Content:
        content = await self.get(content_id)
        async with self._writing("update content"):
            self._apply(content, self._changes(fields), EDITABLE_FIELDS)
        return content

    async def mark_processed(self, content_id: int, ai_summary: str | None = None) -> Content:
        fields: dict[str, Any] = {"processing_status": ProcessingStatus.processed, "error_message": None}
        if ai_summary is not None:
            fields["ai_summary"] = ai_summary
        return await self.update(content_id, fields)

    async def mark_failed(self, content_id: int, message: str) -> Content:
        return await self.update(content_id, {"processing_status": ProcessingStatus.failed, "error_message": message})

    async def promote_pending(self, platform: Platform | str | None = None) -> int:
        """Mark pending rows processed; returns how many were promoted."""
        query = update(Content).where(Content.processing_status == ProcessingStatus.pending.value)
        if platform is not None:
            query = query.where(Content.platform == Platform(platform).value)
        async with self._writing("promote pending content"):
            result = await self.session.execute(
                query.values(processing_status=ProcessingStatus.processed.value, updated_at=utcnow()).execution_options(
                    synchronize_session="evaluate"
                )
            )
        promoted = result.rowcount or 0
        logger.info("Promoted %d pending content rows", promoted)
        return promoted

    async def delete(self, content_id: int) -> None:
        content = await self.get(content_id)
        group_id = content.duplicate_group_id
        async with self._writing("delete content"):
            await self.session.execute(delete(Content).where(Content.id == content_id))
            self._forget({content_id})
            if group_id:
                await self.dedup.reelect_primary(self.session, group_id)

    async def delete_by_creator(self, creator_id: str) -> int:
        async with self._writing("delete creator content"):
            rows = (
                await self.session.execute(
                    select(Content.id, Content.duplicate_group_id).where(Content.creator_id == creator_id)
                )
            ).all()
            if rows:
                await self.session.execute(delete(Content).where(Content.creator_id == creator_id))
                self._forget({content_id for content_id, _ in rows})
                for group_id in sorted({group_id for _, group_id in rows if group_id}):
                    await self.dedup.reelect_primary(self.session, group_id)
        logger.info("Deleted %d content rows for creator %s", len(rows), creator_id)
        return len(rows)

    # --- duplicate groups ---

    async def duplicate_groups(self, *, limit: int = 20, offset: int = 0, min_members: int = 2) -> list[dict]:
        try:
            return await self.dedup.list_groups(self.session, limit=limit, offset=offset, min_members=min_members)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to list duplicate groups: {exc.__class__.__name__}") from exc

    async def set_primary(self, group_id: str, content_id: int) -> list[Content]:
        async with self._writing("set primary content"):
            await self.dedup.set_primary(self.session, group_id, content_id)
        return await self.dedup.group_members(self.session, group_id)

    # --- creators ---

    async def add_creator(self, payload: CreatorCreate) -> Creator:
        creator = Creator(name=payload.name, platform=payload.platform.value if payload.platform else None)
        if payload.id:
            creator.id = payload.id
        async with self._writing("create creator"):
            self.session.add(creator)
            await self.session.flush()
        return creator

    async def remove_creator(self, creator_id: str) -> int:
        creator = await self.session.get(Creator, creator_id)
        if creator is None:
            raise ContentNotFoundError(f"Creator {creator_id} not found")
        removed = await self.delete_by_creator(creator_id)
        async with self._writing("delete creator"):
            await self.session.execute(delete(Creator).where(Creator.id == creator_id))
            self.session.expunge(creator)
        return removed
