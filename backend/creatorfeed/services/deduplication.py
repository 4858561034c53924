"""
Deduplication engine: duplicate groups and their primary item.

Every stored item belongs to exactly one duplicate group, and groups never
span creators. The group row in ``duplicate_groups`` names the primary item;
changing it is a conditional UPDATE (compare-and-swap on
``primary_content_id``) so two ingestion runs racing on the same group cannot
both end up primary. ``content.is_primary`` is rewritten only by the writer
that won the swap.

Election rule: the earliest ``published_at`` wins; on equal timestamps the
incumbent (first ingested) keeps the flag.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, func, inspect, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from creatorfeed.errors import ContentNotFoundError, StorageError
from creatorfeed.models import SOCIAL_PLATFORMS, Content, DuplicateGroup, Platform, new_uuid, utcnow
from creatorfeed.services.content_text import ensure_utc, extract_text_from_html
from creatorfeed.services.dedupe import compute_content_hash
from creatorfeed.services.simhash import compute_text_simhash, find_near_duplicate

if TYPE_CHECKING:
    from creatorfeed.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class DedupDecision:
    content_hash: str
    duplicate_group_id: str
    is_primary: bool
    match: str  # "new" | "exact" | "near" | "unchanged"


def _insert_for(session: AsyncSession):
    dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert

        return sqlite_insert
    from sqlalchemy.dialects.postgresql import insert as pg_insert

    return pg_insert


class DeduplicationEngine:
    def __init__(self, settings: "Settings"):
        self.settings = settings

    # --- fingerprints ---

    def fingerprint(self, item: Any) -> tuple[str, str | None]:
        """(content_hash, content_simhash) for a canonical item or stored row."""
        content_hash = compute_content_hash(item)
        simhash = None
        if self.settings.dedup_near_duplicates_enabled and Platform(item.platform) in SOCIAL_PLATFORMS:
            text = extract_text_from_html(item.content_body) or extract_text_from_html(item.description)
            simhash = compute_text_simhash(text, min_tokens=self.settings.dedup_simhash_min_tokens)
        return content_hash, simhash

    # --- lookup ---

    async def find_group(
        self,
        session: AsyncSession,
        *,
        creator_id: str,
        content_hash: str,
        content_simhash: str | None = None,
        published_at: datetime | None = None,
        exclude_id: int | None = None,
    ) -> tuple[str | None, str]:
        """Return (group_id, match) where match is "exact", "near" or "new"."""
        query = (
            select(Content.duplicate_group_id)
            .where(
                Content.creator_id == creator_id,
                Content.content_hash == content_hash,
                Content.duplicate_group_id.isnot(None),
            )
            .order_by(Content.id)
            .limit(1)
        )
        if exclude_id is not None:
            query = query.where(Content.id != exclude_id)
        group_id = await session.scalar(query)
        if group_id:
            return group_id, "exact"

        group_id = await session.scalar(
            select(DuplicateGroup.id).where(
                DuplicateGroup.creator_id == creator_id, DuplicateGroup.content_hash == content_hash
            )
        )
        if group_id:
            return group_id, "exact"

        if content_simhash and self.settings.dedup_near_duplicates_enabled:
            anchor = ensure_utc(published_at) or datetime.now(timezone.utc)
            group_id, distance = await find_near_duplicate(
                session,
                creator_id,
                content_simhash,
                since=anchor - timedelta(days=self.settings.dedup_near_window_days),
                max_distance=self.settings.dedup_simhash_max_distance,
                exclude_id=exclude_id,
            )
            if group_id:
                logger.debug("Near-duplicate match in group %s (distance %d)", group_id, distance)
                return group_id, "near"

        return None, "new"

    # --- assignment ---

    async def assign(self, session: AsyncSession, content: Content) -> DedupDecision:
        """Attach a flushed row to its duplicate group and settle the primary flag.

        ``content`` must already carry ``content_hash`` (and ``content_simhash``
        when applicable) and have an id.
        """
        group_id, match = await self.find_group(
            session,
            creator_id=content.creator_id,
            content_hash=content.content_hash,
            content_simhash=content.content_simhash,
            published_at=content.published_at,
            exclude_id=content.id,
        )

        if group_id is None:
            group_id, created = await self._create_group(session, content)
            if created:
                content.duplicate_group_id = group_id
                content.is_primary = True
                await session.flush()
                return DedupDecision(content.content_hash, group_id, True, "new")
            # another writer seeded the same creator and hash first
            match = "exact"

        content.duplicate_group_id = group_id
        content.is_primary = False
        await session.flush()
        is_primary = await self._elect(session, group_id, content)
        return DedupDecision(content.content_hash, group_id, is_primary, match)

    async def _create_group(self, session: AsyncSession, content: Content) -> tuple[str, bool]:
        insert = _insert_for(session)
        group_id = new_uuid()
        now = utcnow()
        stmt = (
            insert(DuplicateGroup)
            .values(
                id=group_id,
                creator_id=content.creator_id,
                content_hash=content.content_hash,
                primary_content_id=content.id,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["creator_id", "content_hash"])
        )
        result = await session.execute(stmt)
        if result.rowcount == 1:
            return group_id, True

        existing = await session.scalar(
            select(DuplicateGroup.id).where(
                DuplicateGroup.creator_id == content.creator_id,
                DuplicateGroup.content_hash == content.content_hash,
            )
        )
        if existing is None:
            raise StorageError(f"Duplicate group for hash {content.content_hash} vanished during insert")
        return existing, False

    async def _elect(self, session: AsyncSession, group_id: str, candidate: Content) -> bool:
        candidate_published = ensure_utc(candidate.published_at)
        for attempt in range(1, self.settings.dedup_primary_cas_attempts + 1):
            current = await self._current_primary(session, group_id)
            if current == candidate.id:
                return True
            if current is not None:
                incumbent_published = await session.scalar(
                    select(Content.published_at).where(Content.id == current)
                )
                if incumbent_published is not None and not candidate_published < ensure_utc(incumbent_published):
                    return False
            if await self._swap_primary(session, group_id, expected=current, new=candidate.id):
                if current is not None:
                    logger.info("Content %s displaced %s as primary of group %s", candidate.id, current, group_id)
                return True
            logger.info("Lost primary swap on group %s (attempt %d)", group_id, attempt)
        raise StorageError(f"Could not settle primary for duplicate group {group_id}")

    async def _current_primary(self, session: AsyncSession, group_id: str) -> int | None:
        row = (
            await session.execute(select(DuplicateGroup.primary_content_id).where(DuplicateGroup.id == group_id))
        ).first()
        if row is None:
            raise StorageError(f"Duplicate group {group_id} not found")
        return row[0]

    async def _swap_primary(self, session: AsyncSession, group_id: str, *, expected: int | None, new: int) -> bool:
        if expected is None:
            matches_expected = DuplicateGroup.primary_content_id.is_(None)
        else:
            matches_expected = DuplicateGroup.primary_content_id == expected
        result = await session.execute(
            update(DuplicateGroup)
            .where(and_(DuplicateGroup.id == group_id, matches_expected))
            .values(primary_content_id=new, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        await self._write_flags(session, group_id, new)
        return True

    async def _write_flags(self, session: AsyncSession, group_id: str, primary_id: int) -> None:
        await session.execute(
            update(Content)
            .where(Content.duplicate_group_id == group_id)
            .values(is_primary=(Content.id == primary_id), updated_at=Content.updated_at)
            .execution_options(synchronize_session=False)
        )
        # keep already-loaded rows consistent with what was just written; expired rows reload on access
        for obj in list(session.sync_session.identity_map.values()):
            if not isinstance(obj, Content):
                continue
            loaded = inspect(obj).dict
            if loaded.get("duplicate_group_id") == group_id:
                set_committed_value(obj, "is_primary", loaded.get("id") == primary_id)

    # --- maintenance ---

    async def reelect_primary(self, session: AsyncSession, group_id: str) -> int | None:
        """Elect a primary after members left the group; drop the group when it is empty."""
        for attempt in range(1, self.settings.dedup_primary_cas_attempts + 1):
            row = (
                await session.execute(select(DuplicateGroup.primary_content_id).where(DuplicateGroup.id == group_id))
            ).first()
            if row is None:
                return None
            current = row[0]
            members = (
                await session.execute(
                    select(Content.id)
                    .where(Content.duplicate_group_id == group_id)
                    .order_by(Content.published_at.asc(), Content.id.asc())
                )
            ).scalars().all()

            if not members:
                await session.execute(delete(DuplicateGroup).where(DuplicateGroup.id == group_id))
                logger.info("Removed empty duplicate group %s", group_id)
                return None
            if current in members:
                return current
            if await self._swap_primary(session, group_id, expected=current, new=members[0]):
                logger.info("Re-elected %s as primary of group %s", members[0], group_id)
                return members[0]
            logger.info("Lost re-election swap on group %s (attempt %d)", group_id, attempt)
        raise StorageError(f"Could not re-elect primary for duplicate group {group_id}")

    async def set_primary(self, session: AsyncSession, group_id: str, content_id: int) -> None:
        """Manual override: make ``content_id`` the primary of its group."""
        member = await session.scalar(
            select(Content.id).where(Content.id == content_id, Content.duplicate_group_id == group_id)
        )
        if member is None:
            raise ContentNotFoundError(f"Content {content_id} is not in duplicate group {group_id}")
        for attempt in range(1, self.settings.dedup_primary_cas_attempts + 1):
            current = await self._current_primary(session, group_id)
            if current == content_id:
                await self._write_flags(session, group_id, content_id)
                return
            if await self._swap_primary(session, group_id, expected=current, new=content_id):
                return
            logger.info("Lost manual primary swap on group %s (attempt %d)", group_id, attempt)
        raise StorageError(f"Could not set primary for duplicate group {group_id}")

    async def regroup(self, session: AsyncSession, content: Content) -> DedupDecision:
        """Recompute fingerprints of a stored row and move it to the right group."""
        content_hash, content_simhash = self.fingerprint(content)
        old_group = content.duplicate_group_id
        if old_group and content_hash == content.content_hash and content_simhash == content.content_simhash:
            return DedupDecision(content_hash, old_group, content.is_primary, "unchanged")

        content.content_hash, content.content_simhash = content_hash, content_simhash
        content.duplicate_group_id = None
        content.is_primary = False
        await session.flush()
        if old_group:
            await self.reelect_primary(session, old_group)
        return await self.assign(session, content)

    async def list_groups(
        self,
        session: AsyncSession,
        *,
        limit: int = 20,
        offset: int = 0,
        min_members: int = 2,
    ) -> list[dict]:
        member_count = func.count(Content.id).label("member_count")
        query = (
            select(
                DuplicateGroup.id,
                DuplicateGroup.creator_id,
                DuplicateGroup.content_hash,
                DuplicateGroup.primary_content_id,
                DuplicateGroup.created_at,
                member_count,
            )
            .join(Content, Content.duplicate_group_id == DuplicateGroup.id)
            .group_by(
                DuplicateGroup.id,
                DuplicateGroup.creator_id,
                DuplicateGroup.content_hash,
                DuplicateGroup.primary_content_id,
                DuplicateGroup.created_at,
            )
            .having(func.count(Content.id) >= min_members)
            .order_by(DuplicateGroup.created_at.desc(), DuplicateGroup.id)
            .limit(limit)
            .offset(offset)
        )
        rows = (await session.execute(query)).all()
        return [
            {
                "id": row.id,
                "creator_id": row.creator_id,
                "content_hash": row.content_hash,
                "primary_content_id": row.primary_content_id,
                "created_at": row.created_at,
                "member_count": row.member_count,
            }
            for row in rows
        ]

    async def group_members(self, session: AsyncSession, group_id: str) -> list[Content]:
        result = await session.execute(
            select(Content)
            .where(Content.duplicate_group_id == group_id)
            .order_by(Content.published_at.asc(), Content.id.asc())
        )
        return list(result.scalars().all())
