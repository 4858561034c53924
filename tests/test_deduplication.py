"""Tests for duplicate grouping and primary election."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from creatorfeed.errors import ContentNotFoundError, StorageError
from creatorfeed.models import DuplicateGroup
from creatorfeed.schemas import ContentFilters

from conftest import CREATOR_ID, OTHER_CREATOR_ID

POST = "Shipped streaming ingestion for creator feeds with retries backoff and idempotent writes today"
EDITED = "Shipped the streaming ingestion for creator feeds with retries backoff and idempotent writes today"


def at(day, hour=12):
    return datetime(2024, 1, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def group_primary(session_factory):
    async def _primary(group_id):
        async with session_factory() as fresh:
            return await fresh.scalar(select(DuplicateGroup.primary_content_id).where(DuplicateGroup.id == group_id))
    return _primary


@pytest.fixture
def group_count(session_factory):
    async def _count():
        async with session_factory() as fresh:
            return await fresh.scalar(select(func.count(DuplicateGroup.id)))
    return _count


class TestAssign:
    async def test_first_item_starts_a_group(self, store, make_item, group_primary):
        content = await store.store(make_item())
        assert content.duplicate_group_id is not None
        assert content.is_primary is True
        assert await group_primary(content.duplicate_group_id) == content.id

    async def test_later_copy_joins_as_duplicate(self, store, make_item, fetch_rows):
        first = await store.store(make_item(platform_content_id="feed-a", published_at=at(1)))
        second = await store.store(make_item(platform_content_id="feed-b", published_at=at(2)))
        assert second.duplicate_group_id == first.duplicate_group_id
        assert second.content_hash == first.content_hash
        rows = await fetch_rows()
        assert [row.is_primary for row in rows] == [True, False]

    async def test_earlier_copy_displaces_primary(self, store, make_item, fetch_rows, group_primary):
        late = await store.store(make_item(platform_content_id="feed-a", published_at=at(5)))
        early = await store.store(make_item(platform_content_id="feed-b", published_at=at(1)))
        assert early.is_primary is True
        rows = {row.platform_content_id: row for row in await fetch_rows()}
        assert rows["feed-a"].is_primary is False
        assert rows["feed-b"].is_primary is True
        assert await group_primary(late.duplicate_group_id) == early.id

    async def test_equal_timestamps_keep_incumbent(self, store, make_item, fetch_rows):
        await store.store(make_item(platform_content_id="feed-a"))
        challenger = await store.store(make_item(platform_content_id="feed-b"))
        assert challenger.is_primary is False
        rows = await fetch_rows(is_primary=True)
        assert [row.platform_content_id for row in rows] == ["feed-a"]

    async def test_same_text_from_other_creator_starts_its_own_group(self, store, make_item, group_primary):
        mine = await store.store(make_item(platform_content_id="a", published_at=at(1)))
        theirs = await store.store(make_item(platform_content_id="b", creator_id=OTHER_CREATOR_ID, published_at=at(3)))

        assert theirs.content_hash == mine.content_hash
        assert theirs.duplicate_group_id != mine.duplicate_group_id
        assert mine.is_primary and theirs.is_primary
        assert await group_primary(theirs.duplicate_group_id) == theirs.id

    async def test_other_creators_earlier_copy_does_not_hide_posts(self, store, make_item):
        await store.store(make_item(platform_content_id="a", published_at=at(1)))
        theirs = await store.store(make_item(platform_content_id="b", creator_id=OTHER_CREATOR_ID, published_at=at(3)))

        rows, total = await store.list(ContentFilters(creator_id=OTHER_CREATOR_ID, primary_only=True))
        assert total == 1
        assert [row.id for row in rows] == [theirs.id]
        stats = await store.creator_stats(OTHER_CREATOR_ID)
        assert stats["duplicates"] == 0

    async def test_different_text_gets_its_own_group(self, store, make_item):
        a = await store.store(make_item(platform_content_id="a"))
        b = await store.store(make_item(platform_content_id="b", title="Something else entirely"))
        assert a.duplicate_group_id != b.duplicate_group_id
        assert a.is_primary and b.is_primary


class TestNearDuplicates:
    async def test_lightly_edited_post_joins_group(self, store, make_item):
        original = await store.store(make_item(platform="twitter", platform_content_id="1", title="", content_body=POST))
        edited = await store.store(
            make_item(platform="twitter", platform_content_id="2", title="", content_body=EDITED, published_at=at(3))
        )
        assert original.content_simhash == edited.content_simhash
        assert original.content_hash != edited.content_hash
        assert edited.duplicate_group_id == original.duplicate_group_id
        assert edited.is_primary is False

    async def test_other_creators_are_not_near_matched(self, store, make_item):
        original = await store.store(make_item(platform="twitter", platform_content_id="1", title="", content_body=POST))
        other = await store.store(
            make_item(platform="twitter", platform_content_id="2", title="", content_body=EDITED, creator_id=OTHER_CREATOR_ID)
        )
        assert other.duplicate_group_id != original.duplicate_group_id

    async def test_outside_window_is_not_near_matched(self, store, make_item):
        original = await store.store(make_item(platform="twitter", platform_content_id="1", title="", content_body=POST))
        months_later = datetime(2024, 4, 1, tzinfo=timezone.utc)
        later = await store.store(
            make_item(platform="twitter", platform_content_id="2", title="", content_body=EDITED, published_at=months_later)
        )
        assert later.duplicate_group_id != original.duplicate_group_id

    async def test_articles_are_never_near_matched(self, store, make_item):
        a = await store.store(make_item(platform_content_id="1", title="", content_body=POST))
        b = await store.store(make_item(platform_content_id="2", title="", content_body=EDITED))
        assert a.content_simhash is None
        assert a.duplicate_group_id != b.duplicate_group_id


class TestMaintenance:
    async def test_deleting_primary_elects_earliest_remaining(self, store, make_item, fetch_rows, group_primary):
        first = await store.store(make_item(platform_content_id="a", published_at=at(1)))
        await store.store(make_item(platform_content_id="b", published_at=at(4)))
        third = await store.store(make_item(platform_content_id="c", published_at=at(2)))
        group_id = first.duplicate_group_id

        await store.delete(first.id)

        assert await group_primary(group_id) == third.id
        primaries = await fetch_rows(is_primary=True)
        assert [row.platform_content_id for row in primaries] == ["c"]

    async def test_deleting_last_member_removes_group(self, store, make_item, group_count):
        only = await store.store(make_item())
        assert await group_count() == 1
        await store.delete(only.id)
        assert await group_count() == 0

    async def test_manual_primary_override(self, store, make_item, fetch_rows):
        first = await store.store(make_item(platform_content_id="a", published_at=at(1)))
        second = await store.store(make_item(platform_content_id="b", published_at=at(2)))

        members = await store.set_primary(first.duplicate_group_id, second.id)

        assert {m.id: m.is_primary for m in members} == {first.id: False, second.id: True}
        primaries = await fetch_rows(is_primary=True)
        assert [row.id for row in primaries] == [second.id]

    async def test_manual_primary_requires_membership(self, store, make_item):
        a = await store.store(make_item(platform_content_id="a"))
        b = await store.store(make_item(platform_content_id="b", title="Unrelated"))
        with pytest.raises(ContentNotFoundError):
            await store.set_primary(a.duplicate_group_id, b.id)

    async def test_stale_swap_is_refused(self, store, dedup, session, make_item, group_primary):
        first = await store.store(make_item(platform_content_id="a", published_at=at(1)))
        second = await store.store(make_item(platform_content_id="b", published_at=at(2)))
        swapped = await dedup._swap_primary(session, first.duplicate_group_id, expected=second.id, new=second.id)
        await session.commit()
        assert swapped is False
        assert await group_primary(first.duplicate_group_id) == first.id

    async def test_lost_swap_is_retried(self, store, dedup, make_item, fetch_rows, group_primary, monkeypatch):
        incumbent = await store.store(make_item(platform_content_id="a", published_at=at(3)))
        rival = await store.store(make_item(platform_content_id="r", published_at=at(5)))
        group_id = incumbent.duplicate_group_id
        read_primary = dedup._current_primary
        reads = []

        async def concurrent_writer_wins_first(session, group_id):
            current = await read_primary(session, group_id)
            if not reads:
                # another writer moves the primary between our read and our swap
                assert await dedup._swap_primary(session, group_id, expected=current, new=rival.id)
            reads.append(current)
            return current

        monkeypatch.setattr(dedup, "_current_primary", concurrent_writer_wins_first)
        challenger = await store.store(make_item(platform_content_id="c", published_at=at(2)))

        assert reads == [incumbent.id, rival.id]
        assert challenger.is_primary is True
        assert await group_primary(group_id) == challenger.id
        primaries = await fetch_rows(is_primary=True)
        assert [row.id for row in primaries] == [challenger.id]

    async def test_exhausted_swaps_fail_the_write(self, store, dedup, settings, make_item, fetch_rows, monkeypatch):
        incumbent = await store.store(make_item(platform_content_id="a", published_at=at(3)))
        incumbent_id = incumbent.id
        attempts = []

        async def always_stale(session, group_id, *, expected, new):
            attempts.append((expected, new))
            return False

        monkeypatch.setattr(dedup, "_swap_primary", always_stale)
        with pytest.raises(StorageError, match="Could not settle primary"):
            await store.store(make_item(platform_content_id="c", published_at=at(1)))

        assert len(attempts) == settings.dedup_primary_cas_attempts
        assert {expected for expected, _ in attempts} == {incumbent_id}
        rows = await fetch_rows()
        assert [(row.id, row.is_primary) for row in rows] == [(incumbent_id, True)]
        assert not await store.exists(CREATOR_ID, "rss", "c")

    async def test_exhausted_reelection_keeps_the_row(self, store, dedup, settings, make_item, fetch_rows, monkeypatch):
        first = await store.store(make_item(platform_content_id="a", published_at=at(1)))
        await store.store(make_item(platform_content_id="b", published_at=at(2)))
        attempts = []

        async def always_stale(session, group_id, *, expected, new):
            attempts.append(new)
            return False

        monkeypatch.setattr(dedup, "_swap_primary", always_stale)
        with pytest.raises(StorageError, match="Could not re-elect"):
            await store.delete(first.id)

        assert len(attempts) == settings.dedup_primary_cas_attempts
        rows = await fetch_rows()
        assert [(row.platform_content_id, row.is_primary) for row in rows] == [("a", True), ("b", False)]

    async def test_list_groups(self, store, dedup, session, make_item):
        a = await store.store(make_item(platform_content_id="a"))
        await store.store(make_item(platform_content_id="b", published_at=at(2)))
        await store.store(make_item(platform_content_id="c", title="A lonely article"))

        groups = await dedup.list_groups(session)
        assert len(groups) == 1
        assert groups[0]["id"] == a.duplicate_group_id
        assert groups[0]["creator_id"] == a.creator_id
        assert groups[0]["member_count"] == 2
        assert groups[0]["primary_content_id"] == a.id

        assert len(await dedup.list_groups(session, min_members=1)) == 2

    async def test_regroup_moves_changed_rows(self, store, dedup, session, make_item, group_count):
        a = await store.store(make_item(platform_content_id="a"))
        b = await store.store(make_item(platform_content_id="b", title="Draft title", published_at=at(2)))
        assert await group_count() == 2

        b.title = a.title
        decision = await dedup.regroup(session, b)
        await session.commit()

        assert decision.match == "exact"
        assert decision.duplicate_group_id == a.duplicate_group_id
        assert decision.is_primary is False
        assert await group_count() == 1

    async def test_regroup_leaves_unchanged_rows(self, store, dedup, session, make_item):
        a = await store.store(make_item())
        decision = await dedup.regroup(session, a)
        assert decision.match == "unchanged"
        assert decision.duplicate_group_id == a.duplicate_group_id
