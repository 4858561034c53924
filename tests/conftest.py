"""Shared fixtures for the creator-feed test suite."""

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy import select

from creatorfeed.db import Base, build_engine, build_session_factory
from creatorfeed.models import Content, Creator
from creatorfeed.schemas import ContentCreate
from creatorfeed.services.batch import BatchOrchestrator
from creatorfeed.services.content_store import ContentStore
from creatorfeed.services.deduplication import DeduplicationEngine
from creatorfeed.services.normalizer import ContentNormalizer
from creatorfeed.settings import Settings

CREATOR_ID = "creator-0001"
OTHER_CREATOR_ID = "creator-0002"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'content.db'}",
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="test",
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = build_engine(settings.async_database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def creators(session_factory):
    async with session_factory() as session:
        session.add_all(
            [
                Creator(id=CREATOR_ID, name="Ada Writer", platform="rss"),
                Creator(id=OTHER_CREATOR_ID, name="Grace Poster", platform="twitter"),
            ]
        )
        await session.commit()
    return CREATOR_ID, OTHER_CREATOR_ID


@pytest_asyncio.fixture
async def session(session_factory, creators):
    async with session_factory() as session:
        yield session


@pytest.fixture
def dedup(settings):
    return DeduplicationEngine(settings)


@pytest.fixture
def store(session, dedup):
    return ContentStore(session, dedup)


@pytest.fixture
def normalizer():
    return ContentNormalizer()


@pytest.fixture
def orchestrator(store, normalizer):
    return BatchOrchestrator(store, normalizer)


@pytest.fixture
def make_item():
    """Factory fixture for canonical items with sensible defaults."""
    def _make(
        platform_content_id="post-1",
        platform="rss",
        creator_id=CREATOR_ID,
        title="Vector search in practice",
        content_body="<p>Approximate nearest neighbour indexes trade recall for latency in production systems.</p>",
        published_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        **extra,
    ):
        return ContentCreate(
            creator_id=creator_id,
            platform=platform,
            platform_content_id=platform_content_id,
            url=extra.pop("url", f"https://example.com/{platform_content_id}"),
            title=title,
            content_body=content_body,
            published_at=published_at,
            **extra,
        )
    return _make


@pytest.fixture
def fetch_rows(session_factory):
    """Read content rows through a fresh session, bypassing any identity map."""
    async def _fetch(**filters):
        async with session_factory() as fresh:
            query = select(Content).order_by(Content.id)
            for field, value in filters.items():
                query = query.where(getattr(Content, field) == value)
            return list((await fresh.execute(query)).scalars().all())
    return _fetch
