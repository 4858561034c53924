from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from creatorfeed.db import get_session
from creatorfeed.services.batch import BatchOrchestrator
from creatorfeed.services.content_store import ContentStore
from creatorfeed.services.deduplication import DeduplicationEngine
from creatorfeed.services.normalizer import ContentNormalizer
from creatorfeed.settings import Settings

SessionDep = Depends(get_session)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_normalizer(request: Request) -> ContentNormalizer:
    return request.app.state.normalizer


def get_dedup_engine(request: Request) -> DeduplicationEngine:
    return request.app.state.dedup_engine


def get_content_store(
    session: AsyncSession = SessionDep,
    dedup: DeduplicationEngine = Depends(get_dedup_engine),
) -> ContentStore:
    return ContentStore(session, dedup)


def get_batch_orchestrator(
    store: ContentStore = Depends(get_content_store),
    normalizer: ContentNormalizer = Depends(get_normalizer),
) -> BatchOrchestrator:
    return BatchOrchestrator(store, normalizer)


SettingsDep = Depends(get_app_settings)
NormalizerDep = Depends(get_normalizer)
StoreDep = Depends(get_content_store)
BatchDep = Depends(get_batch_orchestrator)
