from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from creatorfeed.deps import BatchDep, NormalizerDep, SettingsDep, StoreDep
from creatorfeed.errors import ContentValidationError
from creatorfeed.models import Platform, ProcessingStatus
from creatorfeed.schemas import (
    BatchContentResult,
    ContentBatchCreate,
    ContentCreate,
    ContentFilters,
    ContentListResponse,
    ContentRead,
    ContentUpdate,
    DuplicateGroupRead,
    IngestRequest,
    NormalizeRequest,
    SetPrimaryRequest,
)
from creatorfeed.services.batch import BatchOrchestrator
from creatorfeed.services.content_store import ContentStore
from creatorfeed.services.normalizer import ContentNormalizer
from creatorfeed.settings import Settings

router = APIRouter(prefix="/api", tags=["content"])


def _batch_response(result: BatchContentResult) -> JSONResponse:
    code = status.HTTP_200_OK if result.success else status.HTTP_207_MULTI_STATUS
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


@router.post("/content/store", response_model=ContentRead, status_code=status.HTTP_201_CREATED)
async def store_content(payload: ContentCreate, store: ContentStore = StoreDep):
    content = await store.store(payload)
    return ContentRead.model_validate(content)


@router.post("/content/batch", response_model=BatchContentResult)
async def store_content_batch(
    payload: ContentBatchCreate,
    orchestrator: BatchOrchestrator = BatchDep,
    settings: Settings = SettingsDep,
):
    if len(payload.contents) > settings.batch_max_items:
        raise ContentValidationError(f"Batch size exceeds maximum of {settings.batch_max_items} items")
    result = await orchestrator.store_many(payload.contents)
    return _batch_response(result)


@router.post("/content/normalize", response_model=ContentRead, status_code=status.HTTP_201_CREATED)
async def normalize_and_store(
    payload: NormalizeRequest,
    normalizer: ContentNormalizer = NormalizerDep,
    store: ContentStore = StoreDep,
):
    item = normalizer.normalize(payload.platform, payload.platform_data, payload.creator_id, payload.source_url)
    content = await store.store(item)
    return ContentRead.model_validate(content)


@router.post("/content/ingest", response_model=BatchContentResult)
async def ingest_content(
    payload: IngestRequest,
    orchestrator: BatchOrchestrator = BatchDep,
    settings: Settings = SettingsDep,
):
    if len(payload.items) > settings.batch_max_items:
        raise ContentValidationError(f"Batch size exceeds maximum of {settings.batch_max_items} items")
    result = await orchestrator.normalize_and_store_many(
        payload.creator_id, payload.platform, payload.items, payload.source_url
    )
    return _batch_response(result)


@router.get("/content", response_model=ContentListResponse)
async def list_content(
    creator_id: str | None = Query(default=None),
    platform: Platform | None = Query(default=None),
    processing_status: ProcessingStatus | None = Query(default=None),
    from_date: datetime | None = Query(default=None),
    to_date: datetime | None = Query(default=None),
    search: str | None = Query(default=None),
    primary_only: bool = Query(default=False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: str = Query(default="published_at", pattern="^(published_at|created_at|updated_at|word_count)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    store: ContentStore = StoreDep,
):
    filters = ContentFilters(
        creator_id=creator_id,
        platform=platform,
        processing_status=processing_status,
        from_date=from_date,
        to_date=to_date,
        search=search,
        primary_only=primary_only,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    items, total = await store.list(filters)
    return ContentListResponse(
        items=[ContentRead.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(items) < total,
    )


@router.post("/content/process-pending")
async def process_pending(platform: Platform | None = Query(default=None), store: ContentStore = StoreDep):
    promoted = await store.promote_pending(platform)
    return {"promoted": promoted, "platform": platform.value if platform else None}


@router.get("/content/duplicates", response_model=list[DuplicateGroupRead])
async def list_duplicate_groups(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    min_members: int = Query(2, ge=1),
    store: ContentStore = StoreDep,
):
    groups = await store.duplicate_groups(limit=limit, offset=offset, min_members=min_members)
    return [DuplicateGroupRead(**group) for group in groups]


@router.post("/content/duplicates/{group_id}/primary", response_model=list[ContentRead])
async def set_duplicate_primary(group_id: str, payload: SetPrimaryRequest, store: ContentStore = StoreDep):
    members = await store.set_primary(group_id, payload.content_id)
    return [ContentRead.model_validate(member) for member in members]


@router.get("/content/{content_id}", response_model=ContentRead)
async def get_content(content_id: int, store: ContentStore = StoreDep):
    return ContentRead.model_validate(await store.get(content_id))


@router.patch("/content/{content_id}", response_model=ContentRead)
async def update_content(content_id: int, payload: ContentUpdate, store: ContentStore = StoreDep):
    content = await store.update(content_id, payload)
    return ContentRead.model_validate(content)


@router.delete("/content/{content_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_content(content_id: int, store: ContentStore = StoreDep):
    await store.delete(content_id)
