from __future__ import annotations

from fastapi import APIRouter, status

from creatorfeed.deps import StoreDep
from creatorfeed.schemas import CreatorCreate, CreatorRead, CreatorStats
from creatorfeed.services.content_store import ContentStore

router = APIRouter(prefix="/api", tags=["creators"])


@router.post("/creators", response_model=CreatorRead, status_code=status.HTTP_201_CREATED)
async def create_creator(payload: CreatorCreate, store: ContentStore = StoreDep):
    creator = await store.add_creator(payload)
    return CreatorRead.model_validate(creator)


@router.delete("/creators/{creator_id}")
async def delete_creator(creator_id: str, store: ContentStore = StoreDep):
    removed = await store.remove_creator(creator_id)
    return {"creator_id": creator_id, "deleted_content": removed}


@router.get("/creators/{creator_id}/stats", response_model=CreatorStats)
async def creator_stats(creator_id: str, store: ContentStore = StoreDep):
    return CreatorStats(**await store.creator_stats(creator_id))
