# civic_hierarchy/routes/content.py
from fastapi import APIRouter, Depends, Query, status
from typing import List

from civic_hierarchy.configs import configs
from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.content import ContentType
from civic_hierarchy.schemas.content import ContentCreate, ContentPublic, ContentUpdate
from civic_hierarchy.services.content_service import ContentService
from civic_hierarchy.services.hierarchy_store import HierarchyStore
from civic_hierarchy.dependencies.auth import get_current_actor
from civic_hierarchy.dependencies.hierarchy import get_hierarchy_store
from civic_hierarchy.dependencies.permissions import require_admin

router = APIRouter()
content_service = ContentService()

pagination = configs.get("pagination", {})
DEFAULT_LIMIT = pagination.get("default_limit", 100)
MAX_LIMIT = pagination.get("max_limit", 500)


@router.post("/{content_type}", response_model=ContentPublic, status_code=status.HTTP_201_CREATED)
async def create_content(
    content_type: ContentType,
    content_create: ContentCreate,
    actor: Actor = Depends(get_current_actor),
):
    """
    Publishes an item. Without `target_node_ids` it targets the creator's own
    node; an explicit target must lie inside the creator's jurisdiction, and
    at most one target is accepted.
    """
    return await content_service.create_content(content_type, content_create, actor)


@router.get("/{content_type}", response_model=List[ContentPublic])
async def get_visible_content(
    content_type: ContentType,
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    actor: Actor = Depends(get_current_actor),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """Items visible to the caller: untargeted ones plus those targeted on their chain."""
    return await content_service.list_visible(content_type, actor, store, skip=skip, limit=limit)


@router.get("/{content_type}/manage", response_model=List[ContentPublic])
async def get_manageable_content(
    content_type: ContentType,
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """Items targeted inside the caller's jurisdiction, published or not."""
    return await content_service.list_manageable(
        content_type, actor, store, skip=skip, limit=limit
    )


@router.get("/{content_type}/{content_id}", response_model=ContentPublic)
async def get_content(
    content_type: ContentType,
    content_id: str,
    history: bool = False,
    actor: Actor = Depends(get_current_actor),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """`history=true` also honours targets on deactivated nodes."""
    return await content_service.get_content(
        content_type, content_id, actor, store, include_inactive=history
    )


@router.put("/{content_type}/{content_id}", response_model=ContentPublic)
async def update_content(
    content_type: ContentType,
    content_id: str,
    content_update: ContentUpdate,
    actor: Actor = Depends(require_admin),
):
    return await content_service.update_content(content_type, content_id, content_update, actor)


@router.delete("/{content_type}/{content_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_content(
    content_type: ContentType,
    content_id: str,
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    await content_service.delete_content(content_type, content_id, actor, store)
    return
