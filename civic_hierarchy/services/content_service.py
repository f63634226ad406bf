# civic_hierarchy/services/content_service.py
import logging
from datetime import datetime
from typing import List, Optional

from beanie import PydanticObjectId
from bson import ObjectId
from fastapi import HTTPException, status

from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.content import Content, ContentType
from civic_hierarchy.models.user import AdminLevel
from civic_hierarchy.schemas.content import ContentCreate, ContentUpdate
from civic_hierarchy.services.db import all_of, transaction
from civic_hierarchy.services.decisions import DenialReason, deny
from civic_hierarchy.services.hierarchy_service import HierarchyService
from civic_hierarchy.services.hierarchy_store import HierarchyStore
from civic_hierarchy.services.http_errors import raise_for_decision
from civic_hierarchy.services.visibility import (
    build_management_predicate,
    build_visibility_predicate,
    can_manage_content,
    is_visible,
    resolve_content_targets,
)

logger = logging.getLogger(__name__)

# Members (USER level) may only submit these
MEMBER_CONTENT_TYPES = {ContentType.REPORT}


class ContentService:
    def __init__(self):
        self.hierarchy_service = HierarchyService()

    async def create_content(
        self, content_type: ContentType, content_create: ContentCreate, creator: Actor
    ) -> Content:
        """
        Resolves the target and inserts the item in one transaction, so the
        target node is still ACTIVE when the item lands. The target is touched
        so a concurrent deactivation of it conflicts with this insert.
        """
        if creator.admin_level == AdminLevel.USER and content_type not in MEMBER_CONTENT_TYPES:
            raise_for_decision(
                deny(
                    DenialReason.INSUFFICIENT_LEVEL,
                    f"Only administrators can publish a {content_type.value}.",
                    actor_id=creator.id,
                )
            )

        async with transaction() as session:
            store = await self.hierarchy_service.load_store(session)
            decision = raise_for_decision(
                resolve_content_targets(creator, content_create.target_node_ids, store)
            )
            content = Content(
                content_type=content_type,
                title=content_create.title,
                body=content_create.body,
                published=content_create.published,
                targets=decision.payload["targets"],
                created_by=creator.id,
                metadata=content_create.metadata,
            )
            await content.insert(session=session)
            for target in content.targets:
                await self.hierarchy_service.touch(target.node_id, session)
        logger.info(
            f"{content_type.value} {content.id} created by {creator.id} targeting "
            f"{[target.node_id for target in content.targets] or 'everyone'}"
        )
        return content

    async def list_visible(
        self,
        content_type: ContentType,
        viewer: Actor,
        store: HierarchyStore,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Content]:
        query = all_of(
            {"content_type": content_type.value}, build_visibility_predicate(viewer, store)
        )
        return (
            await Content.find(query)
            .sort("-created_at")
            .skip(skip)
            .limit(limit)
            .to_list()
        )

    async def list_manageable(
        self,
        content_type: ContentType,
        actor: Actor,
        store: HierarchyStore,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Content]:
        query = all_of(
            {"content_type": content_type.value}, build_management_predicate(actor, store)
        )
        return (
            await Content.find(query)
            .sort("-created_at")
            .skip(skip)
            .limit(limit)
            .to_list()
        )

    async def _get(self, content_type: ContentType, content_id: str) -> Content:
        content = None
        if ObjectId.is_valid(content_id):
            content = await Content.get(PydanticObjectId(content_id))
        if content is None or content.content_type != content_type:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{content_type.value} not found.",
            )
        return content

    async def get_content(
        self,
        content_type: ContentType,
        content_id: str,
        viewer: Actor,
        store: HierarchyStore,
        include_inactive: bool = False,
    ) -> Content:
        """Readable when visible to the viewer or manageable by them; otherwise 404."""
        content = await self._get(content_type, content_id)
        if is_visible(viewer, content, store, include_inactive=include_inactive):
            return content
        if viewer.is_admin and can_manage_content(viewer, content, store).allowed:
            return content
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{content_type.value} not found.",
        )

    async def update_content(
        self,
        content_type: ContentType,
        content_id: str,
        content_update: ContentUpdate,
        actor: Actor,
    ) -> Content:
        async with transaction() as session:
            store = await self.hierarchy_service.load_store(session)
            content = await self._get(content_type, content_id)
            raise_for_decision(can_manage_content(actor, content, store))

            update_data = content_update.model_dump(exclude_unset=True)
            target_node_ids: Optional[List[str]] = update_data.pop("target_node_ids", None)
            if target_node_ids is not None:
                decision = raise_for_decision(
                    resolve_content_targets(actor, target_node_ids, store)
                )
                update_data["targets"] = [
                    target.model_dump(mode="json") for target in decision.payload["targets"]
                ]
                for target in decision.payload["targets"]:
                    await self.hierarchy_service.touch(target.node_id, session)
            update_data = {key: value for key, value in update_data.items() if value is not None}
            update_data["updated_at"] = datetime.utcnow()
            await content.set(update_data, session=session)
        logger.info(f"{content_type.value} {content_id} updated by {actor.id}")
        return content

    async def delete_content(
        self, content_type: ContentType, content_id: str, actor: Actor, store: HierarchyStore
    ) -> None:
        content = await self._get(content_type, content_id)
        raise_for_decision(can_manage_content(actor, content, store))
        await content.delete()
        logger.info(f"{content_type.value} {content_id} deleted by {actor.id}")
