# civic_hierarchy/services/hierarchy_service.py
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from beanie import PydanticObjectId
from bson import ObjectId
from fastapi import HTTPException, status
from pymongo.errors import DuplicateKeyError

from civic_hierarchy.configs import configs
from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.hierarchy import (
    HierarchyKind,
    HierarchyNode,
    NodeLevel,
    NodeStatus,
    SectorType,
)
from civic_hierarchy.models.user import User
from civic_hierarchy.schemas.hierarchy import HierarchyNodeCreate, HierarchyNodeUpdate
from civic_hierarchy.services.admin_creation import refresh_lineages
from civic_hierarchy.services.db import transaction
from civic_hierarchy.services.hierarchy_store import HierarchyStore, NodeRecord
from civic_hierarchy.services.http_errors import raise_for_decision
from civic_hierarchy.services.jurisdiction import JurisdictionScope
from civic_hierarchy.services.mutation_guard import (
    can_create_child,
    can_deactivate,
    can_manage_structure,
    can_reactivate,
    can_reparent,
)
from civic_hierarchy.services.sector_provisioning import needs_sectors, plan_sector_nodes

logger = logging.getLogger(__name__)

hierarchy_configs = configs.get("hierarchy", {})


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def is_stale(current: datetime, seen: datetime, tolerance: timedelta) -> bool:
    """True when the copy read at `seen` no longer matches the stored `current`."""
    return abs(_naive_utc(current) - _naive_utc(seen)) > tolerance


class HierarchyService:
    def __init__(self):
        self.auto_provision_sectors = hierarchy_configs.get("auto_provision_sectors", True)
        self.lock_tolerance = timedelta(
            seconds=hierarchy_configs.get("optimistic_lock_tolerance_seconds", 1)
        )

    async def load_store(self, session=None) -> HierarchyStore:
        """Snapshot of the whole forest for one request or transaction."""
        nodes = await HierarchyNode.find_all(session=session).to_list()
        return HierarchyStore.from_documents(nodes)

    async def get_node(self, node_id: str, session=None) -> Optional[HierarchyNode]:
        """Fetches a single node by its ID."""
        if not node_id or not ObjectId.is_valid(node_id):
            return None
        return await HierarchyNode.get(PydanticObjectId(node_id), session=session)

    async def list_nodes(
        self,
        scope: JurisdictionScope,
        kind: Optional[HierarchyKind] = None,
        level: Optional[NodeLevel] = None,
        sector_type: Optional[SectorType] = None,
        parent_id: Optional[str] = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[HierarchyNode]:
        """Nodes inside `scope`, narrowed by the optional filters."""
        query = scope.node_query()
        if kind is not None:
            query["kind"] = kind.value
        if level is not None:
            query["level"] = level.value
        if sector_type is not None:
            query["sector_type"] = sector_type.value
        if parent_id is not None:
            query["parent_id"] = parent_id
        if not include_inactive:
            query["status"] = NodeStatus.ACTIVE.value
        return (
            await HierarchyNode.find(query)
            .sort("+level", "+name")
            .skip(skip)
            .limit(limit)
            .to_list()
        )

    async def get_children(
        self, parent_id: str, include_inactive: bool = False
    ) -> List[HierarchyNode]:
        """Fetches immediate children of a given parent ID."""
        query = {"parent_id": parent_id}
        if not include_inactive:
            query["status"] = NodeStatus.ACTIVE.value
        return await HierarchyNode.find(query).sort("+name").to_list()

    async def get_ancestors(self, node_id: str, store: HierarchyStore) -> List[HierarchyNode]:
        """Ancestors from the root down to the immediate parent."""
        ancestor_ids = [node.id for node in store.ancestors(node_id)]
        if not ancestor_ids:
            return []
        found = await HierarchyNode.find(
            {"_id": {"$in": [PydanticObjectId(node_id) for node_id in ancestor_ids]}}
        ).to_list()
        by_id = {str(node.id): node for node in found}
        return [by_id[node_id] for node_id in ancestor_ids if node_id in by_id]

    async def count_bound_users(self, node_id: str, session=None) -> int:
        # soft-deleted users still hold their binding and still count
        return await User.find({"bindings.node_id": node_id}, session=session).count()

    async def touch(self, node_id: Optional[str], session=None) -> None:
        """Bumps `structure_version` so concurrent structural writes on the node conflict."""
        if not node_id or not ObjectId.is_valid(node_id):
            return
        await HierarchyNode.find_one(
            {"_id": PydanticObjectId(node_id)}, session=session
        ).update({"$inc": {"structure_version": 1}}, session=session)

    def _require_node(self, store: HierarchyStore, node_id: str) -> NodeRecord:
        node = store.get(node_id)
        if node is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Hierarchy node not found.",
            )
        return node

    async def _insert(self, node: HierarchyNode, session=None) -> HierarchyNode:
        try:
            await node.insert(session=session)
        except DuplicateKeyError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A {node.level.value} node with code '{node.code}' already exists.",
            )
        return node

    async def create_node(self, node_create: HierarchyNodeCreate, actor: Actor) -> HierarchyNode:
        """
        Creates a node after the structural checks, in one transaction with the
        parent's existence/status check. Geographic nodes below NATIONAL and
        expatriate regions get their four sector nodes provisioned alongside.
        """
        async with transaction() as session:
            store = await self.load_store(session)
            raise_for_decision(
                can_manage_structure(actor, node_create.parent_id, store, own_node=True)
            )
            raise_for_decision(
                can_create_child(
                    store,
                    kind=node_create.kind,
                    level=node_create.level,
                    parent_id=node_create.parent_id,
                    sector_type=node_create.sector_type,
                    anchor_id=node_create.anchor_id,
                    actor_id=actor.id,
                )
            )

            node = HierarchyNode(**node_create.model_dump())
            await self._insert(node, session)
            await self.touch(node.parent_id, session)

            record = NodeRecord.from_document(node)
            if self.auto_provision_sectors and needs_sectors(record):
                store.add(record)
                await self._provision_sectors(record, store, session)

        logger.info(
            f"Node {node.id} ({node.kind.value}/{node.level.value}) created by {actor.id}"
        )
        return node

    async def _provision_sectors(
        self, node: NodeRecord, store: HierarchyStore, session=None
    ) -> List[HierarchyNode]:
        created = []
        for plan in plan_sector_nodes(node, store):
            sector = HierarchyNode(**plan.model_dump())
            raise_for_decision(
                can_create_child(
                    store,
                    kind=sector.kind,
                    level=sector.level,
                    parent_id=sector.parent_id,
                    sector_type=sector.sector_type,
                    anchor_id=sector.anchor_id,
                )
            )
            await self._insert(sector, session)
            await self.touch(sector.parent_id, session)
            store.add(NodeRecord.from_document(sector))
            created.append(sector)
        logger.info(f"Provisioned {len(created)} sector nodes for node {node.id}")
        return created

    def _check_lock(self, node: HierarchyNode, seen_updated_at: Optional[datetime]) -> None:
        if seen_updated_at is None:
            return
        if is_stale(node.updated_at, seen_updated_at, self.lock_tolerance):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="The node was modified by someone else. Reload it and try again.",
            )

    async def update_node(
        self, node_id: str, node_update: HierarchyNodeUpdate, actor: Actor
    ) -> HierarchyNode:
        """Updates an existing node; reparenting goes through the guard."""
        async with transaction() as session:
            store = await self.load_store(session)
            self._require_node(store, node_id)
            raise_for_decision(can_manage_structure(actor, node_id, store))
            node = await self.get_node(node_id, session)
            self._check_lock(node, node_update.updated_at)

            update_data = node_update.model_dump(exclude_unset=True, exclude={"updated_at"})
            if update_data.get("name", "") is None:
                update_data.pop("name")
            if update_data.get("metadata", {}) is None:
                update_data.pop("metadata")

            reparented = "parent_id" in update_data and update_data["parent_id"] != node.parent_id
            if reparented:
                new_parent_id = update_data["parent_id"]
                raise_for_decision(can_reparent(store, node_id, new_parent_id, actor.id))
                raise_for_decision(
                    can_manage_structure(actor, new_parent_id, store, own_node=True)
                )
                await self.touch(new_parent_id, session)
            else:
                update_data.pop("parent_id", None)

            update_data["updated_at"] = datetime.utcnow()
            try:
                await node.set(update_data, session=session)
            except DuplicateKeyError:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"A {node.level.value} node with code '{update_data.get('code')}' already exists.",
                )

            if reparented:
                store.add(NodeRecord.from_document(node))
                await self._refresh_lineages(store, store.descendant_ids(node_id), session)

        logger.info(f"Node {node_id} updated by {actor.id}: {sorted(update_data)}")
        return node

    async def _refresh_lineages(self, store: HierarchyStore, node_ids, session=None) -> None:
        """Rewrites the stored lineage of every binding into the moved subtree."""
        node_ids = set(node_ids)
        users = await User.find(
            {"bindings.node_id": {"$in": sorted(node_ids)}}, session=session
        ).to_list()
        for user in users:
            bindings = refresh_lineages(user.bindings, store, node_ids)
            await user.set(
                {"bindings": [binding.model_dump(mode="json") for binding in bindings]},
                session=session,
            )
        if users:
            logger.info(f"Refreshed binding lineage for {len(users)} users")

    async def deactivate_node(self, node_id: str, actor: Actor) -> HierarchyNode:
        """
        ACTIVE -> INACTIVE. The child/bound-user checks and the status write run
        in one transaction; the `structure_version` bump makes a concurrent
        child creation or binding abort one of the two.
        """
        async with transaction() as session:
            store = await self.load_store(session)
            self._require_node(store, node_id)
            raise_for_decision(can_manage_structure(actor, node_id, store))
            bound_users = await self.count_bound_users(node_id, session)
            raise_for_decision(can_deactivate(store, node_id, bound_users, actor.id))

            node = await self.get_node(node_id, session)
            await node.set(
                {
                    "status": NodeStatus.INACTIVE,
                    "updated_at": datetime.utcnow(),
                    "structure_version": node.structure_version + 1,
                },
                session=session,
            )
        logger.info(f"Node {node_id} deactivated by {actor.id}")
        return node

    async def reactivate_node(self, node_id: str, actor: Actor) -> HierarchyNode:
        async with transaction() as session:
            store = await self.load_store(session)
            self._require_node(store, node_id)
            raise_for_decision(can_manage_structure(actor, node_id, store))
            raise_for_decision(can_reactivate(store, node_id, actor.id))

            node = await self.get_node(node_id, session)
            await node.set(
                {"status": NodeStatus.ACTIVE, "updated_at": datetime.utcnow()},
                session=session,
            )
        logger.info(f"Node {node_id} reactivated by {actor.id}")
        return node

    async def assign_admin(
        self, node_id: str, admin_id: Optional[str], actor: Actor, store: HierarchyStore
    ) -> HierarchyNode:
        """Sets the node's single administrator pointer; last writer wins."""
        self._require_node(store, node_id)
        raise_for_decision(can_manage_structure(actor, node_id, store, own_node=True))

        if admin_id is not None:
            admin = await User.get(PydanticObjectId(admin_id)) if ObjectId.is_valid(admin_id) else None
            if admin is None or not admin.is_active:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND, detail="User not found."
                )
            node = store.get(node_id)
            binding = admin.binding_for(node.kind)
            if binding is None or binding.node_id != node_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="The administrator must be bound to this node.",
                )

        node = await self.get_node(node_id)
        await node.set({"admin_id": admin_id, "updated_at": datetime.utcnow()})
        logger.info(f"Node {node_id} administrator set to {admin_id} by {actor.id}")
        return node
