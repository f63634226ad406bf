# civic_hierarchy/routes/hierarchy.py
from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from civic_hierarchy.configs import configs
from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.hierarchy import (
    HierarchyKind,
    HierarchyNode,
    NodeLevel,
    NodeStatus,
    SectorType,
)
from civic_hierarchy.schemas.hierarchy import (
    AdminAssignment,
    HierarchyNodeCreate,
    HierarchyNodePublic,
    HierarchyNodeUpdate,
    JurisdictionScopePublic,
)
from civic_hierarchy.services.hierarchy_service import HierarchyService
from civic_hierarchy.services.decisions import DenialReason, deny
from civic_hierarchy.services.hierarchy_store import HierarchyStore
from civic_hierarchy.services.http_errors import raise_for_decision
from civic_hierarchy.services.jurisdiction import (
    check_jurisdiction,
    is_in_jurisdiction,
    resolve_jurisdiction,
)
from civic_hierarchy.dependencies.auth import get_current_actor
from civic_hierarchy.dependencies.hierarchy import get_hierarchy_store
from civic_hierarchy.dependencies.permissions import require_admin

router = APIRouter()
hierarchy_service = HierarchyService()

pagination = configs.get("pagination", {})
DEFAULT_LIMIT = pagination.get("default_limit", 100)
MAX_LIMIT = pagination.get("max_limit", 500)


def _require_existing(actor: Actor, node_id: str, store: HierarchyStore) -> None:
    if store.get(node_id) is None:
        raise_for_decision(
            deny(
                DenialReason.NODE_NOT_FOUND,
                "Hierarchy node not found.",
                actor_id=actor.id,
                node_id=node_id,
            )
        )


def _require_viewable(actor: Actor, node_id: str, store: HierarchyStore) -> None:
    """A node is viewable inside the caller's jurisdiction or on their own ancestor chain."""
    _require_existing(actor, node_id, store)
    if is_in_jurisdiction(actor, node_id, store):
        return
    binding = actor.active_binding
    if binding is not None and store.is_descendant(binding.node_id, node_id):
        return
    raise_for_decision(
        deny(
            DenialReason.OUT_OF_JURISDICTION,
            "Not authorized to view this node.",
            actor_id=actor.id,
            node_id=node_id,
        )
    )


# --- Hierarchy Node Endpoints ---


@router.post("/", response_model=HierarchyNodePublic, status_code=status.HTTP_201_CREATED)
async def create_node(
    node_create: HierarchyNodeCreate, actor: Actor = Depends(require_admin)
):
    """
    Creates a node. Roots are reserved to the general administration; scoped
    administrators create nodes below their own node.
    """
    return await hierarchy_service.create_node(node_create, actor)


@router.get("/", response_model=List[HierarchyNodePublic])
async def get_nodes(
    kind: Optional[HierarchyKind] = None,
    level: Optional[NodeLevel] = None,
    sector_type: Optional[SectorType] = None,
    parent_id: Optional[str] = None,
    include_inactive: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    actor: Actor = Depends(get_current_actor),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """
    Nodes within the caller's jurisdiction. The general administration sees
    every node; everyone else sees their bound node and its descendants.
    """
    scope = resolve_jurisdiction(actor, store, kind)
    return await hierarchy_service.list_nodes(
        scope,
        kind=kind,
        level=level,
        sector_type=sector_type,
        parent_id=parent_id,
        include_inactive=include_inactive,
        skip=skip,
        limit=limit,
    )


@router.get("/browse", response_model=List[HierarchyNodePublic])
async def browse_nodes(kind: HierarchyKind, parent_id: Optional[str] = None):
    """
    Public, for the signup form: active nodes of `kind` directly under
    `parent_id` (roots when omitted).
    """
    return (
        await HierarchyNode.find(
            {
                "kind": kind.value,
                "parent_id": parent_id,
                "status": NodeStatus.ACTIVE.value,
            }
        )
        .sort("+name")
        .to_list()
    )


@router.get("/scope", response_model=JurisdictionScopePublic)
async def get_my_scope(
    kind: Optional[HierarchyKind] = None,
    actor: Actor = Depends(get_current_actor),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """The caller's jurisdiction: unconstrained, or a closed set of node ids."""
    scope = resolve_jurisdiction(actor, store, kind)
    return JurisdictionScopePublic(
        unconstrained=scope.unconstrained,
        kind=scope.kind,
        node_ids=sorted(scope.node_ids),
    )


@router.get("/{node_id}", response_model=HierarchyNodePublic)
async def get_node_by_id(
    node_id: str,
    actor: Actor = Depends(get_current_actor),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """Retrieves a single node by ID."""
    _require_viewable(actor, node_id, store)
    return await hierarchy_service.get_node(node_id)


@router.get("/{node_id}/children", response_model=List[HierarchyNodePublic])
async def get_node_children(
    node_id: str,
    include_inactive: bool = False,
    actor: Actor = Depends(get_current_actor),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    _require_existing(actor, node_id, store)
    raise_for_decision(check_jurisdiction(actor, node_id, store))
    return await hierarchy_service.get_children(node_id, include_inactive=include_inactive)


@router.get("/{node_id}/ancestors", response_model=List[HierarchyNodePublic])
async def get_node_ancestors(
    node_id: str,
    actor: Actor = Depends(get_current_actor),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """Ancestors ordered from the root down to the immediate parent."""
    _require_viewable(actor, node_id, store)
    return await hierarchy_service.get_ancestors(node_id, store)


@router.put("/{node_id}", response_model=HierarchyNodePublic)
async def update_node(
    node_id: str,
    node_update: HierarchyNodeUpdate,
    actor: Actor = Depends(require_admin),
):
    """
    Updates a node. Send the `updated_at` you last read to guard against
    overwriting a concurrent edit.
    """
    return await hierarchy_service.update_node(node_id, node_update, actor)


@router.post("/{node_id}/deactivate", response_model=HierarchyNodePublic)
async def deactivate_node(node_id: str, actor: Actor = Depends(require_admin)):
    """Refused while the node has active children or bound users."""
    return await hierarchy_service.deactivate_node(node_id, actor)


@router.post("/{node_id}/reactivate", response_model=HierarchyNodePublic)
async def reactivate_node(node_id: str, actor: Actor = Depends(require_admin)):
    return await hierarchy_service.reactivate_node(node_id, actor)


@router.delete("/{node_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_node(node_id: str, actor: Actor = Depends(require_admin)):
    """Nodes are never hard-deleted; this deactivates the node."""
    await hierarchy_service.deactivate_node(node_id, actor)
    return


@router.put("/{node_id}/admin", response_model=HierarchyNodePublic)
async def assign_node_admin(
    node_id: str,
    assignment: AdminAssignment,
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """Sets (or clears, with null) the node's administrator."""
    return await hierarchy_service.assign_admin(node_id, assignment.admin_id, actor, store)
