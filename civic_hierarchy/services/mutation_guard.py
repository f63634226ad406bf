# civic_hierarchy/services/mutation_guard.py
"""
Structural checks for writes to the hierarchy.

Nodes move ACTIVE -> INACTIVE and back; they are never hard-deleted while
descendants or bound users exist. Callers run these checks and the write they
guard inside one transaction.
"""

from typing import Optional

from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.hierarchy import (
    HierarchyKind,
    NodeLevel,
    SectorType,
    parent_level_of,
)
from civic_hierarchy.models.user import AdminLevel
from civic_hierarchy.services.decisions import Decision, DenialReason, allow, deny
from civic_hierarchy.services.hierarchy_store import HierarchyStore
from civic_hierarchy.services.jurisdiction import is_in_jurisdiction


def can_create_child(
    store: HierarchyStore,
    kind: HierarchyKind,
    level: NodeLevel,
    parent_id: Optional[str] = None,
    sector_type: Optional[SectorType] = None,
    anchor_id: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> Decision:
    if kind == HierarchyKind.EXPATRIATE or level == NodeLevel.EXPATRIATE_REGION:
        if kind != HierarchyKind.EXPATRIATE or level != NodeLevel.EXPATRIATE_REGION:
            return deny(
                DenialReason.LEVEL_NODE_MISMATCH,
                "The expatriate hierarchy consists of expatriate regions only.",
                actor_id=actor_id,
                node_id=parent_id,
            )
        if parent_id is not None:
            return deny(
                DenialReason.INVALID_PARENT,
                "Expatriate regions have no parent.",
                actor_id=actor_id,
                node_id=parent_id,
            )
        return allow()

    if (kind == HierarchyKind.SECTOR) != (sector_type is not None):
        return deny(
            DenialReason.SECTOR_TYPE_MISMATCH,
            "Sector nodes, and only sector nodes, carry a sector type.",
            actor_id=actor_id,
            node_id=parent_id,
        )

    if anchor_id is not None:
        anchor = store.get_active(anchor_id)
        if kind != HierarchyKind.SECTOR or anchor is None or anchor.kind == HierarchyKind.SECTOR:
            return deny(
                DenialReason.INVALID_PARENT,
                "Only sector nodes are anchored, and only to active geographic or expatriate nodes.",
                actor_id=actor_id,
                node_id=anchor_id,
            )

    expected_parent_level = parent_level_of(level)
    if expected_parent_level is None:
        if parent_id is not None:
            return deny(
                DenialReason.INVALID_PARENT,
                f"A {level.value} node is a root and takes no parent.",
                actor_id=actor_id,
                node_id=parent_id,
            )
        return allow()

    if parent_id is None:
        if kind == HierarchyKind.SECTOR:
            # sector subtrees may start at any level
            return allow()
        return deny(
            DenialReason.INVALID_PARENT,
            f"A {level.value} node requires a {expected_parent_level.value} parent.",
            actor_id=actor_id,
        )

    parent = store.get_active(parent_id)
    if parent is None:
        return deny(
            DenialReason.NODE_NOT_FOUND,
            "Parent node does not exist or is inactive.",
            actor_id=actor_id,
            node_id=parent_id,
        )
    if parent.kind != kind:
        return deny(
            DenialReason.HIERARCHY_KIND_MISMATCH,
            "Parent belongs to a different hierarchy kind.",
            actor_id=actor_id,
            node_id=parent_id,
        )
    if parent.level != expected_parent_level:
        return deny(
            DenialReason.INVALID_PARENT,
            f"A {level.value} node requires a {expected_parent_level.value} parent.",
            actor_id=actor_id,
            node_id=parent_id,
        )
    if kind == HierarchyKind.SECTOR and parent.sector_type != sector_type:
        return deny(
            DenialReason.SECTOR_TYPE_MISMATCH,
            "Sector type must match the parent's sector type.",
            actor_id=actor_id,
            node_id=parent_id,
        )
    return allow()


def can_reparent(
    store: HierarchyStore,
    node_id: str,
    new_parent_id: Optional[str],
    actor_id: Optional[str] = None,
) -> Decision:
    node = store.get(node_id)
    if node is None:
        return deny(
            DenialReason.NODE_NOT_FOUND,
            "Node does not exist.",
            actor_id=actor_id,
            node_id=node_id,
        )
    if new_parent_id == node.parent_id:
        return allow()

    expected_parent_level = parent_level_of(node.level)
    if new_parent_id is None:
        if expected_parent_level is None or node.kind == HierarchyKind.SECTOR:
            return allow()
        return deny(
            DenialReason.INVALID_PARENT,
            f"A {node.level.value} node requires a parent.",
            actor_id=actor_id,
            node_id=node_id,
        )

    parent = store.get_active(new_parent_id)
    if parent is None:
        return deny(
            DenialReason.NODE_NOT_FOUND,
            "New parent does not exist or is inactive.",
            actor_id=actor_id,
            node_id=new_parent_id,
        )
    if parent.kind != node.kind:
        return deny(
            DenialReason.HIERARCHY_KIND_MISMATCH,
            "Nodes cannot be moved across hierarchy kinds.",
            actor_id=actor_id,
            node_id=new_parent_id,
        )
    if store.is_descendant(parent.id, node.id):
        return deny(
            DenialReason.CYCLE_DETECTED,
            "A node cannot be moved under itself or its descendants.",
            actor_id=actor_id,
            node_id=new_parent_id,
        )
    if parent.level != expected_parent_level:
        return deny(
            DenialReason.INVALID_PARENT,
            f"A {node.level.value} node requires a parent at the level directly above it.",
            actor_id=actor_id,
            node_id=new_parent_id,
        )
    if node.kind == HierarchyKind.SECTOR and parent.sector_type != node.sector_type:
        return deny(
            DenialReason.SECTOR_TYPE_MISMATCH,
            "Sector type must match the new parent's sector type.",
            actor_id=actor_id,
            node_id=new_parent_id,
        )
    return allow()


def can_deactivate(
    store: HierarchyStore,
    node_id: str,
    bound_user_count: int,
    actor_id: Optional[str] = None,
) -> Decision:
    node = store.get_active(node_id)
    if node is None:
        return deny(
            DenialReason.NODE_NOT_FOUND,
            "Node does not exist or is already inactive.",
            actor_id=actor_id,
            node_id=node_id,
        )
    if store.children(node_id, active_only=True):
        return deny(
            DenialReason.HAS_ACTIVE_CHILDREN,
            "Deactivate the node's active children first.",
            actor_id=actor_id,
            node_id=node_id,
        )
    if bound_user_count > 0:
        return deny(
            DenialReason.HAS_BOUND_USERS,
            f"{bound_user_count} user(s) are still bound to this node.",
            actor_id=actor_id,
            node_id=node_id,
        )
    return allow()


def can_reactivate(
    store: HierarchyStore, node_id: str, actor_id: Optional[str] = None
) -> Decision:
    node = store.get(node_id)
    if node is None:
        return deny(
            DenialReason.NODE_NOT_FOUND,
            "Node does not exist.",
            actor_id=actor_id,
            node_id=node_id,
        )
    if node.parent_id and store.get_active(node.parent_id) is None:
        return deny(
            DenialReason.INVALID_PARENT,
            "Reactivate the parent node first.",
            actor_id=actor_id,
            node_id=node_id,
        )
    return allow()


def can_manage_structure(
    actor: Actor, node_id: Optional[str], store: HierarchyStore, own_node: bool = False
) -> Decision:
    """
    Authority to write at `node_id`. ADMIN and GENERAL_SECRETARIAT manage the
    whole forest; a scoped administrator manages only nodes strictly below its
    own bound node, or the bound node itself when `own_node` is set (creating
    children under it, assigning its administrator). Roots (`node_id` None)
    are reserved to unconstrained administrators.
    """
    if actor.is_unconstrained:
        return allow()
    if actor.admin_level == AdminLevel.USER:
        return deny(
            DenialReason.INSUFFICIENT_LEVEL,
            "Only administrators can change the hierarchy.",
            actor_id=actor.id,
            node_id=node_id,
        )
    if node_id is None or not is_in_jurisdiction(actor, node_id, store):
        return deny(
            DenialReason.OUT_OF_JURISDICTION,
            "Node is outside your jurisdiction.",
            actor_id=actor.id,
            node_id=node_id,
        )
    binding = actor.active_binding
    if not own_node and binding is not None and binding.node_id == node_id:
        return deny(
            DenialReason.INSUFFICIENT_LEVEL,
            "You cannot change the node you are bound to.",
            actor_id=actor.id,
            node_id=node_id,
        )
    return allow()
