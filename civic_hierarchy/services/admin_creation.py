# civic_hierarchy/services/admin_creation.py
"""
Validation of administrator (and member) creation.

Checks run in this order:
  1. the requested level must rank strictly below the creator's level;
  2. the requested node must exist and be active;
  3. expatriate levels are only created by ADMIN, GENERAL_SECRETARIAT or the
     matching EXPATRIATE_GENERAL, and scoped creators never bind across
     hierarchy kinds;
  4. the node must lie inside the creator's jurisdiction;
  5. the node must sit at the level the requested admin level manages;
  6. public signup (no creator) binds a member to the deepest available node.
"""

from typing import Optional

from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.binding import (
    ExpatriateBinding,
    GeographicBinding,
    SectorBinding,
)
from civic_hierarchy.models.hierarchy import HierarchyKind
from civic_hierarchy.models.user import (
    AdminLevel,
    EXPATRIATE_LEVELS,
    LEVEL_NODE,
    UNCONSTRAINED_LEVELS,
    UserRole,
    level_rank,
)
from civic_hierarchy.services.decisions import Decision, DenialReason, allow, deny
from civic_hierarchy.services.hierarchy_store import HierarchyStore, NodeRecord
from civic_hierarchy.services.jurisdiction import is_in_jurisdiction


def derive_role(level: AdminLevel) -> UserRole:
    return UserRole.USER if level == AdminLevel.USER else UserRole.ADMIN


def build_binding(node: NodeRecord, store: HierarchyStore):
    lineage = store.lineage(node.id)
    if node.kind == HierarchyKind.GEOGRAPHIC:
        return GeographicBinding(node_id=node.id, level=node.level, lineage=lineage)
    if node.kind == HierarchyKind.EXPATRIATE:
        return ExpatriateBinding(node_id=node.id, lineage=lineage)
    return SectorBinding(
        node_id=node.id,
        level=node.level,
        sector_type=node.sector_type,
        lineage=lineage,
    )


def refresh_lineages(bindings, store: HierarchyStore, node_ids) -> list:
    """Bindings with the lineage recomputed for those pointing into `node_ids`."""
    node_ids = set(node_ids)
    return [
        binding.model_copy(update={"lineage": store.lineage(binding.node_id)})
        if binding.node_id in node_ids
        else binding
        for binding in bindings
    ]


def _creator_kind(creator: Actor) -> Optional[HierarchyKind]:
    if creator.admin_level == AdminLevel.EXPATRIATE_GENERAL:
        return HierarchyKind.EXPATRIATE
    binding = creator.active_binding
    return binding.kind if binding is not None else None


def _granted(level: AdminLevel, binding=None, kind: Optional[HierarchyKind] = None) -> Decision:
    return allow(
        admin_level=level,
        role=derive_role(level),
        binding=binding,
        active_hierarchy=kind or HierarchyKind.GEOGRAPHIC,
    )


def can_create_admin(
    creator: Optional[Actor],
    requested_level: AdminLevel,
    requested_node_id: Optional[str],
    store: HierarchyStore,
) -> Decision:
    """
    Decide whether `creator` may create a user at `requested_level` bound to
    `requested_node_id`. A `creator` of None is public self-signup.

    The allowed decision carries `admin_level`, `role`, `binding` (None for
    unscoped levels) and `active_hierarchy` for the new user.
    """
    requested_level = AdminLevel(requested_level)
    actor_id = creator.id if creator is not None else None

    if creator is None:
        if requested_level != AdminLevel.USER:
            return deny(
                DenialReason.INSUFFICIENT_LEVEL,
                "Public signup can only create members.",
                node_id=requested_node_id,
            )
    elif level_rank(requested_level) >= level_rank(creator.admin_level):
        return deny(
            DenialReason.INSUFFICIENT_LEVEL,
            f"A {creator.admin_level.value} cannot create a {requested_level.value}.",
            actor_id=actor_id,
            node_id=requested_node_id,
        )

    if requested_level in UNCONSTRAINED_LEVELS:
        if requested_node_id is not None:
            return deny(
                DenialReason.LEVEL_NODE_MISMATCH,
                f"A {requested_level.value} is not bound to a hierarchy node.",
                actor_id=actor_id,
                node_id=requested_node_id,
            )
        return _granted(requested_level)

    if requested_level == AdminLevel.EXPATRIATE_GENERAL and requested_node_id is None:
        # rank already restricts this to ADMIN and GENERAL_SECRETARIAT
        return _granted(requested_level, kind=HierarchyKind.EXPATRIATE)

    node = store.get_active(requested_node_id)
    if node is None:
        return deny(
            DenialReason.NODE_NOT_FOUND,
            "Requested node does not exist or is inactive.",
            actor_id=actor_id,
            node_id=requested_node_id,
        )

    if creator is not None and not creator.is_unconstrained:
        if requested_level in EXPATRIATE_LEVELS:
            if creator.admin_level != AdminLevel.EXPATRIATE_GENERAL:
                return deny(
                    DenialReason.HIERARCHY_KIND_MISMATCH,
                    "Only an expatriate general admin can create expatriate admins.",
                    actor_id=actor_id,
                    node_id=node.id,
                )
            region = creator.binding_for(HierarchyKind.EXPATRIATE)
            if region is not None and region.node_id != node.id:
                return deny(
                    DenialReason.HIERARCHY_KIND_MISMATCH,
                    "Expatriate region does not match your own region.",
                    actor_id=actor_id,
                    node_id=node.id,
                )
        elif _creator_kind(creator) != node.kind:
            return deny(
                DenialReason.HIERARCHY_KIND_MISMATCH,
                f"You cannot bind users in the {node.kind.value} hierarchy.",
                actor_id=actor_id,
                node_id=node.id,
            )

        if not is_in_jurisdiction(creator, node.id, store):
            return deny(
                DenialReason.OUT_OF_JURISDICTION,
                "Requested node is outside your jurisdiction.",
                actor_id=actor_id,
                node_id=node.id,
            )

    expected_level = LEVEL_NODE.get(requested_level)
    if expected_level is not None and node.level != expected_level:
        return deny(
            DenialReason.LEVEL_NODE_MISMATCH,
            f"A {requested_level.value} must be bound to a {expected_level.value} node.",
            actor_id=actor_id,
            node_id=node.id,
        )

    if creator is None and not store.is_leaf(node.id):
        return deny(
            DenialReason.MUST_BIND_DEEPEST_LEVEL,
            "Signup must select the deepest level of the chosen branch.",
            node_id=node.id,
        )

    return _granted(requested_level, binding=build_binding(node, store), kind=node.kind)


def can_self_signup(requested_node_id: Optional[str], store: HierarchyStore) -> Decision:
    return can_create_admin(None, AdminLevel.USER, requested_node_id, store)


def can_reassign_binding(
    actor: Actor,
    user_level: AdminLevel,
    current_node_id: Optional[str],
    new_node_id: Optional[str],
    store: HierarchyStore,
) -> Decision:
    """Moving an existing user: the actor must control both the old and the new node."""
    if current_node_id is not None and not is_in_jurisdiction(actor, current_node_id, store):
        return deny(
            DenialReason.OUT_OF_JURISDICTION,
            "User is currently bound outside your jurisdiction.",
            actor_id=actor.id,
            node_id=current_node_id,
        )
    return can_create_admin(actor, user_level, new_node_id, store)
