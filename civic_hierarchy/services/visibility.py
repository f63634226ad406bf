# civic_hierarchy/services/visibility.py
"""
Content visibility and content management scoping.

A published item with no targets is visible to everyone. A target at node N
makes the item visible to viewers bound, in N's hierarchy kind, at N or below
it. When an item carries several targets in the viewer's kind only the most
specific (deepest) ones govern, so a stale shallower target never widens
visibility. Targets on deactivated nodes are ignored unless history is asked
for.

`is_visible` and `build_visibility_predicate` describe the same rule, one as a
point check and one as a MongoDB filter; the same holds for
`can_manage_content` and `build_management_predicate`.
"""

from collections import defaultdict
from typing import Iterable, List, Optional, Sequence

from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.content import ContentTarget
from civic_hierarchy.models.hierarchy import (
    HierarchyKind,
    LEVEL_DEPTH,
    NodeLevel,
    deeper_levels,
)
from civic_hierarchy.models.user import AdminLevel
from civic_hierarchy.services.decisions import Decision, DenialReason, allow, deny
from civic_hierarchy.services.hierarchy_store import HierarchyStore
from civic_hierarchy.services.jurisdiction import (
    is_in_jurisdiction,
    resolve_jurisdiction,
)

UNTARGETED_CLAUSES = [{"targets": {"$exists": False}}, {"targets": {"$size": 0}}]
MATCH_NOTHING = {"_id": {"$in": []}}


def governing_targets(
    targets: Iterable[ContentTarget], kind: Optional[HierarchyKind]
) -> List[ContentTarget]:
    """Deepest targets of `kind`; shallower ones in the same kind are ignored."""
    in_kind = [target for target in targets if target.kind == kind]
    if not in_kind:
        return []
    deepest = max(LEVEL_DEPTH[target.level] for target in in_kind)
    return [target for target in in_kind if LEVEL_DEPTH[target.level] == deepest]


def _most_specific_clause(kind: HierarchyKind, level: NodeLevel, node_ids: Sequence[str]) -> dict:
    matched = {
        "targets": {
            "$elemMatch": {
                "kind": kind.value,
                "level": level.value,
                "node_id": {"$in": list(node_ids)},
            }
        }
    }
    deeper = deeper_levels(level)
    if not deeper:
        return matched
    not_overridden = {
        "targets": {
            "$not": {
                "$elemMatch": {
                    "kind": kind.value,
                    "level": {"$in": [lvl.value for lvl in deeper]},
                }
            }
        }
    }
    return {"$and": [matched, not_overridden]}


def is_visible(
    viewer: Actor, content, store: HierarchyStore, include_inactive: bool = False
) -> bool:
    """Read access of `viewer` to a content item."""
    if not content.published:
        return False
    if not content.targets:
        return True
    if viewer.is_unconstrained:
        return True

    binding = viewer.active_binding
    if binding is None:
        return False

    for target in governing_targets(content.targets, binding.kind):
        node = store.get(target.node_id)
        if node is None:
            continue
        if not node.is_active and not include_inactive:
            continue
        if store.is_descendant(binding.node_id, target.node_id):
            return True
    return False


def build_visibility_predicate(viewer: Actor, store: HierarchyStore) -> dict:
    """MongoDB filter over `contents` selecting what `viewer` may read."""
    if viewer.is_unconstrained:
        return {"published": True}

    clauses = list(UNTARGETED_CLAUSES)
    binding = viewer.active_binding
    if binding is not None:
        for node in store.chain(binding.node_id):
            if node.is_active:
                clauses.append(_most_specific_clause(binding.kind, node.level, [node.id]))
    return {"published": True, "$or": clauses}


def validate_targeting(targets: Sequence[ContentTarget], actor_id: Optional[str] = None) -> Decision:
    """At most one target per item; several targets are rejected at write time."""
    distinct = {(target.kind, target.node_id) for target in targets}
    if len(distinct) <= 1:
        return allow()
    kinds = {kind for kind, _ in distinct}
    if len(kinds) > 1:
        message = "Content cannot target more than one hierarchy kind."
    else:
        message = "Content cannot target several nodes of the same hierarchy."
    return deny(DenialReason.AMBIGUOUS_TARGET, message, actor_id=actor_id)


def resolve_content_target(
    creator: Actor, requested_node_id: Optional[str], store: HierarchyStore
) -> Decision:
    """
    Target for a new item. Defaults to the creator's own bound node; an explicit
    node must be active and inside the creator's jurisdiction. The allowed
    decision carries `targets`.
    """
    if requested_node_id is None:
        if creator.is_unconstrained:
            return allow(targets=[])
        binding = creator.active_binding
        if binding is None:
            return deny(
                DenialReason.OUT_OF_JURISDICTION,
                "A target node is required to publish outside a bound hierarchy.",
                actor_id=creator.id,
            )
        requested_node_id = binding.node_id

    node = store.get_active(requested_node_id)
    if node is None:
        return deny(
            DenialReason.NODE_NOT_FOUND,
            "Target node does not exist or is inactive.",
            actor_id=creator.id,
            node_id=requested_node_id,
        )
    if not is_in_jurisdiction(creator, node.id, store):
        return deny(
            DenialReason.OUT_OF_JURISDICTION,
            "Target node is outside your jurisdiction.",
            actor_id=creator.id,
            node_id=node.id,
        )
    return allow(targets=[ContentTarget(kind=node.kind, level=node.level, node_id=node.id)])


def resolve_content_targets(
    creator: Actor, requested_node_ids: Sequence[str], store: HierarchyStore
) -> Decision:
    if not requested_node_ids:
        return resolve_content_target(creator, None, store)

    targets = []
    for node_id in dict.fromkeys(requested_node_ids):
        decision = resolve_content_target(creator, node_id, store)
        if not decision.allowed:
            return decision
        targets.extend(decision.payload["targets"])

    decision = validate_targeting(targets, actor_id=creator.id)
    if not decision.allowed:
        return decision
    return allow(targets=targets)


def can_manage_content(actor: Actor, content, store: HierarchyStore) -> Decision:
    """Edit/delete rights: the item's governing target must be in jurisdiction."""
    if actor.is_unconstrained:
        return allow()
    if actor.admin_level == AdminLevel.USER:
        return deny(
            DenialReason.INSUFFICIENT_LEVEL,
            "Only administrators can manage content.",
            actor_id=actor.id,
        )

    scope = resolve_jurisdiction(actor, store)
    governing = governing_targets(content.targets, scope.kind)
    if any(scope.contains(target.node_id) for target in governing):
        return allow()
    return deny(
        DenialReason.OUT_OF_JURISDICTION,
        "Content is not targeted within your jurisdiction.",
        actor_id=actor.id,
        node_id=governing[0].node_id if governing else None,
    )


def build_management_predicate(actor: Actor, store: HierarchyStore) -> dict:
    """MongoDB filter over `contents` selecting what `actor` may manage."""
    if actor.is_unconstrained:
        return {}
    if actor.admin_level == AdminLevel.USER:
        return MATCH_NOTHING

    scope = resolve_jurisdiction(actor, store)
    if scope.is_empty:
        return MATCH_NOTHING

    by_level = defaultdict(list)
    for node_id in sorted(scope.node_ids):
        node = store.get(node_id)
        if node is not None:
            by_level[node.level].append(node.id)
    return {
        "$or": [
            _most_specific_clause(scope.kind, level, node_ids)
            for level, node_ids in by_level.items()
        ]
    }
