# civic_hierarchy/services/jurisdiction.py
"""
Jurisdiction resolution: which hierarchy nodes an actor controls.

ADMIN and GENERAL_SECRETARIAT control everything. Every other actor controls
the node of its active binding plus that node's descendants, within the
binding's own hierarchy kind only. An EXPATRIATE_GENERAL without a region
binding controls the whole expatriate set.

`resolve_jurisdiction` (bulk form) and `is_in_jurisdiction` (point form) are
computed independently, by downward closure and by upward walk respectively,
and must always agree.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from beanie import PydanticObjectId
from bson import ObjectId

from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.binding import binding_for
from civic_hierarchy.models.hierarchy import HierarchyKind
from civic_hierarchy.models.user import AdminLevel, level_rank
from civic_hierarchy.services.decisions import Decision, DenialReason, allow, deny
from civic_hierarchy.services.hierarchy_store import HierarchyStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JurisdictionScope:
    kind: Optional[HierarchyKind] = None
    node_ids: FrozenSet[str] = frozenset()
    unconstrained: bool = False

    @classmethod
    def everything(cls) -> "JurisdictionScope":
        return cls(unconstrained=True)

    @classmethod
    def empty(cls, kind: Optional[HierarchyKind] = None) -> "JurisdictionScope":
        return cls(kind=kind)

    @property
    def is_empty(self) -> bool:
        return not self.unconstrained and not self.node_ids

    def contains(self, node_id: Optional[str]) -> bool:
        if self.unconstrained:
            return True
        return node_id in self.node_ids

    def __contains__(self, node_id) -> bool:
        return self.contains(node_id)

    def node_query(self) -> dict:
        """Filter over `hierarchy_nodes`."""
        if self.unconstrained:
            return {}
        return {
            "_id": {
                "$in": [
                    PydanticObjectId(node_id)
                    for node_id in sorted(self.node_ids)
                    if ObjectId.is_valid(node_id)
                ]
            }
        }

    def user_query(self) -> dict:
        """Filter over `users`: anyone bound, in this kind, to a node in scope."""
        if self.unconstrained:
            return {}
        return {
            "bindings": {
                "$elemMatch": {
                    "kind": self.kind.value if self.kind else None,
                    "node_id": {"$in": sorted(self.node_ids)},
                }
            }
        }


def _is_unbound_expatriate_general(actor: Actor) -> bool:
    return (
        actor.admin_level == AdminLevel.EXPATRIATE_GENERAL
        and actor.binding_for(HierarchyKind.EXPATRIATE) is None
    )


def resolve_jurisdiction(
    actor: Actor, store: HierarchyStore, kind: Optional[HierarchyKind] = None
) -> JurisdictionScope:
    """
    Closed set of nodes the actor controls. Passing `kind` asks for the scope
    within that hierarchy kind; a kind other than the actor's own yields an
    empty scope.
    """
    if actor.is_unconstrained:
        return JurisdictionScope.everything()

    if _is_unbound_expatriate_general(actor):
        if kind is not None and kind != HierarchyKind.EXPATRIATE:
            return JurisdictionScope.empty(kind)
        return JurisdictionScope(
            kind=HierarchyKind.EXPATRIATE,
            node_ids=frozenset(
                node.id for node in store.nodes_of_kind(HierarchyKind.EXPATRIATE)
            ),
        )

    binding = actor.active_binding
    if binding is None:
        return JurisdictionScope.empty(kind)
    if kind is not None and kind != binding.kind:
        return JurisdictionScope.empty(kind)

    node = store.get(binding.node_id)
    if node is None or node.kind != binding.kind:
        logger.warning(
            f"Actor {actor.id} is bound to unknown {binding.kind.value} node {binding.node_id}"
        )
        return JurisdictionScope.empty(binding.kind)

    return JurisdictionScope(
        kind=binding.kind, node_ids=frozenset(store.descendant_ids(node.id))
    )


def is_in_jurisdiction(actor: Actor, node_id: Optional[str], store: HierarchyStore) -> bool:
    """Point check: is `node_id` the actor's node or one of its descendants."""
    if actor.is_unconstrained:
        return True

    target = store.get(node_id)
    if target is None:
        return False

    if _is_unbound_expatriate_general(actor):
        return target.kind == HierarchyKind.EXPATRIATE

    binding = actor.active_binding
    if binding is None or binding.kind != target.kind:
        return False
    return store.is_descendant(target.id, binding.node_id)


def check_jurisdiction(
    actor: Actor, node_id: Optional[str], store: HierarchyStore
) -> Decision:
    if not is_in_jurisdiction(actor, node_id, store):
        return deny(
            DenialReason.OUT_OF_JURISDICTION,
            "Node is outside your jurisdiction.",
            actor_id=actor.id,
            node_id=node_id,
        )
    return allow()


def can_manage_user(
    actor: Actor, user_level: AdminLevel, user_bindings, store: HierarchyStore
) -> Decision:
    """
    View/modify rights over another user: the user must rank strictly below
    the actor (ADMIN excepted) and be bound inside the actor's jurisdiction.
    """
    if actor.admin_level != AdminLevel.ADMIN and level_rank(user_level) >= level_rank(
        actor.admin_level
    ):
        return deny(
            DenialReason.INSUFFICIENT_LEVEL,
            f"A {actor.admin_level.value} cannot manage a {AdminLevel(user_level).value}.",
            actor_id=actor.id,
        )
    if actor.is_unconstrained:
        return allow()

    scope = resolve_jurisdiction(actor, store)
    binding = binding_for(user_bindings, scope.kind)
    if binding is None or not scope.contains(binding.node_id):
        return deny(
            DenialReason.OUT_OF_JURISDICTION,
            "User is not bound inside your jurisdiction.",
            actor_id=actor.id,
            node_id=binding.node_id if binding is not None else None,
        )
    return allow()


def manageable_user_query(actor: Actor, store: HierarchyStore) -> dict:
    """MongoDB filter over `users` matching exactly what `can_manage_user` allows."""
    if actor.admin_level == AdminLevel.ADMIN:
        return {}
    rank = level_rank(actor.admin_level)
    lower_levels = sorted(
        level.value for level in AdminLevel if level_rank(level) < rank
    )
    query = {"admin_level": {"$in": lower_levels}}
    if actor.is_unconstrained:
        return query
    scope = resolve_jurisdiction(actor, store)
    if scope.is_empty:
        return {"_id": {"$in": []}}
    query.update(scope.user_query())
    return query
