# civic_hierarchy/services/sector_provisioning.py
"""
Plans the four sector nodes that accompany a new geographic node or
expatriate region.

Each sector node is anchored at the new node and hangs under the same-type
sector node anchored at the new node's geographic parent, when one exists at
the level directly above. Otherwise it starts a sector subtree of its own.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from civic_hierarchy.models.hierarchy import (
    HierarchyKind,
    NodeLevel,
    SECTOR_LABELS,
    SectorType,
    parent_level_of,
)
from civic_hierarchy.services.hierarchy_store import HierarchyStore, NodeRecord

# Geographic levels (and expatriate regions) that get their four sector nodes on creation
SECTOR_PROVISIONED_LEVELS = {
    NodeLevel.REGION,
    NodeLevel.LOCALITY,
    NodeLevel.ADMIN_UNIT,
    NodeLevel.DISTRICT,
    NodeLevel.EXPATRIATE_REGION,
}


class SectorPlan(BaseModel):
    name: str
    kind: HierarchyKind = HierarchyKind.SECTOR
    level: NodeLevel
    parent_id: Optional[str] = None
    sector_type: SectorType
    anchor_id: str

    model_config = ConfigDict(frozen=True)


def needs_sectors(node: NodeRecord) -> bool:
    return node.kind != HierarchyKind.SECTOR and node.level in SECTOR_PROVISIONED_LEVELS


def sector_parent(
    node: NodeRecord, sector_type: SectorType, store: HierarchyStore
) -> Optional[NodeRecord]:
    """The active same-type sector node anchored at `node`'s geographic parent."""
    if node.parent_id is None:
        return None
    for candidate in store.nodes_of_kind(HierarchyKind.SECTOR):
        if (
            candidate.is_active
            and candidate.anchor_id == node.parent_id
            and candidate.sector_type == sector_type
        ):
            return candidate
    return None


def plan_sector_nodes(node: NodeRecord, store: HierarchyStore) -> List[SectorPlan]:
    """One plan per sector type, in `SectorType` order."""
    # expatriate regions have no geographic level; their sectors start at NATIONAL
    level = NodeLevel.NATIONAL if node.kind == HierarchyKind.EXPATRIATE else node.level
    plans = []
    for sector_type in SectorType:
        parent = sector_parent(node, sector_type, store)
        if parent is not None and parent.level != parent_level_of(level):
            parent = None
        plans.append(
            SectorPlan(
                name=f"{node.name} - {SECTOR_LABELS[sector_type]}",
                level=level,
                parent_id=parent.id if parent is not None else None,
                sector_type=sector_type,
                anchor_id=node.id,
            )
        )
    return plans
