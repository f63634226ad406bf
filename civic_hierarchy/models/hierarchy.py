# civic_hierarchy/models/hierarchy.py
from enum import Enum
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import Field
from beanie import Document
from pymongo import ASCENDING, IndexModel


class HierarchyKind(str, Enum):
    """The three parallel addressing spaces a node (and a binding) can live in."""

    GEOGRAPHIC = "geographic"
    EXPATRIATE = "expatriate"
    SECTOR = "sector"


class NodeLevel(str, Enum):
    """Structural levels. Geographic and sector trees share the first five."""

    NATIONAL = "national"
    REGION = "region"
    LOCALITY = "locality"
    ADMIN_UNIT = "admin_unit"
    DISTRICT = "district"
    EXPATRIATE_REGION = "expatriate_region"


class SectorType(str, Enum):
    SOCIAL = "social"
    ECONOMIC = "economic"
    ORGANIZATIONAL = "organizational"
    POLITICAL = "political"


class NodeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# Top-down order of the tree levels; index is the depth.
TREE_LEVELS = [
    NodeLevel.NATIONAL,
    NodeLevel.REGION,
    NodeLevel.LOCALITY,
    NodeLevel.ADMIN_UNIT,
    NodeLevel.DISTRICT,
]

LEVEL_DEPTH = {level: depth for depth, level in enumerate(TREE_LEVELS)}
LEVEL_DEPTH[NodeLevel.EXPATRIATE_REGION] = 0

SECTOR_LABELS = {
    SectorType.SOCIAL: "الاجتماعي",
    SectorType.ECONOMIC: "الاقتصادي",
    SectorType.ORGANIZATIONAL: "التنظيمي",
    SectorType.POLITICAL: "السياسي",
}


def parent_level_of(level: NodeLevel) -> Optional[NodeLevel]:
    """Level directly above `level` in a tree, or None for roots."""
    if level not in TREE_LEVELS:
        return None
    depth = TREE_LEVELS.index(level)
    return TREE_LEVELS[depth - 1] if depth > 0 else None


def deeper_levels(level: NodeLevel):
    if level not in TREE_LEVELS:
        return []
    return TREE_LEVELS[TREE_LEVELS.index(level) + 1 :]


# --- HierarchyNode Model ---
class HierarchyNode(Document):
    """
    A single node of the geographic tree, the flat expatriate-region set or a
    sector tree. Children point at their parent through `parent_id`.
    """

    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    kind: HierarchyKind
    level: NodeLevel
    parent_id: Optional[str] = Field(default=None)  # same-kind parent
    sector_type: Optional[SectorType] = None

    # Geographic node or expatriate region a sector subtree is scoped to
    anchor_id: Optional[str] = None

    status: NodeStatus = NodeStatus.ACTIVE
    admin_id: Optional[str] = None

    # bumped by every transaction that adds a child or binds a user here, so a
    # concurrent deactivation of this node fails with a write conflict
    structure_version: int = 0

    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == NodeStatus.ACTIVE

    class Settings:
        name = "hierarchy_nodes"
        indexes = [
            IndexModel([("parent_id", ASCENDING)]),
            IndexModel([("kind", ASCENDING), ("level", ASCENDING)]),
            IndexModel(
                [
                    ("kind", ASCENDING),
                    ("level", ASCENDING),
                    ("sector_type", ASCENDING),
                    ("code", ASCENDING),
                ],
                unique=True,
                partialFilterExpression={"code": {"$type": "string"}},
            ),
        ]
