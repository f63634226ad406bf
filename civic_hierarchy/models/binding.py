# civic_hierarchy/models/binding.py
from typing import Annotated, Dict, Literal, Optional, Union
from pydantic import BaseModel, Field

from civic_hierarchy.models.hierarchy import HierarchyKind, NodeLevel, SectorType


class GeographicBinding(BaseModel):
    kind: Literal[HierarchyKind.GEOGRAPHIC] = HierarchyKind.GEOGRAPHIC
    node_id: str
    level: NodeLevel
    # level value -> node id for the bound node and each of its ancestors
    lineage: Dict[str, str] = Field(default_factory=dict)


class ExpatriateBinding(BaseModel):
    kind: Literal[HierarchyKind.EXPATRIATE] = HierarchyKind.EXPATRIATE
    node_id: str  # the expatriate region
    level: NodeLevel = NodeLevel.EXPATRIATE_REGION
    lineage: Dict[str, str] = Field(default_factory=dict)


class SectorBinding(BaseModel):
    kind: Literal[HierarchyKind.SECTOR] = HierarchyKind.SECTOR
    node_id: str
    level: NodeLevel
    sector_type: SectorType
    lineage: Dict[str, str] = Field(default_factory=dict)


HierarchyBinding = Annotated[
    Union[GeographicBinding, ExpatriateBinding, SectorBinding],
    Field(discriminator="kind"),
]


def binding_for(bindings, kind: HierarchyKind) -> Optional[HierarchyBinding]:
    """Returns the binding a user holds in `kind`, if any."""
    for binding in bindings or []:
        if binding.kind == kind:
            return binding
    return None
