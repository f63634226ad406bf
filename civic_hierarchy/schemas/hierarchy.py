# civic_hierarchy/schemas/hierarchy.py
import re
from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field, field_validator
from beanie import PydanticObjectId
from civic_hierarchy.models.hierarchy import (
    HierarchyKind,
    NodeLevel,
    NodeStatus,
    SectorType,
)

CODE_PATTERN = re.compile(r"^[A-Z0-9\-_]+$")


def normalize_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValueError("Name is required")
    return name


def normalize_code(code: Optional[str]) -> Optional[str]:
    """Trimmed and upper-cased; empty codes become None."""
    if code is None:
        return None
    code = code.strip().upper()
    if not code:
        return None
    if not CODE_PATTERN.match(code):
        raise ValueError(
            "Code can only contain letters, numbers, hyphens, and underscores"
        )
    return code


def normalize_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    return description.strip() or None


class HierarchyNodeBase(BaseModel):
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _name(cls, value):
        return normalize_name(value)

    @field_validator("code")
    @classmethod
    def _code(cls, value):
        return normalize_code(value)

    @field_validator("description")
    @classmethod
    def _description(cls, value):
        return normalize_description(value)


class HierarchyNodeCreate(HierarchyNodeBase):
    kind: HierarchyKind
    level: NodeLevel
    parent_id: Optional[str] = None
    sector_type: Optional[SectorType] = None
    anchor_id: Optional[str] = None


class HierarchyNodeUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    parent_id: Optional[str] = None  # explicit null moves a root-level node back to root
    metadata: Optional[Dict[str, Any]] = None
    # the updated_at the client last saw, for optimistic locking
    updated_at: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def _name(cls, value):
        return normalize_name(value) if value is not None else None

    @field_validator("code")
    @classmethod
    def _code(cls, value):
        return normalize_code(value)

    @field_validator("description")
    @classmethod
    def _description(cls, value):
        return normalize_description(value)


class HierarchyNodePublic(HierarchyNodeBase):
    id: PydanticObjectId = Field(alias="_id")
    kind: HierarchyKind
    level: NodeLevel
    parent_id: Optional[str] = None
    sector_type: Optional[SectorType] = None
    anchor_id: Optional[str] = None
    status: NodeStatus
    admin_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class AdminAssignment(BaseModel):
    admin_id: Optional[str] = None


class JurisdictionScopePublic(BaseModel):
    unconstrained: bool
    kind: Optional[HierarchyKind] = None
    node_ids: List[str] = Field(default_factory=list)
