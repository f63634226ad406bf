# civic_hierarchy/models/user.py
from enum import Enum
from typing import List, Optional, Any
from datetime import datetime
from pydantic import Field, EmailStr, ConfigDict, BaseModel, field_validator
from beanie import Document, PydanticObjectId
from pymongo import ASCENDING, IndexModel

from civic_hierarchy.models.binding import HierarchyBinding, binding_for
from civic_hierarchy.models.hierarchy import HierarchyKind, NodeLevel


# --- UserRole Enum (legacy coarse flag) ---
class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class AdminLevel(str, Enum):
    """Administrative levels. Ordering lives in LEVEL_RANK, not in declaration order."""

    ADMIN = "admin"
    GENERAL_SECRETARIAT = "general_secretariat"
    NATIONAL_LEVEL = "national_level"
    REGION = "region"
    LOCALITY = "locality"
    ADMIN_UNIT = "admin_unit"
    DISTRICT = "district"
    EXPATRIATE_GENERAL = "expatriate_general"
    EXPATRIATE_REGION = "expatriate_region"
    USER = "user"


LEVEL_RANK = {
    AdminLevel.ADMIN: 7,
    AdminLevel.GENERAL_SECRETARIAT: 6,
    AdminLevel.NATIONAL_LEVEL: 5,
    AdminLevel.EXPATRIATE_GENERAL: 5,
    AdminLevel.REGION: 4,
    AdminLevel.EXPATRIATE_REGION: 4,
    AdminLevel.LOCALITY: 3,
    AdminLevel.ADMIN_UNIT: 2,
    AdminLevel.DISTRICT: 1,
    AdminLevel.USER: 0,
}

# Levels whose jurisdiction is everything, regardless of hierarchy kind
UNCONSTRAINED_LEVELS = frozenset({AdminLevel.ADMIN, AdminLevel.GENERAL_SECRETARIAT})

EXPATRIATE_LEVELS = frozenset(
    {AdminLevel.EXPATRIATE_GENERAL, AdminLevel.EXPATRIATE_REGION}
)

# Node level an administrator of each level is bound to
LEVEL_NODE = {
    AdminLevel.NATIONAL_LEVEL: NodeLevel.NATIONAL,
    AdminLevel.REGION: NodeLevel.REGION,
    AdminLevel.LOCALITY: NodeLevel.LOCALITY,
    AdminLevel.ADMIN_UNIT: NodeLevel.ADMIN_UNIT,
    AdminLevel.DISTRICT: NodeLevel.DISTRICT,
    AdminLevel.EXPATRIATE_GENERAL: NodeLevel.EXPATRIATE_REGION,
    AdminLevel.EXPATRIATE_REGION: NodeLevel.EXPATRIATE_REGION,
}


def level_rank(level: AdminLevel) -> int:
    return LEVEL_RANK[AdminLevel(level)]


def can_activate_hierarchy(admin_level: AdminLevel, bindings, kind: HierarchyKind) -> bool:
    """A user may only switch to a hierarchy kind they hold a binding in."""
    if admin_level in UNCONSTRAINED_LEVELS:
        return True
    if admin_level == AdminLevel.EXPATRIATE_GENERAL and kind == HierarchyKind.EXPATRIATE:
        return True
    return binding_for(bindings, kind) is not None


# --- Audit Log Entry Model ---
class AuditLogEntry(BaseModel):
    """
    Represents an entry in a user's audit log for profile, level and binding changes.
    """

    changed_by_user_id: PydanticObjectId
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    field_name: str
    old_value: Any
    new_value: Any


# --- User Model ---
class User(Document):
    name: str
    mobile_number: str
    email: Optional[EmailStr] = None
    hashed_password: str
    role: UserRole = UserRole.USER
    admin_level: AdminLevel = AdminLevel.USER
    active_hierarchy: HierarchyKind = HierarchyKind.GEOGRAPHIC
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # At most one binding per hierarchy kind; `active_hierarchy` picks the one in force
    bindings: List[HierarchyBinding] = Field(default_factory=list)

    audit_log: List[AuditLogEntry] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("bindings")
    @classmethod
    def one_binding_per_kind(cls, bindings):
        kinds = [binding.kind for binding in bindings]
        if len(kinds) != len(set(kinds)):
            raise ValueError("A user can hold at most one binding per hierarchy kind.")
        return bindings

    def binding_for(self, kind: HierarchyKind):
        return binding_for(self.bindings, kind)

    class Settings:
        name = "users"  # MongoDB collection name
        indexes = [
            IndexModel([("mobile_number", ASCENDING)], unique=True),
            IndexModel(
                [("email", ASCENDING)],
                unique=True,
                partialFilterExpression={"email": {"$type": "string"}},
            ),
            IndexModel([("bindings.kind", ASCENDING), ("bindings.node_id", ASCENDING)]),
        ]
