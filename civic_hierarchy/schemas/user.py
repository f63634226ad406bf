# civic_hierarchy/schemas/user.py
from typing import Optional, List, Dict
from datetime import datetime
from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    ConfigDict,
    field_validator,
)
from beanie import PydanticObjectId
from civic_hierarchy.models.binding import HierarchyBinding
from civic_hierarchy.models.hierarchy import HierarchyKind
from civic_hierarchy.models.user import AdminLevel, UserRole, AuditLogEntry
from civic_hierarchy.services.mobile import normalize_mobile_number


class MobileNumberMixin(BaseModel):
    @field_validator("mobile_number", check_fields=False)
    @classmethod
    def _mobile_number(cls, value):
        return normalize_mobile_number(value) if value is not None else None


# --- Base User Schemas ---
class UserBase(MobileNumberMixin):
    name: str
    mobile_number: str
    email: Optional[EmailStr] = None

    model_config = ConfigDict(extra="ignore")


# --- User Schemas for API Operations ---


class UserSignup(UserBase):
    """Public self-signup; `node_id` is the deepest node of the chosen branch."""

    password: str
    node_id: str


class AdminCreate(UserBase):
    password: str
    admin_level: AdminLevel
    node_id: Optional[str] = None


class AdminCreationCheck(BaseModel):
    admin_level: AdminLevel
    node_id: Optional[str] = None


class DecisionPublic(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    message: str = ""


class UserUpdate(MobileNumberMixin):
    name: Optional[str] = None
    mobile_number: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None  # For changing password directly by admin

    model_config = ConfigDict(extra="ignore")


class BindingReassignment(BaseModel):
    node_id: str
    admin_level: Optional[AdminLevel] = None  # keep the current level when omitted


class ActiveHierarchyChange(BaseModel):
    active_hierarchy: HierarchyKind


class UserPublic(BaseModel):
    id: Optional[PydanticObjectId] = Field(alias="_id", default=None)
    name: str
    mobile_number: str
    email: Optional[EmailStr] = None
    role: UserRole
    admin_level: AdminLevel
    active_hierarchy: HierarchyKind
    bindings: List[HierarchyBinding] = Field(default_factory=list)
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class UserStats(BaseModel):
    total_users: int
    users_by_level: Dict[str, int] = Field(default_factory=dict)
    nodes_by_level: Dict[str, int] = Field(default_factory=dict)


# --- Authentication Schemas ---
class UserLogin(BaseModel):
    login: str  # mobile number or email
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str


# --- User Profile Update Schema (for /me/profile) ---
class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None

    model_config = ConfigDict(extra="ignore")


# --- Password Change Schema (for /me/password) ---
class PasswordChange(BaseModel):
    old_password: str
    new_password: str


__all__ = [
    "AuditLogEntry",
    "UserSignup",
    "AdminCreate",
    "AdminCreationCheck",
    "DecisionPublic",
    "UserUpdate",
    "BindingReassignment",
    "ActiveHierarchyChange",
    "UserPublic",
    "UserStats",
    "UserLogin",
    "Token",
    "ProfileUpdate",
    "PasswordChange",
]
