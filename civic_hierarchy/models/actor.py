# civic_hierarchy/models/actor.py
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from civic_hierarchy.models.binding import HierarchyBinding, binding_for
from civic_hierarchy.models.hierarchy import HierarchyKind
from civic_hierarchy.models.user import (
    AdminLevel,
    UNCONSTRAINED_LEVELS,
    User,
    UserRole,
)


class Actor(BaseModel):
    """
    Point-in-time snapshot of an authenticated user, passed explicitly to every
    jurisdiction and visibility check. Refreshed on each authentication.
    """

    id: str
    role: UserRole = UserRole.USER
    admin_level: AdminLevel = AdminLevel.USER
    active_hierarchy: HierarchyKind = HierarchyKind.GEOGRAPHIC
    bindings: List[HierarchyBinding] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(
            id=str(user.id),
            role=user.role,
            admin_level=user.admin_level,
            active_hierarchy=user.active_hierarchy,
            bindings=list(user.bindings),
        )

    @property
    def is_unconstrained(self) -> bool:
        return self.admin_level in UNCONSTRAINED_LEVELS

    @property
    def is_admin(self) -> bool:
        return self.admin_level != AdminLevel.USER

    @property
    def active_binding(self) -> Optional[HierarchyBinding]:
        return binding_for(self.bindings, self.active_hierarchy)

    def binding_for(self, kind: HierarchyKind) -> Optional[HierarchyBinding]:
        return binding_for(self.bindings, kind)
