# civic_hierarchy/routes/users.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional
from beanie import PydanticObjectId

from civic_hierarchy.configs import configs
from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.user import AdminLevel, AuditLogEntry, User
from civic_hierarchy.schemas.user import (
    ActiveHierarchyChange,
    AdminCreate,
    AdminCreationCheck,
    BindingReassignment,
    DecisionPublic,
    PasswordChange,
    ProfileUpdate,
    Token,
    UserPublic,
    UserSignup,
    UserStats,
    UserUpdate,
)
from civic_hierarchy.services.admin_creation import can_create_admin
from civic_hierarchy.services.hierarchy_store import HierarchyStore
from civic_hierarchy.services.user_service import UserService
from civic_hierarchy.dependencies.auth import (
    get_current_user,
    get_current_actor,
    authenticate_user_dependency,
    create_access_token_dependency,
)
from civic_hierarchy.dependencies.hierarchy import get_hierarchy_store
from civic_hierarchy.dependencies.permissions import require_admin
from civic_hierarchy.schemas.misc import Message

router = APIRouter()
user_service = UserService()

pagination = configs.get("pagination", {})
DEFAULT_LIMIT = pagination.get("default_limit", 100)
MAX_LIMIT = pagination.get("max_limit", 500)


# --- Authentication Endpoints ---


@router.post("/signup", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def signup(signup_data: UserSignup):
    """
    Public member signup. `node_id` must be the deepest node of the chosen
    branch (e.g. a district, not a region).
    """
    return await user_service.signup(signup_data)


@router.post("/login", response_model=Token)
async def login_for_access_token(
    user: User = Depends(authenticate_user_dependency),
    create_access_token_func: callable = Depends(create_access_token_dependency),
):
    """
    Authenticate user and return an access token.
    """
    access_token = create_access_token_func({"sub": str(user.id)})
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserPublic)
async def read_users_me(current_user: User = Depends(get_current_user)):
    """
    Get current authenticated user's details.
    """
    return current_user


@router.put("/me/password", response_model=Message)
async def change_my_password(
    password_change: PasswordChange, current_user: User = Depends(get_current_user)
):
    """
    Allows a user to change their own password.
    """
    await user_service.change_password(
        current_user, password_change.old_password, password_change.new_password
    )
    return {"message": "Password updated successfully"}


@router.put("/me/profile", response_model=UserPublic)
async def update_my_profile(
    profile_update: ProfileUpdate, current_user: User = Depends(get_current_user)
):
    """
    Allows a user to update their own name and email. Changes are audit-logged.
    """
    return await user_service.update_user(current_user, profile_update, current_user.id)


@router.put("/me/active-hierarchy", response_model=UserPublic)
async def change_my_active_hierarchy(
    change: ActiveHierarchyChange, current_user: User = Depends(get_current_user)
):
    """Switches the hierarchy kind that governs the user's view."""
    return await user_service.set_active_hierarchy(current_user, change.active_hierarchy)


# --- Administrator creation ---


@router.post("/admins", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def create_admin(
    admin_create: AdminCreate, actor: Actor = Depends(require_admin)
):
    """
    Creates an administrator or member strictly below the caller's level and
    inside the caller's jurisdiction.
    """
    return await user_service.create_admin(admin_create, actor)


@router.post("/admins/validate", response_model=DecisionPublic)
async def validate_admin_creation(
    check: AdminCreationCheck,
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """Dry run of the creation rules, for forms that pre-check a level/node pair."""
    decision = can_create_admin(actor, check.admin_level, check.node_id, store)
    return DecisionPublic(
        allowed=decision.allowed,
        reason=decision.reason.value if decision.reason else None,
        message=decision.message,
    )


# --- Scoped User Management Endpoints ---


@router.get("/", response_model=List[UserPublic])
async def get_all_users(
    admin_level: Optional[AdminLevel] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """
    Users the caller may manage: ranked below the caller and bound inside the
    caller's jurisdiction.
    """
    return await user_service.list_users(
        actor, store, admin_level=admin_level, limit=limit, skip=skip
    )


@router.get("/stats", response_model=UserStats)
async def get_user_stats(
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    return await user_service.get_stats(actor, store)


@router.get("/{user_id}", response_model=UserPublic)
async def get_user_by_id(
    user_id: PydanticObjectId,
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """
    Retrieve a single user the caller may manage.
    """
    return await user_service.get_manageable_user(user_id, actor, store)


@router.put("/{user_id}", response_model=UserPublic)
async def update_user(
    user_id: PydanticObjectId,
    user_update: UserUpdate,
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """
    Update a managed user's contact details or password. Level and node
    changes go through the binding endpoint.
    """
    target_user = await user_service.get_manageable_user(user_id, actor, store)
    return await user_service.update_user(target_user, user_update, actor.id)


@router.put("/{user_id}/status", response_model=UserPublic)
async def set_user_status(
    user_id: PydanticObjectId,
    is_active: bool,
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """
    Activates or deactivates a managed user.
    """
    if str(user_id) == actor.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot change your own active status via this endpoint.",
        )
    target_user = await user_service.get_manageable_user(user_id, actor, store)
    return await user_service.set_status(target_user, is_active, actor.id)


@router.put("/{user_id}/binding", response_model=UserPublic)
async def reassign_user_binding(
    user_id: PydanticObjectId,
    reassignment: BindingReassignment,
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """
    Moves a managed user to another node, optionally changing their level.
    """
    target_user = await user_service.get_manageable_user(user_id, actor, store)
    return await user_service.reassign_binding(
        target_user, reassignment.node_id, reassignment.admin_level, actor
    )


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: PydanticObjectId,
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """
    Soft-deletes (deactivates) a managed user. Refused while the user is the
    assigned administrator of a node.
    """
    if str(user_id) == actor.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account.",
        )
    target_user = await user_service.get_manageable_user(user_id, actor, store)
    await user_service.soft_delete_user(target_user, actor)
    return


@router.get("/{user_id}/audit-log", response_model=List[AuditLogEntry])
async def get_user_audit_log(
    user_id: PydanticObjectId,
    actor: Actor = Depends(require_admin),
    store: HierarchyStore = Depends(get_hierarchy_store),
):
    """
    Retrieves the audit log for a managed user.
    """
    target_user = await user_service.get_manageable_user(user_id, actor, store)
    return target_user.audit_log
