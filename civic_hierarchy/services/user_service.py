# civic_hierarchy/services/user_service.py
import logging
from typing import List, Optional, Union
from fastapi import HTTPException, status
from beanie import PydanticObjectId
from bson import ObjectId
from datetime import datetime
from pymongo.errors import DuplicateKeyError

from civic_hierarchy.models.actor import Actor
from civic_hierarchy.models.binding import binding_for
from civic_hierarchy.models.hierarchy import HierarchyKind, HierarchyNode
from civic_hierarchy.models.user import (
    AdminLevel,
    AuditLogEntry,
    User,
    can_activate_hierarchy,
)
from civic_hierarchy.schemas.user import (
    AdminCreate,
    ProfileUpdate,
    UserSignup,
    UserStats,
    UserUpdate,
)
from civic_hierarchy.services.admin_creation import (
    can_create_admin,
    can_reassign_binding,
    can_self_signup,
)
from civic_hierarchy.services.auth_service import AuthService
from civic_hierarchy.services.db import all_of, transaction
from civic_hierarchy.services.decisions import Decision
from civic_hierarchy.services.hierarchy_service import HierarchyService
from civic_hierarchy.services.hierarchy_store import HierarchyStore
from civic_hierarchy.services.http_errors import raise_for_decision
from civic_hierarchy.services.jurisdiction import (
    can_manage_user,
    manageable_user_query,
    resolve_jurisdiction,
)
from civic_hierarchy.services.mobile import normalize_mobile_number

logger = logging.getLogger(__name__)

AUDITED_FIELDS = ["name", "mobile_number", "email"]


class UserService:
    def __init__(self):
        # Initialize AuthService to hash passwords
        self.auth_service = AuthService()
        self.hierarchy_service = HierarchyService()

    async def _insert(self, user: User, session=None) -> User:
        try:
            await user.insert(session=session)
        except DuplicateKeyError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this mobile number or email already exists.",
            )
        return user

    async def _ensure_unique(self, mobile_number: str, email: Optional[str]) -> None:
        if await self.get_user_by_mobile(mobile_number):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this mobile number already exists.",
            )
        if email and await self.get_user_by_email(email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this email already exists.",
            )

    def _build_user(self, data: Union[UserSignup, AdminCreate], decision: Decision) -> User:
        granted = decision.payload
        binding = granted.get("binding")
        return User(
            name=data.name,
            mobile_number=data.mobile_number,
            email=data.email,
            hashed_password=self.auth_service.hash_password(data.password),
            role=granted["role"],
            admin_level=granted["admin_level"],
            active_hierarchy=granted["active_hierarchy"],
            bindings=[binding] if binding is not None else [],
        )

    async def signup(self, signup_data: UserSignup) -> User:
        """
        Public self-signup. The member is bound to the selected node, which must
        be the deepest active node of its branch.
        """
        await self._ensure_unique(signup_data.mobile_number, signup_data.email)
        async with transaction() as session:
            store = await self.hierarchy_service.load_store(session)
            decision = raise_for_decision(can_self_signup(signup_data.node_id, store))
            new_user = self._build_user(signup_data, decision)
            await self._insert(new_user, session)
            await self.hierarchy_service.touch(signup_data.node_id, session)
        logger.info(f"Member {new_user.id} signed up at node {signup_data.node_id}")
        return new_user

    async def create_admin(self, admin_data: AdminCreate, creator: Actor) -> User:
        """Creates a user at `admin_level` once the creation validator allows it."""
        await self._ensure_unique(admin_data.mobile_number, admin_data.email)
        async with transaction() as session:
            store = await self.hierarchy_service.load_store(session)
            decision = raise_for_decision(
                can_create_admin(creator, admin_data.admin_level, admin_data.node_id, store)
            )
            new_user = self._build_user(admin_data, decision)
            await self._insert(new_user, session)
            await self.hierarchy_service.touch(admin_data.node_id, session)
        logger.info(
            f"{creator.id} created {new_user.admin_level.value} {new_user.id} at node {admin_data.node_id}"
        )
        return new_user

    async def get_user_by_id(self, user_id: Union[str, PydanticObjectId]) -> Optional[User]:
        """Retrieves a user by their ID."""
        if not ObjectId.is_valid(str(user_id)):
            return None
        return await User.get(PydanticObjectId(str(user_id)))

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Retrieves a user by their email address."""
        return await User.find_one(User.email == email)

    async def get_user_by_mobile(self, mobile_number: str) -> Optional[User]:
        return await User.find_one(User.mobile_number == mobile_number)

    async def get_user_by_login(self, login: str) -> Optional[User]:
        """`login` is either an email address or a mobile number in any accepted form."""
        login = (login or "").strip()
        if "@" in login:
            return await self.get_user_by_email(login)
        try:
            mobile_number = normalize_mobile_number(login)
        except ValueError:
            return None
        return await self.get_user_by_mobile(mobile_number)

    async def list_users(
        self,
        actor: Actor,
        store: HierarchyStore,
        admin_level: Optional[AdminLevel] = None,
        limit: int = 100,
        skip: int = 0,
    ) -> List[User]:
        """Users the actor may manage, with pagination."""
        query = manageable_user_query(actor, store)
        if admin_level is not None:
            query = all_of(query, {"admin_level": admin_level.value})
        return await User.find(query).sort("+name").skip(skip).limit(limit).to_list()

    async def get_manageable_user(
        self, user_id: PydanticObjectId, actor: Actor, store: HierarchyStore
    ) -> User:
        user = await self.get_user_by_id(user_id)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found."
            )
        raise_for_decision(can_manage_user(actor, user.admin_level, user.bindings, store))
        return user

    async def get_stats(self, actor: Actor, store: HierarchyStore) -> UserStats:
        """Counts of manageable users per admin level and of active nodes per level in scope."""
        query = manageable_user_query(actor, store)
        users_by_level = {}
        for level in AdminLevel:
            count = await User.find(all_of(query, {"admin_level": level.value})).count()
            if count:
                users_by_level[level.value] = count

        scope = resolve_jurisdiction(actor, store)
        nodes_by_level = {}
        for node in store:
            if node.is_active and scope.contains(node.id):
                key = f"{node.kind.value}.{node.level.value}"
                nodes_by_level[key] = nodes_by_level.get(key, 0) + 1

        return UserStats(
            total_users=sum(users_by_level.values()),
            users_by_level=users_by_level,
            nodes_by_level=nodes_by_level,
        )

    def _audit(self, changer_user_id, field_name: str, old_value, new_value) -> AuditLogEntry:
        return AuditLogEntry(
            changed_by_user_id=changer_user_id,
            timestamp=datetime.utcnow(),
            field_name=field_name,
            old_value=old_value,
            new_value=new_value,
        )

    async def _write(self, user: User, update_data: dict, audit_entries: List[AuditLogEntry], session=None) -> User:
        update_data["updated_at"] = datetime.utcnow()
        try:
            await user.set(update_data, session=session)
        except DuplicateKeyError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this mobile number or email already exists.",
            )
        if audit_entries:
            # $each allows adding multiple elements to the array
            await user.update(
                {"$push": {"audit_log": {"$each": [entry.model_dump() for entry in audit_entries]}}},
                session=session,
            )
            user.audit_log.extend(audit_entries)
        return user

    async def update_user(
        self,
        user: User,
        user_update: Union[UserUpdate, ProfileUpdate],
        changer_user_id: PydanticObjectId,
    ) -> User:
        """
        Updates an existing user's data and logs changes to contact information.
        changer_user_id: The ID of the user who is performing this update.
        """
        update_data = user_update.model_dump(exclude_unset=True)

        if update_data.get("password"):
            update_data["hashed_password"] = self.auth_service.hash_password(
                update_data.pop("password")
            )
        update_data.pop("password", None)

        audit_entries = [
            self._audit(changer_user_id, field_name, getattr(user, field_name), update_data[field_name])
            for field_name in AUDITED_FIELDS
            if field_name in update_data and getattr(user, field_name) != update_data[field_name]
        ]
        return await self._write(user, update_data, audit_entries)

    async def change_password(self, user: User, old_password: str, new_password: str) -> User:
        if not self.auth_service.verify_password(old_password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid old password"
            )
        if old_password == new_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="New password cannot be the same as old password",
            )
        return await self._write(
            user, {"hashed_password": self.auth_service.hash_password(new_password)}, []
        )

    async def set_status(self, user: User, is_active: bool, changer_user_id: PydanticObjectId) -> User:
        entry = self._audit(changer_user_id, "is_active", user.is_active, is_active)
        return await self._write(user, {"is_active": is_active}, [entry])

    async def set_active_hierarchy(self, user: User, kind: HierarchyKind) -> User:
        if not can_activate_hierarchy(user.admin_level, user.bindings, kind):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"You have no binding in the {kind.value} hierarchy.",
            )
        entry = self._audit(user.id, "active_hierarchy", user.active_hierarchy.value, kind.value)
        return await self._write(user, {"active_hierarchy": kind}, [entry])

    async def reassign_binding(
        self,
        user: User,
        node_id: str,
        admin_level: Optional[AdminLevel],
        actor: Actor,
    ) -> User:
        """
        Moves a user to another node (and optionally another level). The actor
        must control the user's current node and may create the resulting
        level/node combination.
        """
        new_level = admin_level or user.admin_level
        async with transaction() as session:
            store = await self.hierarchy_service.load_store(session)
            raise_for_decision(can_manage_user(actor, user.admin_level, user.bindings, store))
            current = binding_for(user.bindings, actor.active_hierarchy)
            decision = raise_for_decision(
                can_reassign_binding(
                    actor,
                    new_level,
                    current.node_id if current is not None else None,
                    node_id,
                    store,
                )
            )
            granted = decision.payload
            binding = granted["binding"]
            if binding is None:
                bindings = []
            else:
                bindings = [b for b in user.bindings if b.kind != binding.kind] + [binding]

            old_binding = binding_for(user.bindings, granted["active_hierarchy"])
            audit_entries = [
                self._audit(
                    actor.id,
                    "binding",
                    old_binding.node_id if old_binding is not None else None,
                    binding.node_id if binding is not None else None,
                )
            ]
            if new_level != user.admin_level:
                audit_entries.append(
                    self._audit(actor.id, "admin_level", user.admin_level.value, new_level.value)
                )

            await self._write(
                user,
                {
                    "admin_level": granted["admin_level"],
                    "role": granted["role"],
                    "active_hierarchy": granted["active_hierarchy"],
                    "bindings": [b.model_dump(mode="json") for b in bindings],
                },
                audit_entries,
                session=session,
            )
            await self.hierarchy_service.touch(node_id, session)
            if old_binding is not None:
                await self.hierarchy_service.touch(old_binding.node_id, session)
        user.bindings = bindings
        logger.info(f"User {user.id} rebound to node {node_id} by {actor.id}")
        return user

    async def soft_delete_user(self, user: User, actor: Actor) -> User:
        """
        Deactivates the account. Refused while the user is the assigned
        administrator of any node; the binding itself is kept.
        """
        administered = await HierarchyNode.find({"admin_id": str(user.id)}).count()
        if administered:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"User still administers {administered} hierarchy node(s).",
            )
        entry = self._audit(actor.id, "is_active", user.is_active, False)
        user = await self._write(user, {"is_active": False}, [entry])
        logger.info(f"User {user.id} soft-deleted by {actor.id}")
        return user

