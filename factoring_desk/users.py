"""
User Module

Desk staff and the clients assigned to them. Roles are descriptive only; no
permission is enforced from them.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .repositories import Repository
from .audit import AuditTrail, AuditEventType


class UserRole(Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    ACCOUNT_EXECUTIVE = "account_executive"
    COLLECTOR = "collector"


@dataclass
class User(StorageRecord):
    name: str
    email: str
    role: UserRole = UserRole.COLLECTOR
    phone: Optional[str] = None
    assigned_clients: List[str] = field(default_factory=list)   # Client ids

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        data = cls.parse_timestamps(data)
        data['role'] = UserRole(data['role'])
        data['assigned_clients'] = list(data.get('assigned_clients') or [])
        return cls(**data)


class UserRepository(Repository[User]):

    def __init__(self, storage: StorageInterface, table: str = "users"):
        super().__init__(storage, table, User.to_dict, User.from_dict)

    def get_by_email(self, email: str) -> Optional[User]:
        matches = self.find(email=email)
        return matches[0] if matches else None


USER_FIELDS = {'name', 'email', 'role', 'phone'}


class UserManager:
    """
    Manages desk users and their client assignments
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.users = UserRepository(storage)

    def create_user(
        self,
        name: str,
        email: str,
        role: UserRole = UserRole.COLLECTOR,
        phone: Optional[str] = None
    ) -> User:
        """
        Create a user

        Raises:
            ValueError: If name or email is missing or the email is taken
        """
        if not name:
            raise ValueError("User name is required")
        if not email:
            raise ValueError("User email is required")
        if self.users.get_by_email(email):
            raise ValueError(f"User with email {email} already exists")

        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            email=email,
            role=role,
            phone=phone
        )
        self.users.append(user)

        self.audit_trail.log_event(
            event_type=AuditEventType.USER_CREATED,
            entity_type="user",
            entity_id=user.id,
            metadata={"name": name, "email": email, "role": role}
        )
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def list_users(self) -> List[User]:
        return self.users.list()

    def update_user(self, user_id: str, **updates: Any) -> User:
        user = self._require_user(user_id)
        unknown = set(updates) - USER_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        new_email = updates.get('email')
        if new_email and new_email != user.email and self.users.get_by_email(new_email):
            raise ValueError(f"User with email {new_email} already exists")

        updated = replace(user, **updates)
        return self._save(updated, {"fields": sorted(updates)})

    def assign_client(self, user_id: str, client_id: str) -> User:
        """Assign a client to a user; assigning twice is a no-op"""
        user = self._require_user(user_id)
        if client_id in user.assigned_clients:
            return user
        user.assigned_clients.append(client_id)
        return self._save(user, {"assigned_client": client_id})

    def remove_client(self, user_id: str, client_id: str) -> User:
        """Remove a client assignment"""
        user = self._require_user(user_id)
        if client_id not in user.assigned_clients:
            raise ValueError(f"Client {client_id} is not assigned to user {user_id}")
        user.assigned_clients.remove(client_id)
        return self._save(user, {"removed_client": client_id})

    def delete_user(self, user_id: str) -> bool:
        user = self.get_user(user_id)
        if not user:
            return False
        self.users.delete(user_id)
        self.audit_trail.log_event(
            event_type=AuditEventType.USER_DELETED,
            entity_type="user",
            entity_id=user_id,
            metadata={"email": user.email}
        )
        return True

    def _require_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if not user:
            raise ValueError(f"User {user_id} not found")
        return user

    def _save(self, user: User, metadata: Dict[str, Any]) -> User:
        user.updated_at = datetime.now(timezone.utc)
        self.users.update(user)
        self.audit_trail.log_event(
            event_type=AuditEventType.USER_UPDATED,
            entity_type="user",
            entity_id=user.id,
            metadata=metadata
        )
        return user
