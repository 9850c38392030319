"""Domain Entities - Auth and role capabilities"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from typing import Dict, FrozenSet, Optional

from domain.enums import UserRole, Capability
from domain.exceptions import AuthorizationError

_EVERYONE = frozenset({
    Capability.VIEW_ROOMS,
    Capability.VIEW_RESERVATIONS,
    Capability.MAKE_RESERVATION,
    Capability.SYNC,
})

ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.GUEST: _EVERYONE,
    UserRole.STAFF: _EVERYONE | {Capability.MANAGE_ROOMS},
    UserRole.ADMIN: _EVERYONE | {
        Capability.MANAGE_ROOMS,
        Capability.VIEW_STATISTICS,
        Capability.MANAGE_HISTORY,
    },
}


def has_capability(role: UserRole, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def ensure_capability(role: UserRole, capability: Capability) -> None:
    if not has_capability(role, capability):
        raise AuthorizationError(f"Role '{role.value}' is not allowed to {capability.value}")


class User(BaseModel):
    """User Entity"""
    user_id: UUID = Field(default_factory=uuid4)
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole = UserRole.GUEST
    disabled: bool = False

    class Config:
        from_attributes = True

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)


class UserInDB(User):
    """User with hashed password for DB storage"""
    hashed_password: str
