"""Authenticated caller passed explicitly into service operations."""

from enum import Enum

from pydantic import BaseModel, Field


class ActorRole(str, Enum):
    """Roles carried in bearer token claims."""
    CUSTOMER = "customer"
    DRIVER = "driver"
    FLEET_MANAGER = "fleet_manager"
    ADMIN = "admin"


class Actor(BaseModel):
    """The user on whose behalf an operation runs."""

    user_id: str = Field(..., min_length=1, max_length=128, description="Token subject")
    username: str | None = Field(None, description="Display name from the token")
    roles: list[ActorRole] = Field(default_factory=list, description="Granted roles")

    def has_role(self, *roles: ActorRole) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def is_admin(self) -> bool:
        return ActorRole.ADMIN in self.roles

    @property
    def is_manager(self) -> bool:
        """Fleet managers and admins manage every booking."""
        return self.has_role(ActorRole.FLEET_MANAGER, ActorRole.ADMIN)

    @property
    def primary_role(self) -> str:
        """Most privileged role, recorded in the audit trail."""
        for role in (ActorRole.ADMIN, ActorRole.FLEET_MANAGER, ActorRole.DRIVER, ActorRole.CUSTOMER):
            if role in self.roles:
                return role.value
        return "unknown"
