"""FastAPI dependencies for authentication and request context."""

import logging
from typing import Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError
from pydantic import ValidationError as PydanticValidationError

from ..schemas.actor import Actor, ActorRole
from .clock import Clock, utc_now
from .config import settings
from .exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
_KNOWN_ROLES = {role.value for role in ActorRole}


def decode_actor(token: str) -> Actor:
    """
    Validate a bearer token and build the calling actor.

    Raises:
        AuthenticationError: If the token is invalid, expired or has no subject
    """
    try:
        payload = jwt.decode(token, settings.bearer_token_secret, algorithms=[JWT_ALGORITHM])
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {e}") from e

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError(detail="Invalid token payload")

    roles_claim = payload.get("roles", [])
    if not isinstance(roles_claim, list):
        raise AuthenticationError(detail="Invalid token payload")

    roles = [role for role in roles_claim if isinstance(role, str) and role in _KNOWN_ROLES]
    try:
        return Actor(user_id=str(user_id), username=payload.get("username"), roles=roles)
    except PydanticValidationError as e:
        raise AuthenticationError(detail="Invalid token payload") from e


async def get_current_actor(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Actor:
    """
    Authentication dependency that validates Bearer tokens.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        Actor: Caller identity from the validated token

    Raises:
        AuthenticationError: If the header is missing or the token is invalid
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    return decode_actor(token)


async def require_manager(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency for operations reserved to fleet managers and admins."""
    if not actor.is_manager:
        logger.warning(
            "Manager-only operation refused",
            extra={"user_id": actor.user_id, "roles": [r.value for r in actor.roles]}
        )
        raise AuthorizationError(
            required_roles=[ActorRole.FLEET_MANAGER.value, ActorRole.ADMIN.value]
        )
    return actor


def get_clock() -> Clock:
    """Clock dependency; overridden in tests to freeze time."""
    return utc_now


RequiredActor = Depends(get_current_actor)
ManagerActor = Depends(require_manager)
ClockDependency = Depends(get_clock)
