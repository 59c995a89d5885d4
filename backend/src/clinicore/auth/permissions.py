"""Entitlement checks for entity operations."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from clinicore.auth.types import UserContext

if TYPE_CHECKING:
    from clinicore.metadata.loader import EntityModel


class Entitlement(str, Enum):
    """Named permission a route requires."""

    CREATE = "Create"
    READ = "Read"
    UPDATE = "Update"
    DELETE = "Delete"


# Role hierarchy - higher number = more permissions
# Higher roles automatically have all permissions of lower roles
ROLE_HIERARCHY = {
    "readonly": 1,
    "user": 2,
    "manager": 3,
    "admin": 4,
}


def _role_level(role: str | None) -> int:
    """Return numeric level for a role name, 0 if unknown/None."""
    return ROLE_HIERARCHY.get(role or "", 0)


def _user_role_level(user_context: UserContext | None) -> int:
    """Return the highest role level the user holds."""
    if not user_context or not user_context.roles:
        return 0
    return max(_role_level(role) for role in user_context.roles)


def required_role(entity: "EntityModel", entitlement: Entitlement) -> str:
    """Minimum role the entity declares for an entitlement."""
    return getattr(entity.permissions, entitlement.value.lower())


def has_entitlement(
    entity: "EntityModel",
    entitlement: Entitlement,
    user_context: UserContext | None,
    auth_required: bool = True,
) -> tuple[bool, str | None]:
    """Check if the user holds an entitlement on an entity.

    Args:
        entity: The entity model carrying the per-operation minimum roles
        entitlement: Create, Read, Update or Delete
        user_context: The authenticated user context (None if unauthenticated)
        auth_required: Whether authentication is required (False allows everything)

    Returns:
        Tuple of (allowed, error_message). error_message is None if allowed.
    """
    if not user_context:
        if not auth_required:
            return True, None
        return False, "Authentication required"

    role = required_role(entity, entitlement)
    if _user_role_level(user_context) < _role_level(role):
        return False, (
            f"{role.capitalize()} role or higher required for "
            f"{entitlement.value} on {entity.name}"
        )

    return True, None
