"""Authentication and entitlement checks for clinicore."""

from clinicore.auth.types import TokenClaims, UserContext
from clinicore.auth.jwt_service import (
    InvalidTokenError,
    JWTError,
    JWTService,
    TokenExpiredError,
)
from clinicore.auth.middleware import AuthMiddleware, get_user_context
from clinicore.auth.dependencies import require_entitlement
from clinicore.auth.permissions import (
    ROLE_HIERARCHY,
    Entitlement,
    has_entitlement,
    required_role,
)

__all__ = [
    "TokenClaims",
    "UserContext",
    "InvalidTokenError",
    "JWTError",
    "JWTService",
    "TokenExpiredError",
    "AuthMiddleware",
    "get_user_context",
    "require_entitlement",
    "ROLE_HIERARCHY",
    "Entitlement",
    "has_entitlement",
    "required_role",
]
