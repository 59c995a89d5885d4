"""FastAPI dependencies for authentication."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from fastapi import HTTPException, Request

from clinicore.auth.middleware import get_user_context
from clinicore.auth.permissions import Entitlement, has_entitlement
from clinicore.auth.types import UserContext

if TYPE_CHECKING:
    from clinicore.metadata.loader import EntityModel


def require_entitlement(
    entity: "EntityModel", entitlement: Entitlement
) -> Callable[[Request], UserContext | None]:
    """Create a dependency that requires an entitlement on an entity.

    Authentication is required unless the application was started with
    auth disabled (``app.state.auth_required`` is False).

    Args:
        entity: The entity the route operates on
        entitlement: The entitlement the route declares

    Returns:
        A FastAPI dependency function

    Example:
        @router.post("", dependencies=[Depends(require_entitlement(entity, Entitlement.CREATE))])
        def create(...):
            ...
    """

    def dependency(request: Request) -> UserContext | None:
        user_context = get_user_context(request)
        auth_required = getattr(request.app.state, "auth_required", True)

        allowed, error_msg = has_entitlement(
            entity, entitlement, user_context, auth_required=auth_required
        )
        if allowed:
            return user_context

        if user_context is None:
            raise HTTPException(
                status_code=401,
                detail=error_msg,
                headers={"WWW-Authenticate": "Bearer"},
            )
        raise HTTPException(status_code=403, detail=error_msg)

    return dependency
