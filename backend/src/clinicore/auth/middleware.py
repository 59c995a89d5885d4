"""Attach the bearer identity to each request."""

import logging

from fastapi.security.utils import get_authorization_scheme_param
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from clinicore.auth.jwt_service import JWTError, JWTService
from clinicore.auth.types import UserContext

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """Sets ``request.state.user_context`` from an ``Authorization: Bearer`` header.

    Requests are never rejected here. A missing, expired or foreign token
    leaves the context as None and the route's entitlement dependency
    decides between 401 and 403.
    """

    def __init__(self, app, jwt_service: JWTService):
        super().__init__(app)
        self._jwt_service = jwt_service

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.user_context = self._identify(request)
        return await call_next(request)

    def _identify(self, request: Request) -> UserContext | None:
        scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
        if scheme.lower() != "bearer" or not token:
            return None
        try:
            claims = self._jwt_service.verify_token(token)
        except JWTError as exc:
            logger.debug("Ignoring bearer token on %s: %s", request.url.path, exc)
            return None
        if not claims.is_access:
            logger.debug("Ignoring %s token for %s", claims.type, claims.user_id)
            return None
        return claims.to_user_context()


def get_user_context(request: Request) -> UserContext | None:
    return getattr(request.state, "user_context", None)
