"""Identity carried by bearer tokens and attached to requests."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class UserContext:
    """Who is calling. ``user_id`` is None for anonymous requests."""

    user_id: str | None = None
    roles: list[str] = field(default_factory=list)


@dataclass
class TokenClaims:
    user_id: str
    role: str | None = None
    exp: int = 0
    iat: int = 0
    type: str = "access"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenClaims":
        return cls(
            user_id=payload["sub"],
            role=payload.get("role"),
            exp=payload["exp"],
            iat=payload["iat"],
            type=payload.get("type", "access"),
        )

    @property
    def is_access(self) -> bool:
        return self.type == "access"

    def to_user_context(self) -> UserContext:
        return UserContext(user_id=self.user_id, roles=[self.role] if self.role else [])
