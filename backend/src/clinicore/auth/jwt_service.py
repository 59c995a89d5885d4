"""Bearer tokens carrying a clinic user's id and role."""

import time

import jwt

from clinicore.auth.types import TokenClaims

ISSUER = "clinicore"
ACCESS = "access"


class JWTError(Exception):
    """A bearer token could not be accepted."""


class TokenExpiredError(JWTError):
    pass


class InvalidTokenError(JWTError):
    """Bad signature, wrong issuer, missing claims or not a token at all."""


class JWTService:
    """Issues and verifies HS256 access tokens signed with the app secret.

    Tokens name their subject (``sub``), optional ``role`` and are stamped
    with ``iss=clinicore`` so tokens minted for other services sharing the
    secret are refused.
    """

    ACCESS_TOKEN_TTL = 15 * 60
    REQUIRED_CLAIMS = ["sub", "iat", "exp", "iss"]

    def __init__(self, secret_key: str, algorithm: str = "HS256", leeway: int = 0):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._leeway = leeway

    def issue_token(self, user_id: str, role: str | None = None, ttl: int | None = None) -> str:
        """Sign an access token for *user_id*, valid for *ttl* seconds."""
        issued_at = int(time.time())
        lifetime = self.ACCESS_TOKEN_TTL if ttl is None else ttl
        payload = {
            "sub": user_id,
            "iss": ISSUER,
            "iat": issued_at,
            "exp": issued_at + lifetime,
            "type": ACCESS,
        }
        if role:
            payload["role"] = role
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify_token(self, token: str) -> TokenClaims:
        """Check signature, issuer and expiry, then return the claims.

        Raises:
            TokenExpiredError: ``exp`` is in the past
            InvalidTokenError: Anything else PyJWT rejects
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                issuer=ISSUER,
                leeway=self._leeway,
                options={"require": self.REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(f"Invalid token: {exc}") from exc
        return TokenClaims.from_payload(payload)
