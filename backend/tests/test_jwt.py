"""Tests for JWTService."""

import jwt
import pytest

from clinicore.auth.jwt_service import (
    InvalidTokenError,
    JWTError,
    JWTService,
    TokenExpiredError,
)

SECRET = "test-secret-key-that-is-long-enough-for-hs256"


@pytest.fixture
def service():
    return JWTService(SECRET)


class TestAccessTokens:
    def test_round_trip(self, service):
        token = service.issue_token("user-1", role="manager")
        claims = service.verify_token(token)
        assert claims.user_id == "user-1"
        assert claims.role == "manager"
        assert claims.type == "access"
        assert claims.exp - claims.iat == JWTService.ACCESS_TOKEN_TTL

    def test_custom_ttl(self, service):
        claims = service.verify_token(service.issue_token("user-1", ttl=60))
        assert claims.exp - claims.iat == 60

    def test_role_optional(self, service):
        assert service.verify_token(service.issue_token("user-1")).role is None

    def test_expired(self, service):
        token = service.issue_token("user-1", ttl=-10)
        with pytest.raises(TokenExpiredError):
            service.verify_token(token)

    def test_wrong_secret(self, service):
        token = JWTService("another-secret-key-that-is-long-enough").issue_token("user-1")
        with pytest.raises(InvalidTokenError):
            service.verify_token(token)

    def test_garbage(self, service):
        with pytest.raises(JWTError):
            service.verify_token("not-a-token")

    def test_uses_hs256(self, service):
        token = service.issue_token("user-1")
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_foreign_issuer_rejected(self, service):
        token = jwt.encode(
            {"sub": "user-1", "iss": "billing", "iat": 0, "exp": 4102444800},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            service.verify_token(token)

    def test_missing_subject_rejected(self, service):
        token = jwt.encode(
            {"iss": "clinicore", "iat": 0, "exp": 4102444800}, SECRET, algorithm="HS256"
        )
        with pytest.raises(InvalidTokenError):
            service.verify_token(token)

    def test_claims_become_user_context(self, service):
        claims = service.verify_token(service.issue_token("nurse-7", role="user"))
        context = claims.to_user_context()
        assert context.user_id == "nurse-7"
        assert context.roles == ["user"]
