"""
Unit Tests for Security Module.

Black box tests against the public interface of security.py.
bcrypt and JWT execute for real; only the config boundary is stubbed
with real Pydantic schema objects.
"""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from crm.backend.core.config_schema import JwtSchema
from crm.backend.core.dependencies import CurrentUser
from crm.backend.core.exceptions import AuthenticationError
from crm.backend.core.security import (
    create_access_token,
    decode_token,
    generate_temporary_password,
    hash_password,
    verify_password,
)

TEST_JWT_SECRET = "unit-test-secret-key-that-is-long-enough"


@pytest.fixture
def jwt_config():
    return JwtSchema(algorithm="HS256", access_token_expire_minutes=30, audience="test-dashboard")


@pytest.fixture
def _stub_config(jwt_config):
    settings = SimpleNamespace(jwt_secret=TEST_JWT_SECRET)
    app_config = SimpleNamespace(security=SimpleNamespace(jwt=jwt_config))
    with (
        patch("crm.backend.core.security.get_settings", return_value=settings),
        patch("crm.backend.core.security.get_app_config", return_value=app_config),
    ):
        yield


# =============================================================================
# Password Hashing
# =============================================================================


class TestPasswords:
    def test_hash_is_bcrypt(self):
        hashed = hash_password("motdepasse")
        assert hashed != "motdepasse"
        assert hashed.startswith("$2b$")

    def test_verify_round_trip(self):
        hashed = hash_password("motdepasse")
        assert verify_password("motdepasse", hashed) is True
        assert verify_password("autre", hashed) is False

    def test_verify_rejects_non_bcrypt_value(self):
        assert verify_password("motdepasse", "plain-text") is False

    def test_temporary_password_length(self):
        password = generate_temporary_password(12)
        assert len(password) == 12
        assert password != generate_temporary_password(12)


# =============================================================================
# Access Tokens
# =============================================================================


@pytest.mark.usefixtures("_stub_config")
class TestAccessTokens:
    def test_claims_survive_encoding(self):
        token = create_access_token({"sub": "7", "tenant_id": 1, "role": "tenant_owner"})

        claims = decode_token(token)

        assert claims["sub"] == "7"
        assert claims["tenant_id"] == 1
        assert claims["type"] == "access"
        assert claims["aud"] == "test-dashboard"

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "7"}, expires_delta=timedelta(seconds=-5))
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_tampered_token_rejected(self):
        token = create_access_token({"sub": "7"})
        with pytest.raises(AuthenticationError):
            decode_token(token[:-2] + ("AA" if token[-2:] != "AA" else "BB"))

    def test_wrong_audience_rejected(self, jwt_config):
        token = create_access_token({"sub": "7"})
        other = SimpleNamespace(security=SimpleNamespace(jwt=jwt_config.model_copy(update={"audience": "other"})))
        with patch("crm.backend.core.security.get_app_config", return_value=other):
            with pytest.raises(AuthenticationError):
                decode_token(token)


class TestCurrentUser:
    def test_from_claims(self):
        user = CurrentUser.from_claims({
            "sub": "12", "tenant_id": 3, "role": "tenant_admin", "email": "a@b.fr",
        })
        assert user.id == 12
        assert user.tenant_id == 3
        assert user.is_admin is True
        assert user.is_impersonating is False

    def test_impersonation_claim(self):
        user = CurrentUser.from_claims({
            "sub": "20", "tenant_id": 3, "role": "tenant_user", "original_user_id": 12,
        })
        assert user.is_admin is False
        assert user.is_impersonating is True

    def test_missing_claims_rejected(self):
        with pytest.raises(AuthenticationError):
            CurrentUser.from_claims({"sub": "12"})
