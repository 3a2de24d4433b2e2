"""
Password hashing and JWT tests
"""

import jwt
import pytest
from freezegun import freeze_time

from profit_tracker.auth import (
    AuthError,
    TokenIssuer,
    hash_password,
    validate_password,
    verify_password,
)
from profit_tracker.models import User, ValidationError

SECRET = "unit-test-secret-with-enough-length-0123"


@pytest.fixture
def user():
    return User(id="user-1", email="trader@example.com", password_hash="", username="trader")


class TestPasswords:

    def test_hash_round_trip(self):
        encoded = hash_password("hunter22", rounds=4)

        assert encoded.startswith("$2b$04$")
        assert verify_password("hunter22", encoded)
        assert not verify_password("hunter23", encoded)

    def test_salted(self):
        assert hash_password("hunter22", rounds=4) != hash_password("hunter22", rounds=4)

    def test_malformed_hash(self):
        assert not verify_password("hunter22", "not-a-hash")
        assert not verify_password("hunter22", "pbkdf2_sha256$1000$abc$def")

    def test_minimum_length(self):
        assert validate_password("123456") == "123456"
        with pytest.raises(ValidationError):
            validate_password("12345")
        with pytest.raises(ValidationError):
            validate_password(None)

    def test_maximum_length(self):
        assert validate_password("x" * 72) == "x" * 72
        with pytest.raises(ValidationError):
            validate_password("x" * 73)
        with pytest.raises(ValidationError):
            # 37 two-byte characters are 74 bytes
            validate_password("é" * 37)


class TestTokenIssuer:

    def test_claims(self, user):
        issuer = TokenIssuer(SECRET)

        claims = issuer.verify(issuer.issue(user))

        assert claims["userId"] == "user-1"
        assert claims["email"] == "trader@example.com"
        assert claims["exp"] - claims["iat"] == 7 * 24 * 3600

    def test_bearer_header(self, user):
        issuer = TokenIssuer(SECRET)
        token = issuer.issue(user)

        assert issuer.verify_header(f"Bearer {token}")["userId"] == "user-1"
        with pytest.raises(AuthError):
            issuer.verify_header(token)
        with pytest.raises(AuthError):
            issuer.verify_header("")

    def test_expired_token(self, user):
        issuer = TokenIssuer(SECRET, ttl_seconds=60)
        with freeze_time("2024-03-05 12:00:00"):
            token = issuer.issue(user)

        with freeze_time("2024-03-05 12:01:01"):
            with pytest.raises(AuthError, match="expired"):
                issuer.verify(token)

    def test_wrong_secret(self, user):
        token = TokenIssuer(SECRET).issue(user)
        with pytest.raises(AuthError):
            TokenIssuer(SECRET + "-other").verify(token)

    def test_token_without_user_id(self):
        token = jwt.encode({"email": "trader@example.com"}, SECRET, algorithm="HS256")
        with pytest.raises(AuthError):
            TokenIssuer(SECRET).verify(token)

    def test_secret_required(self):
        with pytest.raises(ValueError):
            TokenIssuer("")
