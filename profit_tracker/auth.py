"""Password hashing and bearer token handling."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict

import bcrypt
import jwt

from .models import User, ValidationError

LOGGER = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# bcrypt only reads the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72
BCRYPT_ROUNDS = 10
JWT_ALGORITHM = "HS256"


class AuthError(Exception):
    """Missing, invalid or expired credentials."""


def validate_password(password: Any) -> str:
    if not isinstance(password, str) or not password:
        raise ValidationError("Email and password are required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long.")
    return password


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    """Salted bcrypt hash of ``password`` as a text string."""

    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash, or a password bcrypt refuses
        return False


class TokenIssuer:
    """Issues and verifies HS256 JWTs carrying the user id and email."""

    def __init__(self, secret: str, ttl_seconds: int = 7 * 24 * 3600) -> None:
        if not secret:
            raise ValueError("JWT secret is required")
        self.secret = secret
        self.ttl_seconds = ttl_seconds

    def issue(self, user: User) -> str:
        now = int(time.time())
        payload = {
            "userId": user.id,
            "email": user.email,
            "iat": now,
            "exp": now + self.ttl_seconds,
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            LOGGER.info("Rejected bearer token: %s", exc)
            raise AuthError("Invalid token") from exc
        if "userId" not in claims:
            raise AuthError("Invalid token")
        return claims

    def verify_header(self, header: str) -> Dict[str, Any]:
        """Validate an ``Authorization: Bearer <token>`` header value."""
        if not header or not header.startswith("Bearer "):
            raise AuthError("Access denied. No token provided.")
        return self.verify(header[len("Bearer "):].strip())
