"""
Password hashing and bearer tokens.

Passwords are hashed with bcrypt at a configurable cost. Access tokens are
HS256 JWTs carrying the user id and email:

    {"userId": "user_...", "email": "jane@example.com", "iat": ..., "exp": ...}
"""

from datetime import UTC, datetime, timedelta

import bcrypt
import jwt
from pydantic import BaseModel, ConfigDict, Field

ALGORITHM = "HS256"

# bcrypt ignores everything past this many bytes
BCRYPT_MAX_BYTES = 72


class InvalidTokenError(Exception):
    """Raised when a token is malformed, tampered with or expired."""


class TokenClaims(BaseModel):
    """Identity carried by an access token."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    email: str


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash a password with a fresh salt.

    Raises:
        ValueError: If the password is longer than bcrypt can hash
    """
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password cannot exceed {BCRYPT_MAX_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of a password against its hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    user_id: str, email: str, secret: str, ttl: timedelta = timedelta(hours=24)
) -> str:
    now = datetime.now(UTC)
    payload = {
        "userId": user_id,
        "email": email,
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> TokenClaims:
    """
    Verify a token's signature and expiry and return its claims.

    Raises:
        InvalidTokenError: If the token cannot be trusted
    """
    try:
        payload = jwt.decode(
            token, secret, algorithms=[ALGORITHM], options={"require": ["exp", "iat"]}
        )
        return TokenClaims.model_validate(payload)
    except (jwt.PyJWTError, ValueError) as e:
        raise InvalidTokenError("Invalid or expired token") from e
