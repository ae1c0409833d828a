"""
Security utilities for password hashing, store auth cookies and one-time tokens.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from itsdangerous import URLSafeTimedSerializer
from passlib.context import CryptContext

# Password hashing context using bcrypt
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

AUTH_COOKIE_NAME = "AuthSession"
AUTH_COOKIE_SALT = "account-gateway-auth-session"


def hash_password(plain_password: str) -> str:
    """
    Hash a plain password using bcrypt.

    Args:
        plain_password: The plain text password to hash

    Returns:
        Hashed password string
    """
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a plain password against a hashed password.

    Args:
        plain_password: The plain text password to verify
        hashed_password: The stored hash, may be missing

    Returns:
        True if password matches, False otherwise
    """
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def generate_token() -> str:
    """Generate an opaque single-use token for reset and verification links."""
    return str(uuid.uuid1())


def is_token_expired(issued_at: Optional[datetime], ttl_hours: Optional[int]) -> bool:
    """
    Check whether a token issued at ``issued_at`` has outlived its TTL.

    Tokens without an issue time, or a gateway configured without a TTL,
    never expire.
    """
    if issued_at is None or ttl_hours is None:
        return False
    if issued_at.tzinfo is None:
        # pymongo hands back naive UTC datetimes
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) > issued_at + timedelta(hours=ttl_hours)


def _auth_serializer(secret: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret, salt=AUTH_COOKIE_SALT)


def create_auth_cookie(secret: str, name: str, roles: list[str]) -> str:
    """
    Sign the store's authentication cookie for an authenticated principal.

    Args:
        secret: Store signing secret
        name: Principal name
        roles: Principal roles

    Returns:
        Signed cookie value
    """
    return _auth_serializer(secret).dumps({"name": name, "roles": roles})


def decode_auth_cookie(secret: str, cookie: str, max_age_seconds: int) -> dict[str, Any]:
    """
    Decode and validate a store authentication cookie.

    Raises:
        BadSignature: If the cookie is tampered with or expired
    """
    return _auth_serializer(secret).loads(cookie, max_age=max_age_seconds)
