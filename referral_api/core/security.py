"""
Security utilities - password hashing and opaque token generation
"""
import hashlib
import hmac
import secrets
from typing import Optional

import bcrypt

from referral_api.core.config import settings


def get_password_hash(password: str, rounds: Optional[int] = None) -> str:
    """Generate a salted bcrypt hash"""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash. Malformed or missing hashes never match."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        return False


def generate_token(nbytes: int = 32) -> str:
    """Random hex token for email verification and password reset links."""
    return secrets.token_hex(nbytes)


def generate_session_id() -> str:
    """Random url-safe session identifier for the session cookie."""
    return secrets.token_urlsafe(32)


def hash_session_id(session_id: str) -> str:
    """Keyed digest used as the session row key, so stored rows are not usable cookies."""
    return hmac.new(
        settings.SECRET_KEY.encode("utf-8"),
        session_id.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
