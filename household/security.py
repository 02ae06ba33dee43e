"""
Password hashing and session token utilities.

Responsibilities:
- Hash and verify passwords with bcrypt
- Generate url-safe session tokens
- Derive the SHA-256 digest stored in the sessions table (raw tokens are never stored)
"""

from __future__ import annotations

import hashlib
import secrets

import bcrypt

# bcrypt only considers the first 72 bytes of the password.
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    digest = bcrypt.hashpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], bcrypt.gensalt())
    return digest.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:BCRYPT_MAX_BYTES], password_hash.encode("utf-8")
        )
    except ValueError:
        # Malformed hash in the database.
        return False


def generate_session_token(length: int = 32) -> str:
    """Return a high-entropy url-safe token (approx 43 chars for 32 bytes)."""
    return secrets.token_urlsafe(length)


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
