"""
security helpers:
- Argon2 password hashing via argon2-cffi
- constant-time comparison for opaque token strings
- JTI generation for token identifiers
"""
from __future__ import annotations

import hmac
import uuid

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

ph = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify a plaintext password against a stored Argon2 hash.

    Returns False on mismatch or on a stored value that is not a valid hash.
    """
    if not password or not password_hash:
        return False
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def tokens_equal(candidate: str | None, stored: str | None) -> bool:
    """Bit-equality of two token strings, constant time in their content."""
    if candidate is None or stored is None:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), stored.encode("utf-8"))


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())
