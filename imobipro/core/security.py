"""Security primitives for password workflows."""

from __future__ import annotations

import hashlib
import hmac


def hash_password(password: str, pepper: str = "") -> str:
    """Return a deterministic peppered SHA-256 hash."""
    value = f"{pepper}:{password}".encode("utf-8")
    return hashlib.sha256(value).hexdigest()


def verify_password(password: str, hashed_password: str, pepper: str = "") -> bool:
    """Constant-time comparison for hashed password values."""
    candidate = hash_password(password=password, pepper=pepper)
    return hmac.compare_digest(candidate, hashed_password)


def verify_shared_secret(provided: str | None, expected: str | None) -> bool:
    """Constant-time check of a webhook shared secret; unset secret rejects all."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
