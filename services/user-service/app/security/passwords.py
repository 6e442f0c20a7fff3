"""Utilities for password hashing and verification."""

from __future__ import annotations

from functools import lru_cache

import bcrypt

from ..config import get_settings

# bcrypt only reads the first 72 bytes of a password and recent releases refuse longer input.
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a plain text password using bcrypt with the configured cost factor."""
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain text password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _decoy_hash() -> str:
    return hash_password("decoy-password-for-unknown-users")


def burn_verification(plain_password: str) -> None:
    """Spend one bcrypt comparison so unknown usernames cost the same as known ones."""
    verify_password(plain_password, _decoy_hash())
