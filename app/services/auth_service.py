"""Password hashing for the in-memory identity provider (argon2id)."""

from __future__ import annotations

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

logger = logging.getLogger(__name__)

# Argon2 hash strings encode parameters + salt, so no separate salt column.
_ph = PasswordHasher()


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _ph.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def rehash_if_needed(plain_password: str, password_hash: str) -> str | None:
    """Return a fresh hash when the stored one uses outdated parameters."""
    try:
        if _ph.check_needs_rehash(password_hash):
            return _ph.hash(plain_password)
    except InvalidHash:
        logger.warning("Stored password hash is not a valid argon2 hash")
    return None
