"""bcrypt helpers for password digests."""

from __future__ import annotations

import bcrypt

# Fixed work factor for every stored digest.
BCRYPT_ROUNDS = 12

# bcrypt ignores everything past this many bytes.
_MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt digest for ``password``."""
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Return ``True`` when ``password`` matches the stored digest."""
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_MAX_PASSWORD_BYTES]
