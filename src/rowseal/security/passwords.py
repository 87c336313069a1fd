"""Password hashing for credential storage, delegated to Argon2id.

This is separate from envelope key derivation: a stored hash lets an
application check a password before attempting to decrypt anything with it.
"""
from __future__ import annotations

from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from rowseal.core.exceptions import InvalidParameterError

DEFAULT_TIME_COST = 3
MIN_TIME_COST = 1
MAX_TIME_COST = 10
DEFAULT_MEMORY_COST = 65536


def _hasher(time_cost: int = DEFAULT_TIME_COST, memory_cost: int = DEFAULT_MEMORY_COST) -> PasswordHasher:
    if not MIN_TIME_COST <= time_cost <= MAX_TIME_COST:
        raise InvalidParameterError(
            f"Time cost must be between {MIN_TIME_COST} and {MAX_TIME_COST}"
        )
    return PasswordHasher(time_cost=time_cost, memory_cost=memory_cost)


def hash_password(
    password: str,
    time_cost: int = DEFAULT_TIME_COST,
    memory_cost: int = DEFAULT_MEMORY_COST,
) -> str:
    """Return an encoded Argon2id hash of ``password``."""
    if not password:
        raise InvalidParameterError("Password must not be empty")
    return _hasher(time_cost, memory_cost).hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Return True when ``password`` matches ``hashed``; malformed hashes never match."""
    if not password or not hashed:
        return False
    try:
        return PasswordHasher().verify(hashed, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def needs_rehash(
    hashed: str,
    time_cost: int = DEFAULT_TIME_COST,
    memory_cost: int = DEFAULT_MEMORY_COST,
) -> bool:
    """True when ``hashed`` was produced with parameters other than the given ones."""
    return _hasher(time_cost, memory_cost).check_needs_rehash(hashed)
