"""Password-based key derivation for rowseal envelopes."""
import os
from typing import Dict, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from rowseal.core.config import DEFAULT_POLICY, KEY_SIZE, EncryptionPolicy
from rowseal.core.exceptions import InvalidParameterError
from .memory import secure_copy, wiped


def generate_salt(length: int = DEFAULT_POLICY.default_salt_length) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def derive_key(
    password: Union[str, bytes, bytearray],
    salt: bytes,
    iterations: int,
    key_len: int = KEY_SIZE,
    policy: EncryptionPolicy = DEFAULT_POLICY,
) -> bytearray:
    """
    Derive a symmetric key from a password using PBKDF2-HMAC-SHA-256.

    The result is deterministic for a given (password, salt, iterations), so
    callers may derive once and reuse the key. It is returned as a
    ``bytearray`` so the caller can wipe it when done.
    """
    policy.check_salt(salt)
    policy.check_iterations(iterations)
    if key_len <= 0:
        raise InvalidParameterError("Key length must be positive")
    if password is None or len(password) == 0:
        raise InvalidParameterError("Password must not be empty")

    secret = secure_copy(password)
    with wiped(secret):
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=key_len,
            salt=bytes(salt),
            iterations=iterations,
        )
        return bytearray(kdf.derive(secret))


def kdf_params_to_dict(salt: bytes, iterations: int) -> Dict:
    return {
        "algo": "pbkdf2-sha256",
        "salt": salt.hex(),
        "iterations": iterations,
    }
