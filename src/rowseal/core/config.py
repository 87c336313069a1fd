"""
Process-wide encryption policy and wire constants.

The policy is fixed at startup and only ever read afterwards, so it is safe to
share between threads. Applications that want different defaults build their
own policy with :func:`load_policy` (or the dataclass directly) and pass it to
the engine; nothing in the package mutates it.

Environment overrides:

- ``ROWSEAL_DEFAULT_ITERATIONS``
- ``ROWSEAL_DEFAULT_SALT_LENGTH``
- ``ROWSEAL_MAX_FIELDS``
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .exceptions import InvalidParameterError


# ----------------------------------------------------------------------
# Wire constants
# ----------------------------------------------------------------------
NONCE_SIZE = 12  # 96-bit GCM nonce
TAG_SIZE = 16  # 128-bit GCM tag
KEY_SIZE = 32  # AES-256
FORMAT_VERSION = 1

ALGORITHM_AES_GCM = "AES-GCM"
SUPPORTED_ALGORITHMS = (ALGORITHM_AES_GCM,)
ALGORITHM_ALIASES = {"AES-256-GCM": ALGORITHM_AES_GCM, "AESGCM": ALGORITHM_AES_GCM}

# ----------------------------------------------------------------------
# Hard bounds (the policy may narrow them, never widen them)
# ----------------------------------------------------------------------
MIN_ITERATIONS = 1000
MAX_ITERATIONS = 100000
MIN_SALT_LENGTH = 8
MAX_SALT_LENGTH = 64
MAX_FIELDS = 1000


def normalize_algorithm(name: Optional[str]) -> Optional[str]:
    """Return the canonical algorithm id, or ``None`` when unrecognized."""
    if not name:
        return None
    key = name.strip().upper()
    if key in SUPPORTED_ALGORITHMS:
        return key
    return ALGORITHM_ALIASES.get(key)


@dataclass(frozen=True)
class EncryptionPolicy:
    min_iterations: int = MIN_ITERATIONS
    max_iterations: int = MAX_ITERATIONS
    default_iterations: int = 10000
    recommended_iterations: int = 10000
    min_salt_length: int = MIN_SALT_LENGTH
    max_salt_length: int = MAX_SALT_LENGTH
    default_salt_length: int = 32
    recommended_salt_length: int = 16
    max_fields: int = MAX_FIELDS

    def __post_init__(self):
        if not MIN_ITERATIONS <= self.min_iterations <= self.max_iterations <= MAX_ITERATIONS:
            raise InvalidParameterError(
                f"Iteration bounds must lie within {MIN_ITERATIONS}..{MAX_ITERATIONS}"
            )
        if not MIN_SALT_LENGTH <= self.min_salt_length <= self.max_salt_length <= MAX_SALT_LENGTH:
            raise InvalidParameterError(
                f"Salt length bounds must lie within {MIN_SALT_LENGTH}..{MAX_SALT_LENGTH}"
            )
        if not self.iterations_allowed(self.default_iterations):
            raise InvalidParameterError(
                f"Default iterations must be between {self.min_iterations} and {self.max_iterations}"
            )
        if not self.salt_length_allowed(self.default_salt_length):
            raise InvalidParameterError(
                f"Default salt length must be between {self.min_salt_length} and {self.max_salt_length} bytes"
            )
        if not 1 <= self.max_fields <= MAX_FIELDS:
            raise InvalidParameterError(f"max_fields must be between 1 and {MAX_FIELDS}")

    def iterations_allowed(self, iterations: int) -> bool:
        return self.min_iterations <= iterations <= self.max_iterations

    def salt_length_allowed(self, length: int) -> bool:
        return self.min_salt_length <= length <= self.max_salt_length

    def check_iterations(self, iterations) -> int:
        if isinstance(iterations, bool) or not isinstance(iterations, int):
            raise InvalidParameterError("Iterations must be an integer")
        if not self.iterations_allowed(iterations):
            raise InvalidParameterError(
                f"Iterations must be between {self.min_iterations} and {self.max_iterations}"
            )
        return iterations

    def check_salt(self, salt) -> bytes:
        if not isinstance(salt, (bytes, bytearray, memoryview)):
            raise InvalidParameterError("Salt must be bytes")
        if not self.salt_length_allowed(len(salt)):
            raise InvalidParameterError(
                f"Salt length must be between {self.min_salt_length} and {self.max_salt_length} bytes"
            )
        return bytes(salt)

    @property
    def min_envelope_size(self) -> int:
        return self.min_salt_length + NONCE_SIZE + TAG_SIZE


DEFAULT_POLICY = EncryptionPolicy()


def _int_from_env(environ: Mapping[str, str], name: str, fallback: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return fallback
    try:
        return int(raw.strip())
    except ValueError:
        raise InvalidParameterError(f"{name} must be an integer") from None


def load_policy(environ: Optional[Mapping[str, str]] = None) -> EncryptionPolicy:
    """Build a policy from ``ROWSEAL_*`` environment variables."""
    env = os.environ if environ is None else environ
    base = DEFAULT_POLICY
    return EncryptionPolicy(
        default_iterations=_int_from_env(env, "ROWSEAL_DEFAULT_ITERATIONS", base.default_iterations),
        default_salt_length=_int_from_env(env, "ROWSEAL_DEFAULT_SALT_LENGTH", base.default_salt_length),
        max_fields=_int_from_env(env, "ROWSEAL_MAX_FIELDS", base.max_fields),
    )
