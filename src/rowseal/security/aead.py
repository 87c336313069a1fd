"""AES-256-GCM provider behind a narrow interface.

The envelope codec only needs two operations, so any certified AES-256-GCM
implementation can be swapped in by implementing :class:`AeadProvider`.
``decrypt`` reports a tag mismatch by returning ``None`` instead of raising,
which lets the salt-length probe run as a plain loop.
"""
from __future__ import annotations

from typing import Optional, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from rowseal.core.config import KEY_SIZE, NONCE_SIZE, TAG_SIZE
from rowseal.core.exceptions import InvalidParameterError


class AeadProvider(Protocol):
    def encrypt(self, plaintext: bytes, key: bytes, nonce: bytes) -> bytes:
        """Return ``ciphertext || tag``."""
        ...

    def decrypt(self, ciphertext_with_tag: bytes, key: bytes, nonce: bytes) -> Optional[bytes]:
        """Return the plaintext, or ``None`` when the tag does not verify."""
        ...


def _check_key_and_nonce(key: Optional[bytes], nonce: Optional[bytes]) -> None:
    if key is None or len(key) != KEY_SIZE:
        raise InvalidParameterError(f"Key must be {KEY_SIZE} bytes")
    if nonce is None or len(nonce) != NONCE_SIZE:
        raise InvalidParameterError(f"Nonce must be {NONCE_SIZE} bytes")


class AesGcmProvider:
    """AES-256-GCM via :class:`cryptography.hazmat.primitives.ciphers.aead.AESGCM`."""

    name = "AES-GCM"

    def encrypt(self, plaintext: bytes, key: bytes, nonce: bytes) -> bytes:
        _check_key_and_nonce(key, nonce)
        aead = AESGCM(bytes(key))
        return aead.encrypt(bytes(nonce), bytes(plaintext), None)

    def decrypt(self, ciphertext_with_tag: bytes, key: bytes, nonce: bytes) -> Optional[bytes]:
        _check_key_and_nonce(key, nonce)
        if len(ciphertext_with_tag) < TAG_SIZE:
            return None
        aead = AESGCM(bytes(key))
        try:
            return aead.decrypt(bytes(nonce), bytes(ciphertext_with_tag), None)
        except InvalidTag:
            return None
