"""Self-describing AEAD envelopes.

Layout (no length prefixes)::

    salt (8..64 bytes) || nonce (12 bytes) || ciphertext || tag (16 bytes)

Because the salt length is not recorded, decoding probes every candidate salt
length from the policy minimum upwards and accepts the first one whose GCM tag
verifies. With a password that costs one key derivation per candidate (at most
57 with the default policy); callers that decrypt many envelopes should derive
the key once and use :meth:`EnvelopeCodec.open_with_key`.
"""
from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import Iterator, Optional, Tuple

from rowseal.core.config import (
    DEFAULT_POLICY,
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    EncryptionPolicy,
)
from rowseal.core.exceptions import (
    AuthenticationFailureError,
    InvalidParameterError,
    TooShortError,
)
from .aead import AeadProvider, AesGcmProvider
from .kdf import derive_key, generate_salt
from .memory import wipe, wiped

logger = logging.getLogger(__name__)


def generate_nonce() -> bytes:
    return os.urandom(NONCE_SIZE)


def generate_key() -> bytes:
    """Return a random 256-bit key for the direct-key path."""
    return os.urandom(KEY_SIZE)


def to_text(envelope: bytes) -> str:
    return base64.b64encode(envelope).decode("ascii")


def from_text(token: str) -> bytes:
    try:
        return base64.b64decode(token.strip(), validate=True)
    except (binascii.Error, ValueError, AttributeError):
        raise InvalidParameterError("Envelope is not valid base64") from None


class EnvelopeCodec:
    def __init__(self, aead: Optional[AeadProvider] = None, policy: EncryptionPolicy = DEFAULT_POLICY):
        self.aead = aead if aead is not None else AesGcmProvider()
        self.policy = policy

    # ------------------------------------------------------------------
    # Layout helpers
    # ------------------------------------------------------------------

    def _check_size(self, envelope: bytes) -> None:
        if envelope is None or len(envelope) < self.policy.min_envelope_size:
            raise TooShortError(
                f"Envelope must be at least {self.policy.min_envelope_size} bytes "
                f"(salt + {NONCE_SIZE}-byte nonce + {TAG_SIZE}-byte tag)"
            )

    def _candidates(self, envelope: bytes) -> Iterator[Tuple[bytes, bytes, bytes]]:
        # Yield (salt, nonce, ciphertext||tag) for every salt length that fits.
        for salt_len in range(self.policy.min_salt_length, self.policy.max_salt_length + 1):
            if len(envelope) < salt_len + NONCE_SIZE + TAG_SIZE:
                break
            salt = envelope[:salt_len]
            nonce = envelope[salt_len:salt_len + NONCE_SIZE]
            body = envelope[salt_len + NONCE_SIZE:]
            yield salt, nonce, body

    def _frame(self, salt: bytes, nonce: bytes, body: bytes) -> bytes:
        return bytes(salt) + bytes(nonce) + bytes(body)

    # ------------------------------------------------------------------
    # Password path
    # ------------------------------------------------------------------

    def seal(
        self,
        plaintext: bytes,
        password: str,
        iterations: int,
        salt: Optional[bytes] = None,
    ) -> bytes:
        """Encrypt ``plaintext`` under a key derived from ``password``."""
        if salt is None:
            salt = generate_salt(self.policy.default_salt_length)
        salt = self.policy.check_salt(salt)
        key = derive_key(password, salt, iterations, policy=self.policy)
        with wiped(key):
            return self.seal_with_key(plaintext, key, salt)

    def open(self, envelope: bytes, password: str, iterations: int) -> bytearray:
        """
        Decrypt an envelope produced by :meth:`seal`.

        Returns the plaintext as a ``bytearray`` the caller should wipe.
        Raises :class:`TooShortError` or :class:`AuthenticationFailureError`.
        """
        self._check_size(envelope)
        self.policy.check_iterations(iterations)
        envelope = bytes(envelope)
        tried = 0
        for salt, nonce, body in self._candidates(envelope):
            tried += 1
            key = derive_key(password, salt, iterations, policy=self.policy)
            try:
                plaintext = self.aead.decrypt(body, key, nonce)
            finally:
                wipe(key)
            if plaintext is not None:
                logger.debug("Envelope opened with %d-byte salt", len(salt))
                return bytearray(plaintext)
        logger.debug("No salt length verified after %d candidates", tried)
        raise AuthenticationFailureError("Authentication failed: wrong password or corrupted data")

    # ------------------------------------------------------------------
    # Direct-key path
    # ------------------------------------------------------------------

    def seal_with_key(self, plaintext: bytes, key: bytes, salt: bytes) -> bytes:
        """
        Encrypt with a pre-derived key. ``salt`` is only carried in the
        envelope for wire compatibility; it is not used to derive anything.
        A fresh nonce is generated on every call.
        """
        if key is None or len(key) != KEY_SIZE:
            raise InvalidParameterError(f"Key must be {KEY_SIZE} bytes")
        salt = self.policy.check_salt(salt)
        nonce = generate_nonce()
        body = self.aead.encrypt(plaintext, key, nonce)
        return self._frame(salt, nonce, body)

    def open_with_key(self, envelope: bytes, key: bytes, salt_length: Optional[int] = None) -> bytearray:
        """
        Decrypt with a pre-derived key.

        By default the salt length is probed exactly as for the password path.
        Passing ``salt_length`` trusts that offset and skips the probe.
        """
        if key is None or len(key) != KEY_SIZE:
            raise InvalidParameterError(f"Key must be {KEY_SIZE} bytes")
        self._check_size(envelope)
        envelope = bytes(envelope)

        if salt_length is not None:
            if not self.policy.salt_length_allowed(salt_length):
                raise InvalidParameterError(
                    f"Salt length must be between {self.policy.min_salt_length} "
                    f"and {self.policy.max_salt_length} bytes"
                )
            if len(envelope) < salt_length + NONCE_SIZE + TAG_SIZE:
                raise TooShortError("Envelope too short for the given salt length")
            nonce = envelope[salt_length:salt_length + NONCE_SIZE]
            plaintext = self.aead.decrypt(envelope[salt_length + NONCE_SIZE:], key, nonce)
            if plaintext is None:
                raise AuthenticationFailureError("Authentication failed: wrong key or corrupted data")
            return bytearray(plaintext)

        for _salt, nonce, body in self._candidates(envelope):
            plaintext = self.aead.decrypt(body, key, nonce)
            if plaintext is not None:
                return bytearray(plaintext)
        raise AuthenticationFailureError("Authentication failed: wrong key or corrupted data")
