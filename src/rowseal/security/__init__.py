"""Security helpers: key derivation, AEAD and envelope primitives for rowseal.

This package provides:
- PBKDF2-HMAC-SHA-256 key derivation
- an AES-256-GCM provider behind a two-method interface
- the salt || nonce || ciphertext || tag envelope with salt-length probing
- best-effort wiping of key and plaintext buffers
- Argon2id password hashing for credential storage
"""

from .kdf import generate_salt, derive_key, kdf_params_to_dict
from .aead import AeadProvider, AesGcmProvider
from .envelope import EnvelopeCodec, generate_key, generate_nonce, to_text, from_text
from .memory import wipe, wiped, secure_copy
from .passwords import hash_password, verify_password, needs_rehash

__all__ = [
    "generate_salt",
    "derive_key",
    "kdf_params_to_dict",
    "AeadProvider",
    "AesGcmProvider",
    "EnvelopeCodec",
    "generate_key",
    "generate_nonce",
    "to_text",
    "from_text",
    "wipe",
    "wiped",
    "secure_copy",
    "hash_password",
    "verify_password",
    "needs_rehash",
]
