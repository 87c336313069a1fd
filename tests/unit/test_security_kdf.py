"""Unit tests for the Key Derivation Function (KDF) module."""

import hashlib

import pytest

from rowseal.core.config import EncryptionPolicy
from rowseal.core.exceptions import InvalidParameterError
from rowseal.security.kdf import derive_key, generate_salt, kdf_params_to_dict


def test_generate_salt_defaults():
    """Ensure salt generation returns bytes of the default length (32)."""
    salt = generate_salt()
    assert isinstance(salt, bytes)
    assert len(salt) == 32


def test_generate_salt_custom_length():
    salt = generate_salt(length=16)
    assert len(salt) == 16
    assert isinstance(salt, bytes)


def test_derive_key_matches_pbkdf2_sha256():
    """The derived key is plain PBKDF2-HMAC-SHA-256 over the UTF-8 password."""
    salt = b"\x01" * 16
    key = derive_key("P@ss1", salt, 1000)

    assert isinstance(key, bytearray)
    assert len(key) == 32
    assert bytes(key) == hashlib.pbkdf2_hmac("sha256", b"P@ss1", salt, 1000, 32)


def test_derive_key_is_deterministic():
    salt = generate_salt()
    assert derive_key("password123", salt, 1000) == derive_key(b"password123", salt, 1000)


def test_derive_key_depends_on_salt_and_iterations():
    salt = b"\x02" * 16
    base = derive_key("pw", salt, 1000)
    assert derive_key("pw", b"\x03" * 16, 1000) != base
    assert derive_key("pw", salt, 1001) != base


def test_derive_key_custom_length():
    key = derive_key("pw", b"\x04" * 8, 1000, key_len=16)
    assert len(key) == 16


@pytest.mark.parametrize("iterations", [999, 100001, 0, -5])
def test_derive_key_rejects_iterations_outside_policy(iterations):
    with pytest.raises(InvalidParameterError, match="Iterations must be between"):
        derive_key("pw", b"\x00" * 16, iterations)


def test_derive_key_rejects_non_integer_iterations():
    with pytest.raises(InvalidParameterError, match="integer"):
        derive_key("pw", b"\x00" * 16, True)


@pytest.mark.parametrize("length", [7, 65])
def test_derive_key_rejects_salt_length(length):
    with pytest.raises(InvalidParameterError, match="Salt length"):
        derive_key("pw", b"\x00" * length, 1000)


def test_derive_key_rejects_empty_password():
    with pytest.raises(InvalidParameterError, match="Password must not be empty"):
        derive_key("", b"\x00" * 16, 1000)


def test_derive_key_honours_narrower_policy():
    policy = EncryptionPolicy(min_iterations=5000, default_iterations=10000)
    with pytest.raises(InvalidParameterError):
        derive_key("pw", b"\x00" * 16, 1000, policy=policy)


def test_kdf_params_to_dict():
    salt = b"\xaa" * 16
    result = kdf_params_to_dict(salt=salt, iterations=10000)

    assert result == {
        "algo": "pbkdf2-sha256",
        "salt": "aa" * 16,
        "iterations": 10000,
    }
