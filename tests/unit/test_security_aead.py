"""Unit tests for the AES-256-GCM provider."""

import os

import pytest

from rowseal.core.exceptions import InvalidParameterError
from rowseal.security.aead import AesGcmProvider


@pytest.fixture
def provider():
    return AesGcmProvider()


@pytest.fixture
def key():
    return os.urandom(32)


@pytest.fixture
def nonce():
    return os.urandom(12)


def test_encrypt_appends_16_byte_tag(provider, key, nonce):
    body = provider.encrypt(b"hello world", key, nonce)
    assert len(body) == len(b"hello world") + 16


def test_roundtrip(provider, key, nonce):
    body = provider.encrypt(b"payload", key, nonce)
    assert provider.decrypt(body, key, nonce) == b"payload"


def test_roundtrip_accepts_bytearray(provider, key, nonce):
    body = provider.encrypt(bytearray(b"payload"), bytearray(key), nonce)
    assert provider.decrypt(body, bytearray(key), nonce) == b"payload"


def test_decrypt_returns_none_on_wrong_key(provider, key, nonce):
    body = provider.encrypt(b"payload", key, nonce)
    assert provider.decrypt(body, os.urandom(32), nonce) is None


def test_decrypt_returns_none_on_tampered_tag(provider, key, nonce):
    body = bytearray(provider.encrypt(b"payload", key, nonce))
    body[-1] ^= 0x01
    assert provider.decrypt(bytes(body), key, nonce) is None


def test_decrypt_returns_none_when_shorter_than_tag(provider, key, nonce):
    assert provider.decrypt(b"\x00" * 15, key, nonce) is None


def test_empty_plaintext(provider, key, nonce):
    body = provider.encrypt(b"", key, nonce)
    assert len(body) == 16
    assert provider.decrypt(body, key, nonce) == b""


@pytest.mark.parametrize("size", [16, 24, 31, 33])
def test_rejects_wrong_key_size(provider, nonce, size):
    with pytest.raises(InvalidParameterError, match="Key must be 32 bytes"):
        provider.encrypt(b"x", b"\x00" * size, nonce)


@pytest.mark.parametrize("size", [8, 11, 13, 16])
def test_rejects_wrong_nonce_size(provider, key, size):
    with pytest.raises(InvalidParameterError, match="Nonce must be 12 bytes"):
        provider.decrypt(b"\x00" * 32, key, b"\x00" * size)
