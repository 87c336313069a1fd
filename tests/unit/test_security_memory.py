"""Unit tests for buffer wiping helpers."""

import pytest

from rowseal.security.memory import secure_copy, wipe, wiped


def test_wipe_zeroes_bytearray():
    buf = bytearray(b"secret")
    wipe(buf)
    assert buf == bytearray(6)


def test_wipe_zeroes_writable_memoryview():
    backing = bytearray(b"secret")
    wipe(memoryview(backing))
    assert backing == bytearray(6)


def test_wipe_ignores_immutable_inputs():
    data = b"secret"
    wipe(data)
    wipe(memoryview(data))
    wipe(None)
    assert data == b"secret"


def test_secure_copy_encodes_str():
    copy = secure_copy("päss")
    assert isinstance(copy, bytearray)
    assert copy == bytearray("päss".encode("utf-8"))


def test_secure_copy_is_independent():
    original = bytearray(b"abc")
    copy = secure_copy(original)
    wipe(copy)
    assert original == bytearray(b"abc")


def test_wiped_clears_on_normal_exit():
    a, b = bytearray(b"key"), bytearray(b"plain")
    with wiped(a, b):
        assert a == bytearray(b"key")
    assert a == bytearray(3)
    assert b == bytearray(5)


def test_wiped_clears_when_exception_propagates():
    buf = bytearray(b"key")
    with pytest.raises(RuntimeError):
        with wiped(buf):
            raise RuntimeError("boom")
    assert buf == bytearray(3)
