"""
Unit tests for the value codec: every kind, null vs empty, fixed-width
padding, whitespace and binary exactness.
"""

import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from rowseal.codec.types import can_coerce, infer_kind
from rowseal.codec.values import ValueCodec
from rowseal.core.exceptions import (
    InvalidParameterError,
    TypeMismatchError,
    UnsupportedTypeError,
)
from rowseal.core.models import (
    STATE_EMPTY,
    STATE_NULL,
    STATE_VALUE,
    EncodedScalar,
    FieldSchema,
    ScalarKind as K,
    ScalarValue,
)


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def codec():
    return ValueCodec()


def roundtrip(codec, kind, payload, **attrs):
    value = ScalarValue(kind=kind, payload=payload, **attrs)
    return codec.decode(codec.encode(value), value.as_field())


# ==============================================================================
# Tests: Round trip for every kind
# ==============================================================================

@pytest.mark.parametrize(
    "kind, payload",
    [
        (K.TINYINT, 255),
        (K.SMALLINT, -32768),
        (K.INT, 42),
        (K.BIGINT, 2 ** 63 - 1),
        (K.BIT, True),
        (K.BIT, False),
        (K.DECIMAL, Decimal("12345.6789")),
        (K.NUMERIC, Decimal("-0.001")),
        (K.MONEY, Decimal("922337203685477.5807")),
        (K.SMALLMONEY, Decimal("214748.3647")),
        (K.FLOAT, 3.141592653589793),
        (K.REAL, 1.5),
        (K.VARCHAR, "hello"),
        (K.NVARCHAR, "héllo wörld ✓"),
        (K.TEXT, "multi\nline\ttext"),
        (K.NTEXT, "日本語のテキスト"),
        (K.XML, "<a><b attr=\"1\">x</b></a>"),
        (K.DATE, date(2024, 2, 29)),
        (K.TIME, time(13, 45, 30, 123456)),
        (K.DATETIME, datetime(2024, 1, 2, 3, 4, 5)),
        (K.DATETIME2, datetime(2024, 1, 2, 3, 4, 5, 987654)),
        (K.SMALLDATETIME, datetime(2024, 1, 2, 3, 4)),
        (K.DATETIMEOFFSET, datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone(timedelta(hours=-5)))),
        (K.UNIQUEIDENTIFIER, uuid.UUID("12345678-1234-5678-1234-567812345678")),
        (K.BINARY, b"\x00\x01\xff"),
        (K.VARBINARY, bytes(range(256))),
        (K.IMAGE, b"\x89PNG\r\n\x1a\n"),
    ],
)
def test_roundtrip_every_kind(codec, kind, payload):
    assert roundtrip(codec, kind, payload) == payload


def test_datetimeoffset_keeps_offset(codec):
    value = datetime(2024, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    result = roundtrip(codec, K.DATETIMEOFFSET, value)
    assert result.utcoffset() == timedelta(hours=5, minutes=30)


# ==============================================================================
# Tests: Null vs empty
# ==============================================================================

def test_null_and_empty_text_are_distinct(codec):
    null = codec.encode(ScalarValue(K.NVARCHAR, None))
    empty = codec.encode(ScalarValue(K.NVARCHAR, ""))

    assert null.state == STATE_NULL
    assert empty.state == STATE_EMPTY
    assert codec.decode(null) is None
    assert codec.decode(empty) == ""


def test_null_and_empty_binary_are_distinct(codec):
    assert roundtrip(codec, K.VARBINARY, None) is None
    assert roundtrip(codec, K.VARBINARY, b"") == b""
    assert codec.encode(ScalarValue(K.VARBINARY, b"")).state == STATE_EMPTY


def test_null_rejected_for_non_nullable(codec):
    with pytest.raises(TypeMismatchError, match="Null is not allowed"):
        codec.encode(ScalarValue(K.INT, None, nullable=False))


def test_null_decodes_for_any_requested_kind(codec):
    encoded = EncodedScalar(K.NVARCHAR, STATE_NULL)
    assert codec.decode(encoded, K.INT) is None


def test_empty_state_invalid_for_numeric(codec):
    with pytest.raises(TypeMismatchError, match="Empty value"):
        codec.decode(EncodedScalar(K.INT, STATE_EMPTY, ""))


def test_unknown_state_rejected(codec):
    with pytest.raises(TypeMismatchError, match="Unknown value state"):
        codec.decode(EncodedScalar(K.INT, "maybe", "1"))


# ==============================================================================
# Tests: Whitespace and fixed width
# ==============================================================================

@pytest.mark.parametrize("text", ["   ", "  lead", "trail  ", " both ", "\t\n"])
def test_whitespace_preserved(codec, text):
    encoded = codec.encode(ScalarValue(K.NVARCHAR, text))
    assert encoded.state == STATE_VALUE
    assert codec.decode(encoded) == text


def test_char_is_padded_to_declared_length(codec):
    encoded = codec.encode(ScalarValue(K.CHAR, "AB", max_length=5))
    assert encoded.text == "AB   "
    assert codec.decode(encoded) == "AB   "


def test_nchar_empty_becomes_all_spaces(codec):
    encoded = codec.encode(ScalarValue(K.NCHAR, "", max_length=3))
    assert encoded.state == STATE_VALUE
    assert codec.decode(encoded) == "   "


def test_char_without_length_is_not_padded(codec):
    assert roundtrip(codec, K.CHAR, "AB") == "AB"


def test_char_exact_length_unchanged(codec):
    assert roundtrip(codec, K.CHAR, "ABCDE", max_length=5) == "ABCDE"


def test_text_longer_than_declared_length(codec):
    with pytest.raises(TypeMismatchError, match="exceeds"):
        codec.encode(ScalarValue(K.VARCHAR, "too long", max_length=3))


def test_binary_longer_than_declared_length(codec):
    with pytest.raises(TypeMismatchError, match="exceeds"):
        codec.encode(ScalarValue(K.BINARY, b"\x00" * 9, max_length=8))


# ==============================================================================
# Tests: Binary exactness
# ==============================================================================

def test_base64_looking_bytes_are_kept_verbatim(codec):
    payload = b"SGVsbG8="
    assert roundtrip(codec, K.VARBINARY, payload) == payload


def test_binary_never_accepts_text(codec):
    with pytest.raises(TypeMismatchError):
        codec.encode(ScalarValue(K.VARBINARY, "SGVsbG8="))


def test_binary_accepts_bytearray_and_memoryview(codec):
    assert roundtrip(codec, K.VARBINARY, bytearray(b"\x01\x02")) == b"\x01\x02"
    assert roundtrip(codec, K.VARBINARY, memoryview(b"\x03")) == b"\x03"


def test_corrupt_base64_payload(codec):
    with pytest.raises(TypeMismatchError, match="base64"):
        codec.decode(EncodedScalar(K.VARBINARY, STATE_VALUE, "!!!"))


# ==============================================================================
# Tests: Coercion and mismatches
# ==============================================================================

def test_text_literals_for_non_text_kinds(codec):
    assert roundtrip(codec, K.INT, "42") == 42
    assert roundtrip(codec, K.BIT, "true") is True
    assert roundtrip(codec, K.DECIMAL, "1.50") == Decimal("1.50")
    assert roundtrip(codec, K.DATE, "2024-01-31") == date(2024, 1, 31)
    guid = "12345678-1234-5678-1234-567812345678"
    assert roundtrip(codec, K.UNIQUEIDENTIFIER, guid) == uuid.UUID(guid)


def test_bit_accepts_zero_and_one(codec):
    assert roundtrip(codec, K.BIT, 1) is True
    assert roundtrip(codec, K.BIT, 0) is False


def test_decimal_from_float_uses_shortest_repr(codec):
    assert roundtrip(codec, K.DECIMAL, 0.1) == Decimal("0.1")


@pytest.mark.parametrize(
    "kind, payload",
    [
        (K.INT, "abc"),
        (K.INT, ""),
        (K.INT, 2 ** 31),
        (K.INT, True),
        (K.INT, 1.5),
        (K.TINYINT, -1),
        (K.BIT, 2),
        (K.DECIMAL, Decimal("NaN")),
        (K.FLOAT, "x1"),
        (K.FLOAT, 10 ** 400),
        (K.REAL, Decimal("1e400")),
        (K.NVARCHAR, 5),
        (K.XML, "<a>"),
        (K.DATE, datetime(2024, 1, 1)),
        (K.TIME, "25:00"),
        (K.DATETIMEOFFSET, datetime(2024, 1, 1)),
        (K.UNIQUEIDENTIFIER, "not-a-guid"),
    ],
)
def test_encode_mismatch(codec, kind, payload):
    with pytest.raises(TypeMismatchError):
        codec.encode(ScalarValue(kind, payload))


def test_mismatch_message_does_not_echo_value(codec):
    with pytest.raises(TypeMismatchError) as excinfo:
        codec.encode(ScalarValue(K.INT, "secret-value"))
    assert "secret-value" not in str(excinfo.value)


def test_decimal_precision_and_scale(codec):
    assert roundtrip(codec, K.DECIMAL, Decimal("123.45"), precision=5, scale=2) == Decimal("123.45")
    with pytest.raises(TypeMismatchError, match="does not fit"):
        codec.encode(ScalarValue(K.DECIMAL, Decimal("1234.5"), precision=5, scale=2))
    with pytest.raises(TypeMismatchError, match="decimal places"):
        codec.encode(ScalarValue(K.DECIMAL, Decimal("1.234"), precision=5, scale=2))


def test_decode_as_wider_numeric(codec):
    encoded = codec.encode(ScalarValue(K.INT, 42))
    assert codec.decode(encoded, K.BIGINT) == 42
    assert codec.decode(encoded, K.DECIMAL) == Decimal("42")
    assert codec.decode(encoded, "float") == 42.0


def test_decode_across_families_fails(codec):
    encoded = codec.encode(ScalarValue(K.NVARCHAR, "42"))
    with pytest.raises(TypeMismatchError, match="cannot be read as int"):
        codec.decode(encoded, FieldSchema(name="n", kind=K.INT))


def test_can_coerce():
    assert can_coerce(K.VARCHAR, K.NCHAR)
    assert can_coerce(K.SMALLINT, K.MONEY)
    assert not can_coerce(K.DECIMAL, K.INT)
    assert not can_coerce(K.DATE, K.DATETIME)


# ==============================================================================
# Tests: Inference and tags
# ==============================================================================

@pytest.mark.parametrize(
    "value, kind",
    [
        (True, K.BIT),
        (5, K.BIGINT),
        (1.0, K.FLOAT),
        (Decimal("1"), K.DECIMAL),
        ("s", K.NVARCHAR),
        (b"", K.VARBINARY),
        (uuid.uuid4(), K.UNIQUEIDENTIFIER),
        (datetime(2024, 1, 1), K.DATETIME2),
        (datetime(2024, 1, 1, tzinfo=timezone.utc), K.DATETIMEOFFSET),
        (date(2024, 1, 1), K.DATE),
        (time(1, 2), K.TIME),
    ],
)
def test_infer_kind(value, kind):
    assert infer_kind(value) is kind


def test_infer_kind_unsupported():
    with pytest.raises(UnsupportedTypeError):
        infer_kind(object())


def test_scalar_infers_kind(codec):
    assert codec.scalar(5).kind is K.BIGINT
    assert codec.scalar("5", "int").kind is K.INT


def test_scalar_null_needs_kind(codec):
    with pytest.raises(TypeMismatchError, match="declare its kind"):
        codec.scalar(None)


def test_unknown_tag():
    with pytest.raises(UnsupportedTypeError, match="Unsupported type tag"):
        K.from_tag("hyperint")
    assert K.from_tag(" NVarChar ") is K.NVARCHAR


# ==============================================================================
# Tests: Single-value buffer
# ==============================================================================

def test_pack_unpack(codec):
    encoded = codec.encode(ScalarValue(K.NCHAR, "ü", max_length=2))
    assert codec.unpack(codec.pack(encoded)) == encoded


def test_unpack_rejects_garbage(codec):
    with pytest.raises(InvalidParameterError):
        codec.unpack(b"\xff\xfe not json")
    with pytest.raises(InvalidParameterError):
        codec.unpack(b"[1, 2]")


def test_decode_checks_requested_length(codec):
    encoded = codec.encode(ScalarValue(K.NVARCHAR, "abcdef"))
    assert codec.decode(encoded, FieldSchema("s", K.NVARCHAR, max_length=6)) == "abcdef"
    with pytest.raises(TypeMismatchError, match="longer than nvarchar\\(3\\)"):
        codec.decode(encoded, FieldSchema("s", K.NVARCHAR, max_length=3))


def test_decode_rejects_non_text_payload(codec):
    with pytest.raises(TypeMismatchError, match="text payload"):
        codec.decode(EncodedScalar(K.INT, STATE_VALUE, 42))
