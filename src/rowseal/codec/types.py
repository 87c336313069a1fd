"""
Registry of scalar kinds.

Every :class:`~rowseal.core.models.ScalarKind` has exactly one handler that
knows how to turn a native Python value into its locale-independent text form
and back. Kinds are grouped into families; decoding a stored kind as a
different requested kind is only allowed inside a family (plus the widening
integer -> exact/approximate numeric cases).
"""

from __future__ import annotations

import base64
import binascii
import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Tuple
from xml.etree import ElementTree

from rowseal.core.exceptions import TypeMismatchError, UnsupportedTypeError
from rowseal.core.models import ScalarKind as K

FAMILY_INTEGER = "integer"
FAMILY_BOOLEAN = "boolean"
FAMILY_EXACT = "exact"
FAMILY_APPROXIMATE = "approximate"
FAMILY_TEXT = "text"
FAMILY_DATE = "date"
FAMILY_TIME = "time"
FAMILY_DATETIME = "datetime"
FAMILY_DATETIMEOFFSET = "datetimeoffset"
FAMILY_GUID = "guid"
FAMILY_BINARY = "binary"

FIXED_TEXT_KINDS = frozenset({K.CHAR, K.NCHAR})
# kinds whose empty value ("" / b"") is representable
EMPTY_CAPABLE_FAMILIES = frozenset({FAMILY_TEXT, FAMILY_BINARY})

INTEGER_RANGES = {
    K.TINYINT: (0, 255),
    K.SMALLINT: (-(2 ** 15), 2 ** 15 - 1),
    K.INT: (-(2 ** 31), 2 ** 31 - 1),
    K.BIGINT: (-(2 ** 63), 2 ** 63 - 1),
}

_WIDENING = {
    (FAMILY_INTEGER, FAMILY_EXACT),
    (FAMILY_INTEGER, FAMILY_APPROXIMATE),
}


@dataclass(frozen=True)
class KindHandler:
    kind: K
    family: str
    # native value -> canonical native value (raises TypeMismatchError)
    coerce: Callable[[Any], Any]
    to_text: Callable[[Any], str]
    from_text: Callable[[str], Any]


def _mismatch(kind: K, value: Any) -> TypeMismatchError:
    # type name only: the value itself may be sensitive
    return TypeMismatchError(f"Cannot use {type(value).__name__} as {kind.value}")


# ----------------------------------------------------------------------
# integer / boolean
# ----------------------------------------------------------------------

def _integer(kind: K):
    low, high = INTEGER_RANGES[kind]

    def check_range(number: int) -> int:
        if not low <= number <= high:
            raise TypeMismatchError(f"Value out of range for {kind.value} ({low}..{high})")
        return number

    def coerce(value):
        if isinstance(value, bool) or not isinstance(value, int):
            raise _mismatch(kind, value)
        return check_range(value)

    def from_text(text: str) -> int:
        try:
            return check_range(int(text.strip()))
        except ValueError:
            raise TypeMismatchError(f"Not a valid {kind.value} literal") from None

    return KindHandler(kind, FAMILY_INTEGER, coerce, str, from_text)


def _bit_coerce(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise _mismatch(K.BIT, value)


def _bit_from_text(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise TypeMismatchError("Not a valid bit literal")


# ----------------------------------------------------------------------
# numeric
# ----------------------------------------------------------------------

def _exact(kind: K):
    def coerce(value):
        if isinstance(value, bool):
            raise _mismatch(kind, value)
        if isinstance(value, Decimal):
            number = value
        elif isinstance(value, int):
            number = Decimal(value)
        elif isinstance(value, float):
            number = Decimal(repr(value))
        else:
            raise _mismatch(kind, value)
        if not number.is_finite():
            raise TypeMismatchError(f"{kind.value} does not accept NaN or infinity")
        return number

    def from_text(text: str) -> Decimal:
        try:
            number = Decimal(text.strip())
        except InvalidOperation:
            raise TypeMismatchError(f"Not a valid {kind.value} literal") from None
        if not number.is_finite():
            raise TypeMismatchError(f"{kind.value} does not accept NaN or infinity")
        return number

    return KindHandler(kind, FAMILY_EXACT, coerce, str, from_text)


def _approximate(kind: K):
    def coerce(value):
        if isinstance(value, bool):
            raise _mismatch(kind, value)
        if isinstance(value, float):
            return value
        if isinstance(value, (int, Decimal)):
            try:
                number = float(value)
            except OverflowError:
                number = math.inf
            if not math.isfinite(number):
                raise TypeMismatchError(f"Value out of range for {kind.value}")
            return number
        raise _mismatch(kind, value)

    def from_text(text: str) -> float:
        try:
            return float(text.strip())
        except ValueError:
            raise TypeMismatchError(f"Not a valid {kind.value} literal") from None

    return KindHandler(kind, FAMILY_APPROXIMATE, coerce, repr, from_text)


# ----------------------------------------------------------------------
# text
# ----------------------------------------------------------------------

def _text(kind: K):
    def coerce(value):
        if not isinstance(value, str):
            raise _mismatch(kind, value)
        return value

    return KindHandler(kind, FAMILY_TEXT, coerce, str, str)


def _check_xml(text: str) -> str:
    try:
        ElementTree.fromstring(text)
    except ElementTree.ParseError:
        raise TypeMismatchError("Value is not well-formed XML") from None
    return text


def _xml_coerce(value):
    if not isinstance(value, str):
        raise _mismatch(K.XML, value)
    return _check_xml(value)


# ----------------------------------------------------------------------
# date / time
# ----------------------------------------------------------------------

def _date_coerce(value):
    if isinstance(value, datetime) or not isinstance(value, date):
        raise _mismatch(K.DATE, value)
    return value


def _date_from_text(text: str) -> date:
    try:
        return date.fromisoformat(text.strip())
    except ValueError:
        raise TypeMismatchError("Not a valid date literal") from None


def _time_coerce(value):
    if not isinstance(value, time):
        raise _mismatch(K.TIME, value)
    return value


def _time_from_text(text: str) -> time:
    try:
        return time.fromisoformat(text.strip())
    except ValueError:
        raise TypeMismatchError("Not a valid time literal") from None


def _datetime(kind: K):
    def coerce(value):
        if not isinstance(value, datetime):
            raise _mismatch(kind, value)
        return value

    def from_text(text: str) -> datetime:
        try:
            return datetime.fromisoformat(text.strip())
        except ValueError:
            raise TypeMismatchError(f"Not a valid {kind.value} literal") from None

    return KindHandler(kind, FAMILY_DATETIME, coerce, datetime.isoformat, from_text)


def _datetimeoffset_coerce(value):
    if not isinstance(value, datetime) or value.utcoffset() is None:
        raise TypeMismatchError("datetimeoffset requires a timezone-aware datetime")
    return value


def _datetimeoffset_from_text(text: str) -> datetime:
    try:
        value = datetime.fromisoformat(text.strip())
    except ValueError:
        raise TypeMismatchError("Not a valid datetimeoffset literal") from None
    if value.utcoffset() is None:
        raise TypeMismatchError("datetimeoffset literal carries no UTC offset")
    return value


# ----------------------------------------------------------------------
# guid / binary
# ----------------------------------------------------------------------

def _guid_coerce(value):
    if isinstance(value, uuid.UUID):
        return value
    raise _mismatch(K.UNIQUEIDENTIFIER, value)


def _guid_from_text(text: str) -> uuid.UUID:
    try:
        return uuid.UUID(text.strip())
    except ValueError:
        raise TypeMismatchError("Not a valid uniqueidentifier literal") from None


def _binary(kind: K):
    def coerce(value):
        # str is rejected on purpose: binary is never guessed from text shape
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise _mismatch(kind, value)

    def to_text(value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    def from_text(text: str) -> bytes:
        try:
            return base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError):
            raise TypeMismatchError(f"Stored {kind.value} payload is not valid base64") from None

    return KindHandler(kind, FAMILY_BINARY, coerce, to_text, from_text)


def _build_registry() -> Dict[K, KindHandler]:
    handlers = [
        *(_integer(k) for k in INTEGER_RANGES),
        KindHandler(K.BIT, FAMILY_BOOLEAN, _bit_coerce, lambda v: "true" if v else "false", _bit_from_text),
        *(_exact(k) for k in (K.DECIMAL, K.NUMERIC, K.MONEY, K.SMALLMONEY)),
        *(_approximate(k) for k in (K.FLOAT, K.REAL)),
        *(_text(k) for k in (K.CHAR, K.NCHAR, K.VARCHAR, K.NVARCHAR, K.TEXT, K.NTEXT)),
        KindHandler(K.XML, FAMILY_TEXT, _xml_coerce, str, _check_xml),
        KindHandler(K.DATE, FAMILY_DATE, _date_coerce, date.isoformat, _date_from_text),
        KindHandler(K.TIME, FAMILY_TIME, _time_coerce, time.isoformat, _time_from_text),
        *(_datetime(k) for k in (K.DATETIME, K.DATETIME2, K.SMALLDATETIME)),
        KindHandler(
            K.DATETIMEOFFSET,
            FAMILY_DATETIMEOFFSET,
            _datetimeoffset_coerce,
            datetime.isoformat,
            _datetimeoffset_from_text,
        ),
        KindHandler(K.UNIQUEIDENTIFIER, FAMILY_GUID, _guid_coerce, str, _guid_from_text),
        *(_binary(k) for k in (K.BINARY, K.VARBINARY, K.IMAGE)),
    ]
    registry = {h.kind: h for h in handlers}
    missing = set(K) - set(registry)
    if missing:
        raise RuntimeError(f"No handler registered for: {sorted(k.value for k in missing)}")
    return registry


REGISTRY: Dict[K, KindHandler] = _build_registry()


def handler_for(kind) -> KindHandler:
    resolved = K.from_tag(kind)
    try:
        return REGISTRY[resolved]
    except KeyError:
        raise UnsupportedTypeError(f"Unsupported type tag: {resolved.value}") from None


def can_coerce(stored: K, requested: K) -> bool:
    """True when a value stored as ``stored`` may be decoded as ``requested``."""
    a = handler_for(stored).family
    b = handler_for(requested).family
    return a == b or (a, b) in _WIDENING


def infer_kind(value: Any) -> K:
    """Default kind for a native Python value (used when none is declared)."""
    if isinstance(value, bool):
        return K.BIT
    if isinstance(value, int):
        return K.BIGINT
    if isinstance(value, Decimal):
        return K.DECIMAL
    if isinstance(value, float):
        return K.FLOAT
    if isinstance(value, str):
        return K.NVARCHAR
    if isinstance(value, (bytes, bytearray, memoryview)):
        return K.VARBINARY
    if isinstance(value, uuid.UUID):
        return K.UNIQUEIDENTIFIER
    if isinstance(value, datetime):
        return K.DATETIMEOFFSET if value.utcoffset() is not None else K.DATETIME2
    if isinstance(value, date):
        return K.DATE
    if isinstance(value, time):
        return K.TIME
    raise UnsupportedTypeError(f"Cannot infer a type tag for {type(value).__name__}")


def decimal_shape(number: Decimal) -> Tuple[int, int]:
    """Return (integer digits, fractional digits) of a finite decimal."""
    _sign, digits, exponent = number.as_tuple()
    fractional = -exponent if exponent < 0 else 0
    integer = max(len(digits) - fractional, 0) if exponent < 0 else len(digits) + exponent
    if number == 0:
        integer = 0
    return integer, fractional
