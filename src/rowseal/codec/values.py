"""
Type-tagged encode/decode of a single scalar.

Policies applied here:

- null and empty are distinct states and never collapse into each other
- fixed-width text (char/nchar) is right-padded with spaces to the declared
  length on encode and never trimmed on decode
- binary values are identified by their kind only, never by the shape of text
- numeric, date/time and guid values use locale-independent text forms
"""

from __future__ import annotations

import json
from typing import Any, Union

from rowseal.core.config import FORMAT_VERSION
from rowseal.core.exceptions import InvalidParameterError, TypeMismatchError
from rowseal.core.models import (
    STATE_EMPTY,
    STATE_NULL,
    STATE_VALUE,
    EncodedScalar,
    FieldSchema,
    ScalarKind,
    ScalarValue,
)
from .types import (
    EMPTY_CAPABLE_FAMILIES,
    FAMILY_BINARY,
    FAMILY_EXACT,
    FAMILY_TEXT,
    FIXED_TEXT_KINDS,
    KindHandler,
    can_coerce,
    decimal_shape,
    handler_for,
    infer_kind,
)

Requested = Union[FieldSchema, ScalarKind, str, None]


class ValueCodec:
    """Encode/decode one scalar to ``EncodedScalar`` and back."""

    def scalar(self, value: Any, kind=None, **attrs) -> ScalarValue:
        """Wrap a native value, inferring its kind when none is given."""
        if isinstance(value, ScalarValue):
            return value
        if kind is None:
            if value is None:
                raise TypeMismatchError("Cannot infer a type for a null value; declare its kind")
            kind = infer_kind(value)
        return ScalarValue(kind=ScalarKind.from_tag(kind), payload=value, **attrs)

    # ------------------------------------------------------------------
    # Encode
    # ------------------------------------------------------------------

    def encode(self, value: ScalarValue) -> EncodedScalar:
        handler = handler_for(value.kind)
        kind = handler.kind
        payload = value.payload

        if payload is None:
            if not value.nullable:
                raise TypeMismatchError(f"Null is not allowed for non-nullable {kind.value}")
            return EncodedScalar(kind, STATE_NULL)

        if handler.family == FAMILY_TEXT and payload == "":
            if kind in FIXED_TEXT_KINDS and value.max_length > 0:
                return EncodedScalar(kind, STATE_VALUE, " " * value.max_length)
            return EncodedScalar(kind, STATE_EMPTY, "")

        native = self._to_native(handler, payload)
        native = self._apply_schema(handler, native, value)

        if handler.family in EMPTY_CAPABLE_FAMILIES and len(native) == 0:
            return EncodedScalar(kind, STATE_EMPTY, "")
        return EncodedScalar(kind, STATE_VALUE, handler.to_text(native))

    def encode_field(self, schema: FieldSchema, payload: Any) -> EncodedScalar:
        return self.encode(
            ScalarValue(
                kind=schema.kind,
                payload=payload,
                nullable=schema.nullable,
                max_length=schema.max_length,
                precision=schema.precision,
                scale=schema.scale,
            )
        )

    def _to_native(self, handler: KindHandler, payload: Any) -> Any:
        if isinstance(payload, str) and handler.family not in (FAMILY_TEXT, FAMILY_BINARY):
            # literal text for a non-text kind, e.g. "42" for int
            if payload == "":
                raise TypeMismatchError(f"Empty text cannot represent {handler.kind.value}")
            return handler.from_text(payload)
        return handler.coerce(payload)

    def _apply_schema(self, handler: KindHandler, native: Any, value: ScalarValue) -> Any:
        kind = handler.kind
        if handler.family == FAMILY_TEXT:
            if value.max_length > 0 and len(native) > value.max_length:
                raise TypeMismatchError(
                    f"Text of length {len(native)} exceeds {kind.value}({value.max_length})"
                )
            if kind in FIXED_TEXT_KINDS and value.max_length > 0:
                return native.ljust(value.max_length, " ")
            return native

        if handler.family == FAMILY_BINARY:
            if value.max_length > 0 and len(native) > value.max_length:
                raise TypeMismatchError(
                    f"Binary of length {len(native)} exceeds {kind.value}({value.max_length})"
                )
            return native

        if handler.family == FAMILY_EXACT:
            integer_digits, fraction_digits = decimal_shape(native)
            if value.scale is not None and fraction_digits > value.scale:
                raise TypeMismatchError(f"Value has more than {value.scale} decimal places")
            if value.precision is not None:
                allowed = value.precision - (value.scale or 0)
                if integer_digits > allowed:
                    raise TypeMismatchError(
                        f"Value does not fit {kind.value}({value.precision},{value.scale or 0})"
                    )
        return native

    # ------------------------------------------------------------------
    # Decode
    # ------------------------------------------------------------------

    def decode(self, encoded: EncodedScalar, requested: Requested = None) -> Any:
        """
        Rebuild the native value. ``requested`` (a kind or field schema)
        defaults to the stored kind; a stored kind that cannot be coerced to
        it raises :class:`TypeMismatchError`.
        """
        if isinstance(requested, FieldSchema):
            requested_kind = requested.kind
        elif requested is None:
            requested_kind = encoded.kind
        else:
            requested_kind = ScalarKind.from_tag(requested)

        stored = handler_for(encoded.kind)
        target = handler_for(requested_kind)

        if encoded.state == STATE_NULL:
            return None
        if not can_coerce(stored.kind, target.kind):
            raise TypeMismatchError(
                f"Stored {stored.kind.value} cannot be read as {target.kind.value}"
            )
        if encoded.state == STATE_EMPTY:
            if target.family not in EMPTY_CAPABLE_FAMILIES:
                raise TypeMismatchError(f"Empty value is not valid for {target.kind.value}")
            return b"" if target.family == FAMILY_BINARY else ""
        if encoded.state != STATE_VALUE:
            raise TypeMismatchError(f"Unknown value state: {encoded.state!r}")
        if not isinstance(encoded.text, str):
            raise TypeMismatchError("Value state without a text payload")
        value = target.from_text(encoded.text)
        if isinstance(requested, FieldSchema) and target.family in EMPTY_CAPABLE_FAMILIES:
            if requested.max_length > 0 and len(value) > requested.max_length:
                raise TypeMismatchError(
                    f"Stored value is longer than {target.kind.value}({requested.max_length})"
                )
        return value

    # ------------------------------------------------------------------
    # Single-value buffer
    # ------------------------------------------------------------------

    def pack(self, encoded: EncodedScalar) -> bytearray:
        """Serialize one encoded scalar to the UTF-8 buffer that gets sealed."""
        document = {
            "version": FORMAT_VERSION,
            "type": encoded.kind.value,
            "state": encoded.state,
            "value": encoded.text,
        }
        return bytearray(json.dumps(document, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))

    def unpack(self, buffer) -> EncodedScalar:
        try:
            document = json.loads(bytes(buffer).decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise InvalidParameterError("Value buffer is not a valid value document") from None
        if not isinstance(document, dict) or "state" not in document:
            raise InvalidParameterError("Value buffer is not a valid value document")
        return EncodedScalar(
            kind=ScalarKind.from_tag(document.get("type")),
            state=document["state"],
            text=document.get("value"),
        )
