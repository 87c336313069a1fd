"""
Serialization of an ordered, named field set into one buffer.

The buffer is a UTF-8 JSON document so that a whole row goes through a single
AEAD operation::

    {
      "version": 1,
      "fields": [
        {"name": "id", "type": "int", "nullable": false, "max_length": -1,
         "precision": null, "scale": null, "ordinal": 0,
         "state": "value", "value": "42"},
        ...
      ]
    }

``state`` is the explicit null/empty/value marker and ``value`` is the literal
text form; JSON string literals keep leading, trailing and whitespace-only
content intact.

Decoding is driven by the schema carried next to the ciphertext. A field that
is missing or fails to decode is still returned (as ``None``) and recorded in
the row's warnings; the row is never shrunk.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from rowseal.core.config import DEFAULT_POLICY, FORMAT_VERSION, EncryptionPolicy
from rowseal.core.exceptions import InvalidParameterError, TypeMismatchError
from rowseal.core.models import (
    DecodedRow,
    EncodedScalar,
    FieldSchema,
    FieldWarning,
    ScalarKind,
)
from .types import infer_kind
from .values import ValueCodec

logger = logging.getLogger(__name__)

FieldPair = Tuple[FieldSchema, Any]


class RowCodec:
    def __init__(self, value_codec: Optional[ValueCodec] = None, policy: EncryptionPolicy = DEFAULT_POLICY):
        self.values = value_codec if value_codec is not None else ValueCodec()
        self.policy = policy

    # ------------------------------------------------------------------
    # Schema helpers
    # ------------------------------------------------------------------

    def build_schema(self, specs: Iterable) -> List[FieldSchema]:
        """
        Build an ordered schema. Each spec is a :class:`FieldSchema`, a
        ``(name, kind)`` pair or a ``(name, kind, attrs)`` triple where
        ``attrs`` holds ``max_length``/``precision``/``scale``/``nullable``.
        Ordinals are reassigned from position.
        """
        schema = []
        for position, spec in enumerate(specs):
            if isinstance(spec, FieldSchema):
                attrs = spec.to_dict()
                attrs.pop("type")
                attrs.pop("name")
                attrs.pop("ordinal")
                name, kind = spec.name, spec.kind
            elif isinstance(spec, (tuple, list)) and len(spec) in (2, 3):
                name, kind = spec[0], spec[1]
                attrs = dict(spec[2]) if len(spec) == 3 else {}
            else:
                raise InvalidParameterError(f"Invalid field spec at position {position}")
            schema.append(
                FieldSchema(
                    name=str(name),
                    kind=ScalarKind.from_tag(kind),
                    max_length=int(attrs.get("max_length", -1)),
                    precision=attrs.get("precision"),
                    scale=attrs.get("scale"),
                    nullable=bool(attrs.get("nullable", True)),
                    ordinal=position,
                )
            )
        self.check_schema(schema)
        return schema

    def infer_schema(self, record: Mapping[str, Any]) -> List[FieldSchema]:
        """Infer a nullable schema from a name -> value mapping (None -> nvarchar)."""
        specs = []
        for name, value in record.items():
            kind = ScalarKind.NVARCHAR if value is None else infer_kind(value)
            specs.append((name, kind))
        return self.build_schema(specs)

    def check_schema(self, schema: Sequence[FieldSchema]) -> None:
        if not schema:
            raise InvalidParameterError("A row needs at least one field")
        if len(schema) > self.policy.max_fields:
            raise InvalidParameterError(
                f"Row has {len(schema)} fields, which exceeds the maximum of {self.policy.max_fields}"
            )
        seen = set()
        for f in schema:
            if not f.name:
                raise InvalidParameterError("Field names must not be empty")
            if f.name in seen:
                raise InvalidParameterError(f"Duplicate field name: {f.name}")
            seen.add(f.name)

    def pair(self, schema: Sequence[FieldSchema], record: Mapping[str, Any]) -> List[FieldPair]:
        """Line up a mapping with a schema; absent names become nulls, unknown names are an error."""
        known = {f.name for f in schema}
        unknown = [name for name in record if name not in known]
        if unknown:
            raise InvalidParameterError(f"Fields not in schema: {', '.join(map(str, unknown))}")
        return [(f, record.get(f.name)) for f in schema]

    # ------------------------------------------------------------------
    # Serialize / parse
    # ------------------------------------------------------------------

    def serialize(self, fields: Sequence[FieldPair]) -> bytearray:
        """Encode every field and return the UTF-8 document as a wipeable buffer."""
        self.check_schema([f for f, _ in fields])
        entries = []
        for schema, payload in fields:
            encoded = self.values.encode_field(schema, payload)
            entry = schema.to_dict()
            entry["state"] = encoded.state
            entry["value"] = encoded.text
            entries.append(entry)
        document = {"version": FORMAT_VERSION, "fields": entries}
        return bytearray(json.dumps(document, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))

    def _load(self, buffer) -> List[dict]:
        try:
            document = json.loads(bytes(buffer).decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise InvalidParameterError("Row buffer is not a valid row document") from None
        if not isinstance(document, dict) or not isinstance(document.get("fields"), list):
            raise InvalidParameterError("Row buffer is not a valid row document")
        return document["fields"]

    def parse(self, buffer, schema: Sequence[FieldSchema]) -> DecodedRow:
        entries = self._load(buffer)
        by_name = {}
        for entry in entries:
            if isinstance(entry, dict) and isinstance(entry.get("name"), str):
                by_name.setdefault(entry["name"], entry)

        extra = set(by_name) - {f.name for f in schema}
        if extra:
            logger.debug("Ignoring %d payload fields not in the schema", len(extra))

        row = DecodedRow()
        for f in schema:
            entry = by_name.get(f.name)
            if entry is None:
                self._downgrade(row, f, "missing from payload")
                continue
            try:
                encoded = EncodedScalar(
                    kind=ScalarKind.from_tag(entry.get("type")),
                    state=entry.get("state"),
                    text=entry.get("value"),
                )
                value = self.values.decode(encoded, f)
            except TypeMismatchError as exc:
                self._downgrade(row, f, str(exc))
                continue
            row.fields.append((f, value))
        return row

    def _downgrade(self, row: DecodedRow, schema: FieldSchema, reason: str) -> None:
        logger.warning("Field %r could not be decoded; substituting null", schema.name)
        row.fields.append((schema, None))
        row.warnings.append(FieldWarning(schema.name, reason))
