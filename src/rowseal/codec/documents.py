"""
Persisted forms of encrypted values, rows and row batches.

Three JSON-ready shapes, told apart by their ``format`` key:

- ``EncryptedValue``: one scalar, its declared type and its envelope
- ``EncryptedRow``: the field schema and one envelope for the whole row
- ``EncryptedBatch``: rows sharing one schema and one salt, each with its own
  nonce and envelope

Metadata is written as a snapshot (algorithm, iterations, base64 salt and
nonce). Passwords and keys are never part of a document.
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from rowseal.core.config import FORMAT_VERSION, NONCE_SIZE
from rowseal.core.exceptions import InvalidParameterError
from rowseal.core.models import (
    EncryptedRow,
    EncryptedValue,
    EncryptionMetadata,
    FieldSchema,
    ScalarKind,
    utcnow,
)

FORMAT_VALUE = "EncryptedValue"
FORMAT_ROW = "EncryptedRow"
FORMAT_BATCH = "EncryptedBatch"
FORMATS = (FORMAT_VALUE, FORMAT_ROW, FORMAT_BATCH)


def _b64(data: Optional[bytes]) -> Optional[str]:
    return None if data is None else base64.b64encode(bytes(data)).decode("ascii")


def _unb64(text: Optional[str], what: str) -> Optional[bytes]:
    if text is None:
        return None
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise InvalidParameterError(f"{what} is not valid base64") from None


def _timestamp(text: Optional[str]) -> datetime:
    if not text:
        return utcnow()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise InvalidParameterError("encrypted_at is not an ISO-8601 timestamp") from None


def _expect(document: Dict[str, Any], fmt: str) -> None:
    if not isinstance(document, dict) or document.get("format") != fmt:
        raise InvalidParameterError(f"Not an {fmt} document")
    version = document.get("version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise InvalidParameterError(f"Unsupported {fmt} version: {version!r}")


# ----------------------------------------------------------------------
# Metadata
# ----------------------------------------------------------------------

def metadata_to_dict(metadata: EncryptionMetadata) -> Dict[str, Any]:
    return {
        "algorithm": metadata.algorithm,
        "iterations": metadata.iterations,
        "salt": _b64(metadata.salt),
        "nonce": _b64(metadata.nonce),
    }


def metadata_from_dict(
    data: Dict[str, Any],
    password: Optional[str] = None,
    key: Optional[bytes] = None,
) -> EncryptionMetadata:
    """Rebuild metadata from a snapshot, optionally attaching a secret."""
    if not isinstance(data, dict):
        raise InvalidParameterError("Metadata must be an object")
    iterations = data.get("iterations")
    if iterations is not None and (isinstance(iterations, bool) or not isinstance(iterations, int)):
        raise InvalidParameterError("iterations must be an integer")
    return EncryptionMetadata(
        algorithm=data.get("algorithm") or "",
        iterations=iterations,
        salt=_unb64(data.get("salt"), "salt"),
        nonce=_unb64(data.get("nonce"), "nonce"),
        password=password,
        key=bytes(key) if key is not None else None,
    )


# ----------------------------------------------------------------------
# Single value / single row
# ----------------------------------------------------------------------

def value_to_document(value: EncryptedValue) -> Dict[str, Any]:
    return {
        "format": FORMAT_VALUE,
        "version": value.format_version,
        "type": value.kind.value,
        "nullable": value.nullable,
        "max_length": value.max_length,
        "precision": value.precision,
        "scale": value.scale,
        "metadata": metadata_to_dict(value.metadata),
        "encrypted_at": value.encrypted_at.isoformat(),
        "envelope": _b64(value.envelope),
    }


def value_from_document(document: Dict[str, Any]) -> EncryptedValue:
    _expect(document, FORMAT_VALUE)
    envelope = _unb64(document.get("envelope"), "envelope")
    if envelope is None:
        raise InvalidParameterError("EncryptedValue document has no envelope")
    return EncryptedValue(
        kind=ScalarKind.from_tag(document.get("type")),
        envelope=envelope,
        metadata=metadata_from_dict(document.get("metadata") or {}),
        nullable=bool(document.get("nullable", True)),
        max_length=int(document.get("max_length", -1)),
        precision=document.get("precision"),
        scale=document.get("scale"),
        format_version=document.get("version", FORMAT_VERSION),
        encrypted_at=_timestamp(document.get("encrypted_at")),
    )


def _fields_from(document: Dict[str, Any]) -> tuple:
    fields = document.get("fields")
    if not isinstance(fields, list) or not fields:
        raise InvalidParameterError("Document has no field schema")
    try:
        return tuple(FieldSchema.from_dict(f) for f in fields)
    except (KeyError, TypeError, ValueError):
        raise InvalidParameterError("Document field schema is malformed") from None


def row_to_document(row: EncryptedRow) -> Dict[str, Any]:
    return {
        "format": FORMAT_ROW,
        "version": row.format_version,
        "fields": [f.to_dict() for f in row.fields],
        "metadata": metadata_to_dict(row.metadata),
        "encrypted_at": row.encrypted_at.isoformat(),
        "payload": _b64(row.payload),
    }


def row_from_document(document: Dict[str, Any]) -> EncryptedRow:
    _expect(document, FORMAT_ROW)
    payload = _unb64(document.get("payload"), "payload")
    if payload is None:
        raise InvalidParameterError("EncryptedRow document has no payload")
    return EncryptedRow(
        fields=_fields_from(document),
        metadata=metadata_from_dict(document.get("metadata") or {}),
        payload=payload,
        format_version=document.get("version", FORMAT_VERSION),
        encrypted_at=_timestamp(document.get("encrypted_at")),
    )


# ----------------------------------------------------------------------
# Batch: shared schema and salt, per-row nonce
# ----------------------------------------------------------------------

def batch_to_document(rows: Sequence[EncryptedRow]) -> Dict[str, Any]:
    if not rows:
        raise InvalidParameterError("A batch needs at least one row")
    first = rows[0]
    for row in rows[1:]:
        if row.fields != first.fields:
            raise InvalidParameterError("Rows in a batch must share one schema")
        if (row.metadata.salt, row.metadata.iterations, row.metadata.algorithm) != (
            first.metadata.salt,
            first.metadata.iterations,
            first.metadata.algorithm,
        ):
            raise InvalidParameterError("Rows in a batch must share salt, iterations and algorithm")

    shared = metadata_to_dict(first.metadata)
    shared.pop("nonce")
    return {
        "format": FORMAT_BATCH,
        "version": FORMAT_VERSION,
        "fields": [f.to_dict() for f in first.fields],
        "metadata": shared,
        "rows": [
            {
                "nonce": _b64(row.metadata.nonce),
                "encrypted_at": row.encrypted_at.isoformat(),
                "payload": _b64(row.payload),
            }
            for row in rows
        ],
    }


def batch_from_document(document: Dict[str, Any]) -> List[EncryptedRow]:
    _expect(document, FORMAT_BATCH)
    fields = _fields_from(document)
    shared = document.get("metadata") or {}
    entries = document.get("rows")
    if not isinstance(entries, list):
        raise InvalidParameterError("EncryptedBatch document has no rows")

    rows = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise InvalidParameterError(f"Batch row {position} is malformed")
        payload = _unb64(entry.get("payload"), f"row {position} payload")
        if payload is None:
            raise InvalidParameterError(f"Batch row {position} has no payload")
        metadata = metadata_from_dict({**shared, "nonce": entry.get("nonce")})
        if metadata.nonce is not None and len(metadata.nonce) != NONCE_SIZE:
            raise InvalidParameterError(f"Batch row {position} nonce must be {NONCE_SIZE} bytes")
        rows.append(
            EncryptedRow(
                fields=fields,
                metadata=metadata,
                payload=payload,
                encrypted_at=_timestamp(entry.get("encrypted_at")),
            )
        )
    return rows


# ----------------------------------------------------------------------
# Format detection and JSON text
# ----------------------------------------------------------------------

def detect_format(document) -> Optional[str]:
    """Return the format name of a document (dict or JSON text), or None."""
    if isinstance(document, (str, bytes, bytearray)):
        try:
            document = json.loads(document)
        except ValueError:
            return None
    if not isinstance(document, dict):
        return None
    declared = document.get("format")
    if declared in FORMATS:
        return declared
    if isinstance(document.get("rows"), list):
        return FORMAT_BATCH
    if "fields" in document and "payload" in document:
        return FORMAT_ROW
    if "envelope" in document:
        return FORMAT_VALUE
    return None


def dumps(document: Dict[str, Any]) -> str:
    return json.dumps(document, ensure_ascii=False, indent=2)


def loads(text) -> Dict[str, Any]:
    try:
        document = json.loads(text)
    except ValueError:
        raise InvalidParameterError("Document is not valid JSON") from None
    if not isinstance(document, dict):
        raise InvalidParameterError("Document must be a JSON object")
    return document
