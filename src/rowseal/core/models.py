"""
Base data models for encryption metadata, field schemas and encrypted payloads
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .config import FORMAT_VERSION, ALGORITHM_AES_GCM
from .exceptions import UnsupportedTypeError


class ScalarKind(Enum):
    # Closed set of scalar kinds; the value is the tag written to the wire
    TINYINT = "tinyint"
    SMALLINT = "smallint"
    INT = "int"
    BIGINT = "bigint"
    BIT = "bit"
    DECIMAL = "decimal"
    NUMERIC = "numeric"
    MONEY = "money"
    SMALLMONEY = "smallmoney"
    FLOAT = "float"
    REAL = "real"
    CHAR = "char"
    NCHAR = "nchar"
    VARCHAR = "varchar"
    NVARCHAR = "nvarchar"
    TEXT = "text"
    NTEXT = "ntext"
    XML = "xml"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    DATETIME2 = "datetime2"
    SMALLDATETIME = "smalldatetime"
    DATETIMEOFFSET = "datetimeoffset"
    UNIQUEIDENTIFIER = "uniqueidentifier"
    BINARY = "binary"
    VARBINARY = "varbinary"
    IMAGE = "image"

    @classmethod
    def from_tag(cls, tag) -> "ScalarKind":
        """Resolve a wire tag (case-insensitive) to a kind."""
        if isinstance(tag, cls):
            return tag
        if isinstance(tag, str):
            try:
                return cls(tag.strip().lower())
            except ValueError:
                pass
        raise UnsupportedTypeError(f"Unsupported type tag: {tag!r}")


# Encoded states; the three are never conflated
STATE_NULL = "null"
STATE_EMPTY = "empty"
STATE_VALUE = "value"
STATES = (STATE_NULL, STATE_EMPTY, STATE_VALUE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EncryptionMetadata:
    """
    Parameters of one encryption operation.

    Either ``password`` (PBKDF2 path) or ``key`` (pre-derived 32-byte key) must
    be set. ``iterations``/``salt`` left as ``None`` are filled from the policy
    at encode time. ``nonce`` is recorded from the envelope after encryption;
    a caller-supplied nonce is never reused for a new encryption.
    """

    algorithm: str = ALGORITHM_AES_GCM
    iterations: Optional[int] = None
    salt: Optional[bytes] = None
    nonce: Optional[bytes] = None
    password: Optional[str] = field(default=None, repr=False, compare=False)
    key: Optional[bytes] = field(default=None, repr=False, compare=False)

    def snapshot(self) -> "EncryptionMetadata":
        # Persistable copy: secrets stripped
        return replace(self, password=None, key=None)

    def with_password(self, password: str) -> "EncryptionMetadata":
        return replace(self, password=password, key=None)

    def with_key(self, key: bytes) -> "EncryptionMetadata":
        return replace(self, key=bytes(key), password=None)

    @property
    def has_secret(self) -> bool:
        return bool(self.password) or bool(self.key)


@dataclass(frozen=True)
class FieldSchema:
    name: str
    kind: ScalarKind
    max_length: int = -1
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: bool = True
    ordinal: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.kind.value,
            "max_length": self.max_length,
            "precision": self.precision,
            "scale": self.scale,
            "nullable": self.nullable,
            "ordinal": self.ordinal,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldSchema":
        return cls(
            name=str(data["name"]),
            kind=ScalarKind.from_tag(data["type"]),
            max_length=int(data.get("max_length", -1)),
            precision=data.get("precision"),
            scale=data.get("scale"),
            nullable=bool(data.get("nullable", True)),
            ordinal=int(data.get("ordinal", 0)),
        )


@dataclass(frozen=True)
class ScalarValue:
    """A typed scalar ready for encoding; ``payload=None`` means SQL-style null."""

    kind: ScalarKind
    payload: Any = None
    nullable: bool = True
    max_length: int = -1
    precision: Optional[int] = None
    scale: Optional[int] = None

    def as_field(self, name: str = "value", ordinal: int = 0) -> FieldSchema:
        return FieldSchema(
            name=name,
            kind=self.kind,
            max_length=self.max_length,
            precision=self.precision,
            scale=self.scale,
            nullable=self.nullable,
            ordinal=ordinal,
        )


@dataclass(frozen=True)
class EncodedScalar:
    kind: ScalarKind
    state: str
    text: Optional[str] = None

    @property
    def is_null(self) -> bool:
        return self.state == STATE_NULL


@dataclass(frozen=True)
class EncryptedValue:
    kind: ScalarKind
    envelope: bytes
    metadata: EncryptionMetadata
    nullable: bool = True
    max_length: int = -1
    precision: Optional[int] = None
    scale: Optional[int] = None
    format_version: int = FORMAT_VERSION
    encrypted_at: datetime = field(default_factory=utcnow)

    @property
    def schema(self) -> FieldSchema:
        return FieldSchema(
            name="value",
            kind=self.kind,
            max_length=self.max_length,
            precision=self.precision,
            scale=self.scale,
            nullable=self.nullable,
        )


@dataclass(frozen=True)
class EncryptedRow:
    fields: Tuple[FieldSchema, ...]
    metadata: EncryptionMetadata
    payload: bytes
    format_version: int = FORMAT_VERSION
    encrypted_at: datetime = field(default_factory=utcnow)

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True)
class FieldWarning:
    field: str
    reason: str

    def __str__(self):
        return f"{self.field}: {self.reason}"


class DecodedRow:
    """Ordered field values recovered from an encrypted row.

    Fields that could not be decoded are present with value ``None`` and are
    listed in :attr:`warnings`.
    """

    __slots__ = ("fields", "warnings")

    def __init__(self, fields=None, warnings=None):
        self.fields: List[Tuple[FieldSchema, Any]] = list(fields or [])
        self.warnings: List[FieldWarning] = list(warnings or [])

    @property
    def partial(self) -> bool:
        return bool(self.warnings)

    def names(self) -> List[str]:
        return [schema.name for schema, _ in self.fields]

    def values(self) -> List[Any]:
        return [value for _, value in self.fields]

    def as_dict(self) -> Dict[str, Any]:
        return {schema.name: value for schema, value in self.fields}

    def __getitem__(self, name: str) -> Any:
        for schema, value in self.fields:
            if schema.name == name:
                return value
        raise KeyError(name)

    def __iter__(self) -> Iterator[Tuple[FieldSchema, Any]]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __repr__(self):
        # values are plaintext; keep them out of reprs and logs
        return f"DecodedRow(fields={self.names()!r}, warnings={len(self.warnings)})"


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.is_valid = False
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
