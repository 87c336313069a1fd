"""
Encryption engine: the entry point applications use.

The engine wires together the collaborators it is given (AEAD provider,
policy, envelope codec, value codec and row codec) and adds:

- metadata validation against the policy
- encrypt/decrypt of single values, whole rows and batches of either
- base64 text helpers over raw envelopes

Nothing here holds state between calls, so one engine can be shared freely.
Plaintext buffers and derived keys are wiped when each call finishes.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from rowseal.codec.rows import RowCodec
from rowseal.codec.values import ValueCodec
from rowseal.security.aead import AeadProvider, AesGcmProvider
from rowseal.security.envelope import EnvelopeCodec, from_text, to_text
from rowseal.security.kdf import derive_key, generate_salt
from rowseal.security.memory import secure_copy, wipe, wiped
from .config import (
    DEFAULT_POLICY,
    KEY_SIZE,
    NONCE_SIZE,
    SUPPORTED_ALGORITHMS,
    EncryptionPolicy,
    normalize_algorithm,
)
from .exceptions import InvalidMetadataError, PartialRowError
from .models import (
    DecodedRow,
    EncryptedRow,
    EncryptedValue,
    EncryptionMetadata,
    FieldSchema,
    ScalarValue,
    ValidationResult,
)

logger = logging.getLogger(__name__)

RowInput = Union[Mapping[str, Any], Sequence[Tuple[FieldSchema, Any]]]
# (key, salt, iterations) derived once and shared across a batch
DerivedKey = Tuple[bytearray, bytes, Optional[int]]


class EncryptionEngine:
    def __init__(
        self,
        aead: Optional[AeadProvider] = None,
        policy: Optional[EncryptionPolicy] = None,
        envelope: Optional[EnvelopeCodec] = None,
        value_codec: Optional[ValueCodec] = None,
        row_codec: Optional[RowCodec] = None,
    ):
        self.policy = policy if policy is not None else DEFAULT_POLICY
        self.aead = aead if aead is not None else AesGcmProvider()
        self.envelope = envelope if envelope is not None else EnvelopeCodec(self.aead, self.policy)
        self.values = value_codec if value_codec is not None else ValueCodec()
        self.rows = row_codec if row_codec is not None else RowCodec(self.values, self.policy)

    @property
    def supported_algorithms(self) -> List[str]:
        return list(SUPPORTED_ALGORITHMS)

    @property
    def max_supported_fields(self) -> int:
        return self.policy.max_fields

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def validate_metadata(self, metadata: Optional[EncryptionMetadata], ignore_nonce: bool = False) -> ValidationResult:
        """
        Check ``metadata`` against the policy.

        Errors: unknown algorithm, no password or key, wrong key size,
        iterations or salt outside policy bounds, nonce not 12 bytes.
        Warnings: iterations or salt below the recommended values.
        Messages never include the password or key.
        """
        result = ValidationResult()
        if metadata is None:
            result.add_error("Encryption metadata is required")
            return result

        if normalize_algorithm(metadata.algorithm) is None:
            result.add_error(
                f"Unsupported algorithm: {metadata.algorithm!r}. "
                f"Supported: {', '.join(SUPPORTED_ALGORITHMS)}"
            )

        if not metadata.has_secret:
            result.add_error("A password or key is required")
        elif metadata.key and len(metadata.key) != KEY_SIZE:
            result.add_error(f"Key must be {KEY_SIZE} bytes")

        iterations = metadata.iterations
        if iterations is not None:
            if isinstance(iterations, bool) or not isinstance(iterations, int):
                result.add_error("Iterations must be an integer")
            elif not self.policy.iterations_allowed(iterations):
                result.add_error(
                    f"Iterations must be between {self.policy.min_iterations} and {self.policy.max_iterations}"
                )
            elif iterations < self.policy.recommended_iterations:
                result.add_warning(
                    f"Iterations {iterations} is below the recommended {self.policy.recommended_iterations}"
                )

        salt = metadata.salt
        if salt is not None:
            if not isinstance(salt, (bytes, bytearray, memoryview)):
                result.add_error("Salt must be bytes")
            elif not self.policy.salt_length_allowed(len(salt)):
                result.add_error(
                    f"Salt length must be between {self.policy.min_salt_length} "
                    f"and {self.policy.max_salt_length} bytes"
                )
            elif len(salt) < self.policy.recommended_salt_length:
                result.add_warning(
                    f"Salt length {len(salt)} is below the recommended {self.policy.recommended_salt_length} bytes"
                )

        if not ignore_nonce and metadata.nonce is not None and len(metadata.nonce) != NONCE_SIZE:
            result.add_error(f"Nonce must be {NONCE_SIZE} bytes")

        return result

    def _require(self, metadata: Optional[EncryptionMetadata]) -> EncryptionMetadata:
        # a recorded nonce is informational here; new encryptions always get a fresh one
        result = self.validate_metadata(metadata, ignore_nonce=True)
        if not result.is_valid:
            raise InvalidMetadataError(result.errors)
        for warning in result.warnings:
            logger.warning(warning)
        return metadata

    def _effective(self, recorded: EncryptionMetadata, metadata: Optional[EncryptionMetadata]) -> EncryptionMetadata:
        # recorded snapshot + caller's secret; the caller only fills gaps in the snapshot
        if metadata is None:
            return self._require(None)
        merged = replace(
            recorded,
            iterations=recorded.iterations if recorded.iterations is not None else metadata.iterations,
            salt=recorded.salt if recorded.salt is not None else metadata.salt,
            password=metadata.password,
            key=metadata.key,
        )
        return self._require(merged)

    # ------------------------------------------------------------------
    # Envelope plumbing
    # ------------------------------------------------------------------

    def _iterations_for(self, metadata: EncryptionMetadata) -> int:
        if metadata.iterations is not None:
            return metadata.iterations
        return self.policy.default_iterations

    def _salt_for(self, metadata: EncryptionMetadata) -> bytes:
        if metadata.salt is not None:
            return bytes(metadata.salt)
        return generate_salt(self.policy.default_salt_length)

    def _derive_once(self, metadata: EncryptionMetadata) -> DerivedKey:
        salt = self._salt_for(metadata)
        if metadata.key:
            return bytearray(metadata.key), salt, metadata.iterations
        iterations = self._iterations_for(metadata)
        key = derive_key(metadata.password, salt, iterations, policy=self.policy)
        return key, salt, iterations

    def _seal(
        self,
        buffer: bytearray,
        metadata: EncryptionMetadata,
        derived: Optional[DerivedKey] = None,
    ) -> Tuple[bytes, EncryptionMetadata]:
        with wiped(buffer):
            if derived is not None:
                key, salt, iterations = derived
                envelope = self.envelope.seal_with_key(buffer, key, salt)
            elif metadata.key:
                salt, iterations = self._salt_for(metadata), metadata.iterations
                envelope = self.envelope.seal_with_key(buffer, metadata.key, salt)
            else:
                salt, iterations = self._salt_for(metadata), self._iterations_for(metadata)
                envelope = self.envelope.seal(buffer, metadata.password, iterations, salt)
        recorded = EncryptionMetadata(
            algorithm=normalize_algorithm(metadata.algorithm),
            iterations=iterations,
            salt=salt,
            nonce=envelope[len(salt):len(salt) + NONCE_SIZE],
        )
        return envelope, recorded

    def _open(
        self,
        envelope: bytes,
        metadata: EncryptionMetadata,
        keys: Optional[Dict[Tuple[bytes, int], bytearray]] = None,
    ) -> bytearray:
        salt_length = len(metadata.salt) if metadata.salt is not None else None
        if metadata.key:
            return self.envelope.open_with_key(envelope, metadata.key, salt_length=salt_length)
        iterations = self._iterations_for(metadata)
        if keys is not None and metadata.salt is not None:
            # batch: one derivation per distinct (salt, iterations)
            cache_key = (bytes(metadata.salt), iterations)
            if cache_key not in keys:
                keys[cache_key] = derive_key(metadata.password, metadata.salt, iterations, policy=self.policy)
            return self.envelope.open_with_key(envelope, keys[cache_key], salt_length=salt_length)
        return self.envelope.open(envelope, metadata.password, iterations)

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def _encrypt_value(self, value: Any, metadata: EncryptionMetadata, kind, derived) -> EncryptedValue:
        scalar = value if isinstance(value, ScalarValue) else self.values.scalar(value, kind)
        encoded = self.values.encode(scalar)
        envelope, recorded = self._seal(self.values.pack(encoded), metadata, derived)
        return EncryptedValue(
            kind=scalar.kind,
            envelope=envelope,
            metadata=recorded,
            nullable=scalar.nullable,
            max_length=scalar.max_length,
            precision=scalar.precision,
            scale=scalar.scale,
        )

    def encrypt_value(self, value: Any, metadata: EncryptionMetadata, kind=None) -> EncryptedValue:
        """
        Encrypt one scalar. ``value`` is a :class:`ScalarValue` or a plain
        Python value whose kind is ``kind`` (inferred when omitted).
        """
        metadata = self._require(metadata)
        encrypted = self._encrypt_value(value, metadata, kind, None)
        logger.debug("Encrypted %s value", encrypted.kind.value)
        return encrypted

    def _decrypt_value(self, encrypted: EncryptedValue, metadata: EncryptionMetadata, requested, keys) -> Any:
        effective = self._effective(encrypted.metadata, metadata)
        buffer = self._open(encrypted.envelope, effective, keys)
        with wiped(buffer):
            encoded = self.values.unpack(buffer)
        return self.values.decode(encoded, requested if requested is not None else encrypted.schema)

    def decrypt_value(self, encrypted: EncryptedValue, metadata: EncryptionMetadata, requested=None) -> Any:
        """Decrypt one scalar, optionally reading it as a compatible ``requested`` kind."""
        value = self._decrypt_value(encrypted, metadata, requested, None)
        logger.debug("Decrypted %s value", encrypted.kind.value)
        return value

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def _pairs(self, fields: RowInput, schema: Optional[Sequence[FieldSchema]]) -> List[Tuple[FieldSchema, Any]]:
        if isinstance(fields, Mapping):
            if schema is None:
                schema = self.rows.infer_schema(fields)
            return self.rows.pair(schema, fields)
        return list(fields)

    def _encrypt_row(self, fields: RowInput, metadata, schema, derived) -> EncryptedRow:
        pairs = self._pairs(fields, schema)
        buffer = self.rows.serialize(pairs)
        envelope, recorded = self._seal(buffer, metadata, derived)
        return EncryptedRow(
            fields=tuple(f for f, _ in pairs),
            metadata=recorded,
            payload=envelope,
        )

    def encrypt_row(
        self,
        fields: RowInput,
        metadata: EncryptionMetadata,
        schema: Optional[Sequence[FieldSchema]] = None,
    ) -> EncryptedRow:
        """
        Encrypt a whole row under one envelope.

        ``fields`` is either an ordered sequence of ``(FieldSchema, value)``
        pairs or a mapping of name -> value; for a mapping the schema is
        ``schema`` when given and inferred otherwise.
        """
        metadata = self._require(metadata)
        row = self._encrypt_row(fields, metadata, schema, None)
        logger.info("Encrypted row with %d fields", len(row.fields))
        return row

    def _decrypt_row(self, encrypted: EncryptedRow, metadata, strict: bool, keys) -> DecodedRow:
        effective = self._effective(encrypted.metadata, metadata)
        buffer = self._open(encrypted.payload, effective, keys)
        with wiped(buffer):
            row = self.rows.parse(buffer, encrypted.fields)
        if row.partial:
            logger.warning("Row decoded with %d undecodable fields", len(row.warnings))
            if strict:
                raise PartialRowError(row)
        return row

    def decrypt_row(self, encrypted: EncryptedRow, metadata: EncryptionMetadata, strict: bool = False) -> DecodedRow:
        """
        Decrypt a row. Undecodable fields come back as ``None`` with a
        warning; ``strict=True`` raises :class:`PartialRowError` instead.
        """
        row = self._decrypt_row(encrypted, metadata, strict, None)
        logger.info("Decrypted row with %d fields", len(row))
        return row

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def encrypt_values(self, values: Sequence[Any], metadata: EncryptionMetadata, kind=None) -> List[EncryptedValue]:
        """Encrypt each value independently; the key is derived once for the batch."""
        metadata = self._require(metadata)
        derived = self._derive_once(metadata)
        try:
            out = [self._encrypt_value(v, metadata, kind, derived) for v in values]
        finally:
            wipe(derived[0])
        logger.info("Encrypted batch of %d values", len(out))
        return out

    def decrypt_values(self, items: Sequence[EncryptedValue], metadata: EncryptionMetadata, requested=None) -> List[Any]:
        keys: Dict[Tuple[bytes, int], bytearray] = {}
        try:
            out = [self._decrypt_value(item, metadata, requested, keys) for item in items]
        finally:
            for key in keys.values():
                wipe(key)
        logger.info("Decrypted batch of %d values", len(out))
        return out

    def encrypt_rows(
        self,
        rows: Sequence[RowInput],
        metadata: EncryptionMetadata,
        schema: Optional[Sequence[FieldSchema]] = None,
    ) -> List[EncryptedRow]:
        """Encrypt each row under its own envelope and nonce, sharing one salt and key."""
        metadata = self._require(metadata)
        derived = self._derive_once(metadata)
        try:
            out = [self._encrypt_row(r, metadata, schema, derived) for r in rows]
        finally:
            wipe(derived[0])
        logger.info("Encrypted batch of %d rows", len(out))
        return out

    def decrypt_rows(
        self,
        items: Sequence[EncryptedRow],
        metadata: EncryptionMetadata,
        strict: bool = False,
    ) -> List[DecodedRow]:
        keys: Dict[Tuple[bytes, int], bytearray] = {}
        try:
            out = [self._decrypt_row(item, metadata, strict, keys) for item in items]
        finally:
            for key in keys.values():
                wipe(key)
        logger.info("Decrypted batch of %d rows", len(out))
        return out

    # ------------------------------------------------------------------
    # Text helpers
    # ------------------------------------------------------------------

    def encrypt_text(self, plaintext: str, password: str, iterations: Optional[int] = None) -> str:
        """Encrypt a string and return the envelope as base64."""
        if iterations is None:
            iterations = self.policy.default_iterations
        buffer = secure_copy(plaintext)
        with wiped(buffer):
            envelope = self.envelope.seal(buffer, password, iterations)
        return to_text(envelope)

    def decrypt_text(self, token: str, password: str, iterations: Optional[int] = None) -> str:
        if iterations is None:
            iterations = self.policy.default_iterations
        buffer = self.envelope.open(from_text(token), password, iterations)
        with wiped(buffer):
            return bytes(buffer).decode("utf-8")
