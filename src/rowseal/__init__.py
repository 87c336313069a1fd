"""rowseal: password-based AES-256-GCM envelopes for typed values and rows."""

import logging

from .core.config import DEFAULT_POLICY, EncryptionPolicy, load_policy
from .core.engine import EncryptionEngine
from .core.logging_config import configure_logging
from .core.exceptions import (
    AuthenticationFailureError,
    InvalidMetadataError,
    InvalidParameterError,
    PartialRowError,
    RowSealError,
    TooShortError,
    TypeMismatchError,
    UnsupportedTypeError,
)
from .core.models import (
    DecodedRow,
    EncryptedRow,
    EncryptedValue,
    EncryptionMetadata,
    FieldSchema,
    ScalarKind,
    ScalarValue,
    ValidationResult,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "DEFAULT_POLICY",
    "EncryptionPolicy",
    "load_policy",
    "EncryptionEngine",
    "configure_logging",
    "AuthenticationFailureError",
    "InvalidMetadataError",
    "InvalidParameterError",
    "PartialRowError",
    "RowSealError",
    "TooShortError",
    "TypeMismatchError",
    "UnsupportedTypeError",
    "DecodedRow",
    "EncryptedRow",
    "EncryptedValue",
    "EncryptionMetadata",
    "FieldSchema",
    "ScalarKind",
    "ScalarValue",
    "ValidationResult",
]
