"""
Exceptions for rowseal
Everything raised by the package derives from RowSealError so callers have a
single catch-all.
"""


class RowSealError(Exception):
    # general container for errors
    pass


class InvalidParameterError(RowSealError, ValueError):
    # raised when a salt, iteration count, nonce or key is outside policy
    pass


class InvalidMetadataError(InvalidParameterError):
    # raised when encryption metadata fails validation
    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("Invalid encryption metadata: " + "; ".join(self.errors))


class AuthenticationFailureError(RowSealError):
    # raised on tag mismatch: wrong password, tampering or corruption
    pass


class TooShortError(RowSealError, ValueError):
    # raised when an envelope cannot hold salt + nonce + tag
    pass


class TypeMismatchError(RowSealError, TypeError):
    # raised when a value cannot be coerced to the declared kind
    pass


class UnsupportedTypeError(TypeMismatchError):
    # raised for type tags outside the closed kind registry
    pass


class PartialRowError(RowSealError):
    # raised by strict row decoding when one or more fields were undecodable
    def __init__(self, row):
        self.row = row
        names = ", ".join(w.field for w in row.warnings)
        super().__init__(f"Row decoded with undecodable fields: {names}")
