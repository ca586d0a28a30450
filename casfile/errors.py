from __future__ import annotations


class CasFileError(Exception):
    """Base class for all errors raised by `casfile`."""


class AlreadyClosedError(CasFileError, ValueError):
    """A writer was used after it was accepted or abandoned."""

    def __init__(self, path: str | None = None):
        message = "Already closed"
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)
        self.path = path


class WriteInProgressError(CasFileError, FileExistsError):
    """The final or temporary path of a write slot already exists.

    Either another writer owns the identifier, the content is already stored,
    or a previous crashed write left its temporary file behind.
    """

    def __init__(self, filename: str):
        super().__init__(f"Write already in progress or stored: {filename}")
        self.filename = filename


class ContentMismatchError(CasFileError):
    """Computed digest does not equal the expected identifier.

    Attributes:
        expected: Identifier the content was supposed to hash to
        actual: Identifier the content actually hashed to
        path: File involved, if known
    """

    def __init__(self, expected: str, actual: str, path: str | None = None):
        message = f"Content mismatch. Expected OID {expected}, got {actual}"
        if path is not None:
            message = f"{message} ({path})"
        super().__init__(message)
        self.expected = expected
        self.actual = actual
        self.path = path


class ConsistencyError(CasFileError, RuntimeError):
    """An internal invariant failed, e.g. a handle reports an unexpected name."""


class InvalidOidError(CasFileError, ValueError):
    """A string is not 64 lowercase hexadecimal characters."""

    def __init__(self, oid: str):
        super().__init__(f"Invalid OID {oid!r}: expected 64 lowercase hex characters")
        self.oid = oid
