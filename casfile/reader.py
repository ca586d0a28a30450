from __future__ import annotations

import io
import logging
import os
from typing import BinaryIO

from ._utils import (
    DEFAULT_CHUNK_SIZE,
    HashAlgorithm,
    PathLikeArg,
    new_hasher,
    oid_from_path,
    validate_oid,
)
from .errors import ContentMismatchError

log = logging.getLogger(__name__)


class VerifyingReader(io.RawIOBase):
    """Binary reader that verifies its source against an expected OID.

    Reads are passed through from `source` while being hashed. When the
    verification window closes, the read that would report EOF either does so
    (digest matches) or raises
    [`ContentMismatchError`][casfile.errors.ContentMismatchError] instead.
    Bytes returned before that point are not retracted: a caller must not
    trust them until EOF was reached cleanly.

    Without `size` the window closes at the source's EOF. With `size`, reads
    are capped so that at most `size` bytes are ever requested from the source,
    and the window closes as soon as `size` bytes were delivered, whatever the
    source still holds.

    Parameters:
        source: Binary stream to verify
        oid: Expected identifier of the stream's content
        size: Expected length of the content, or `None` to rely on EOF
        algorithm: Digest algorithm the `oid` belongs to
        path: File `source` was opened from, used in error messages
    """

    _source: BinaryIO | None = None

    def __init__(
        self,
        source: BinaryIO,
        oid: str,
        size: int | None = None,
        *,
        algorithm: HashAlgorithm = HashAlgorithm.SHA256,
        path: str | None = None,
    ) -> None:
        if size is not None and size < 0:
            raise ValueError("size must be non-negative")

        super().__init__()
        self._source = source
        self._oid = oid
        self._remaining = size
        self._hasher = new_hasher(algorithm)
        self._path = path
        self._seen_bytes = 0
        self._verdict: ContentMismatchError | bool | None = None

    @property
    def oid(self) -> str:
        """The expected identifier"""
        return self._oid

    @property
    def actual_oid(self) -> str:
        """Digest of the bytes delivered so far"""
        return self._hasher.hexdigest()

    @property
    def seen_bytes(self) -> int:
        return self._seen_bytes

    @property
    def verified(self) -> bool:
        """`True` once the window closed and the content matched"""
        return self._verdict is True

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[override]
        if self.closed:
            raise ValueError("I/O operation on closed file.")

        if self._verdict is not None or self._remaining == 0:
            return self._finish()

        request = len(buffer)
        if request == 0:
            return 0
        if self._remaining is not None:
            request = min(request, self._remaining)

        data = self._source.read(request)  # type: ignore[union-attr]
        if not data:
            return self._finish()

        n = len(data)
        buffer[:n] = data
        self._hasher.update(data)
        self._seen_bytes += n
        if self._remaining is not None:
            self._remaining -= n
        return n

    def _finish(self) -> int:
        if self._verdict is None:
            actual = self._hasher.hexdigest()
            if actual == self._oid:
                log.debug("Verified %s (%d bytes)", self._oid, self._seen_bytes)
                self._verdict = True
            else:
                log.warning("Content mismatch, expected %s, got %s", self._oid, actual)
                self._verdict = ContentMismatchError(self._oid, actual, self._path)

        if isinstance(self._verdict, ContentMismatchError):
            raise self._verdict
        return 0

    def close(self) -> None:
        if not self.closed:
            try:
                if self._source is not None:
                    self._source.close()
            finally:
                super().close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._oid!r}, size={self._remaining!r})"


def verifying_reader(
    source: BinaryIO,
    oid: str,
    size: int | None = None,
    *,
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
) -> VerifyingReader:
    """Wrap an already open binary stream whose content should hash to `oid`.

    Raises:
        InvalidOidError: If `oid` isn't a valid identifier.
    """
    return VerifyingReader(source, validate_oid(oid), size, algorithm=algorithm)


def open_verified(
    path: PathLikeArg,
    size: int | None = None,
    *,
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
) -> VerifyingReader:
    """Open a content addressable file for verified reading.

    The expected OID is the base name of `path`. Passing `size` (e.g. from a
    previous `stat`) selects length-bounded verification.

    Raises:
        InvalidOidError: If the base name of `path` isn't a valid identifier.
        OSError: If the file can't be opened.
    """
    path = os.fspath(path)
    oid = oid_from_path(path)
    if size is not None and size < 0:
        raise ValueError("size must be non-negative")

    source = open(path, "rb")
    return VerifyingReader(source, oid, size, algorithm=algorithm, path=path)


def verify_file(
    path: PathLikeArg,
    *,
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Read the file at `path` to the end and return its verified OID.

    Raises:
        ContentMismatchError: If the content doesn't hash to its name.
    """
    with open_verified(path, algorithm=algorithm) as reader:
        while reader.read(chunk_size):
            pass
        return reader.oid
