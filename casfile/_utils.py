from __future__ import annotations

import hashlib
import os
import re
from enum import Enum
from typing import BinaryIO, Protocol

from blake3 import blake3

from .errors import InvalidOidError

PathLikeArg = str | os.PathLike[str]

OID_LENGTH = 64
DEFAULT_CHUNK_SIZE = 64 * 1024

_OID_PATTERN = re.compile(r"[0-9a-f]{64}")


class HashAlgorithm(str, Enum):
    """Digest algorithms that name content-addressable files.

    Every member produces a 256-bit digest, so identifiers are always
    64 lowercase hex characters. Each member is its own identifier namespace:
    a file written under `BLAKE3` will not verify under `SHA256`.
    """

    SHA256 = "sha256"
    BLAKE3 = "blake3"


class Hasher(Protocol):
    def update(self, data: bytes, /) -> object:
        ...

    def hexdigest(self) -> str:
        ...


def new_hasher(algorithm: HashAlgorithm = HashAlgorithm.SHA256) -> Hasher:
    """Return a fresh incremental hasher for `algorithm`."""
    match HashAlgorithm(algorithm):
        case HashAlgorithm.SHA256:
            return hashlib.sha256()
        case HashAlgorithm.BLAKE3:
            return blake3()


def is_valid_oid(oid: str) -> bool:
    return isinstance(oid, str) and _OID_PATTERN.fullmatch(oid) is not None


def validate_oid(oid: str) -> str:
    """Return `oid` unchanged, or raise `InvalidOidError`.

    Identifiers are case-sensitive; uppercase hex is rejected, not normalized.
    """
    if not is_valid_oid(oid):
        raise InvalidOidError(oid)
    return oid


def oid_from_path(path: PathLikeArg) -> str:
    """Extract and validate the identifier from the base name of `path`."""
    return validate_oid(os.path.basename(os.fspath(path)))


def compute_oid(data: bytes, algorithm: HashAlgorithm = HashAlgorithm.SHA256) -> str:
    hasher = new_hasher(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def hash_stream(
    stream: BinaryIO,
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Consume `stream` to EOF and return the hex digest of its bytes."""
    hasher = new_hasher(algorithm)
    while True:
        data = stream.read(chunk_size)
        if not data:
            break
        hasher.update(data)
    return hasher.hexdigest()
