# -*- coding: utf-8 -*-
"""casfile reads and writes content-addressable files: files named by the
hex digest of their own contents.

- [`AtomicWriter`][casfile.file.AtomicWriter] writes to a temporary location
  and only moves the file to its final path once its digest matches the name.
- [`VerifyingReader`][casfile.reader.VerifyingReader] streams an existing file
  while recomputing its digest, and raises instead of reporting a clean end of
  file if the content doesn't match the name.

Currently SHA-256 is the default digest; BLAKE3 can be chosen explicitly.
"""

from ._utils import HashAlgorithm, compute_oid, is_valid_oid, oid_from_path
from .errors import (
    AlreadyClosedError,
    CasFileError,
    ConsistencyError,
    ContentMismatchError,
    InvalidOidError,
    WriteInProgressError,
)
from .file import DEFAULT_SUFFIX, AtomicWriter
from .reader import VerifyingReader, open_verified, verify_file, verifying_reader

__all__ = (
    "AtomicWriter",
    "VerifyingReader",
    "open_verified",
    "verifying_reader",
    "verify_file",
    "HashAlgorithm",
    "compute_oid",
    "is_valid_oid",
    "oid_from_path",
    "DEFAULT_SUFFIX",
    "CasFileError",
    "AlreadyClosedError",
    "ConsistencyError",
    "ContentMismatchError",
    "InvalidOidError",
    "WriteInProgressError",
)
