from __future__ import annotations

import gc
import hashlib
import io
import pathlib

import pytest

from casfile import (
    AtomicWriter,
    ContentMismatchError,
    InvalidOidError,
    VerifyingReader,
    open_verified,
    verify_file,
    verifying_reader,
)
from conftest import BAD_OID, EMPTY_OID, SUP_OID, WAT_OID


class RecordingSource(io.BytesIO):
    """Remembers every size requested from it."""

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.requests: list[int] = []

    def read(self, size: int | None = -1) -> bytes:
        self.requests.append(-1 if size is None else size)
        return super().read(size)


class FailingSource(io.BytesIO):
    def read(self, size: int | None = -1) -> bytes:
        raise OSError("device gone")


def test_verify_open(stored_sup: pathlib.Path):
    with open_verified(stored_sup) as reader:
        assert reader.oid == SUP_OID
        assert reader.read() == b"SUP"
        assert reader.verified


def test_verify_reader():
    reader = verifying_reader(io.BytesIO(b"WAT"), WAT_OID)

    assert reader.read() == b"WAT"
    assert reader.verified
    assert reader.seen_bytes == 3
    assert reader.actual_oid == WAT_OID


def test_read_bad_data():
    reader = verifying_reader(io.BytesIO(b"WAT"), BAD_OID)

    with pytest.raises(ContentMismatchError) as excinfo:
        reader.read()

    assert excinfo.value.expected == BAD_OID
    assert excinfo.value.actual == WAT_OID
    assert not reader.verified


def test_mismatch_replaces_eof():
    reader = verifying_reader(io.BytesIO(b"WAT"), BAD_OID)

    # bytes are delivered before the window closes
    assert reader.read(2) == b"WA"
    assert reader.read(2) == b"T"

    with pytest.raises(ContentMismatchError):
        reader.read(2)

    # the verdict sticks
    with pytest.raises(ContentMismatchError):
        reader.read(2)


def test_clean_eof_is_repeatable():
    reader = verifying_reader(io.BytesIO(b"WAT"), WAT_OID)

    assert reader.read(10) == b"WAT"
    assert reader.read(10) == b""
    assert reader.read(10) == b""


def test_empty_content():
    reader = verifying_reader(io.BytesIO(b""), EMPTY_OID)
    assert reader.read() == b""
    assert reader.verified


def test_source_errors_pass_through():
    reader = verifying_reader(FailingSource(), SUP_OID)

    with pytest.raises(OSError, match="device gone"):
        reader.read(10)

    assert not reader.verified


def test_invalid_oid():
    with pytest.raises(InvalidOidError):
        verifying_reader(io.BytesIO(b"WAT"), "BAD-OID")


def test_bounded_ignores_trailing_bytes():
    source = RecordingSource(b"SUPEXTRA")
    reader = verifying_reader(source, SUP_OID, size=3)

    assert reader.read(100) == b"SUP"
    assert reader.read(100) == b""
    assert reader.verified

    # never asked the source for more than the budget
    assert source.requests == [3]
    assert source.tell() == 3


def test_bounded_readall_ignores_trailing_bytes():
    reader = verifying_reader(io.BytesIO(b"SUPEXTRA"), SUP_OID, size=3)
    assert reader.read() == b"SUP"


def test_bounded_small_reads():
    reader = verifying_reader(io.BytesIO(b"SUP"), SUP_OID, size=3)

    assert [reader.read(1) for _ in range(4)] == [b"S", b"U", b"P", b""]
    assert reader.verified


def test_bounded_undersized_length():
    reader = verifying_reader(io.BytesIO(b"SUP"), SUP_OID, size=2)

    assert reader.read(100) == b"SU"

    with pytest.raises(ContentMismatchError) as excinfo:
        reader.read(100)

    assert excinfo.value.actual == hashlib.sha256(b"SU").hexdigest()


def test_bounded_truncated_source():
    reader = verifying_reader(io.BytesIO(b"SU"), SUP_OID, size=3)

    assert reader.read(100) == b"SU"

    with pytest.raises(ContentMismatchError):
        reader.read(100)


def test_bounded_oversized_content_mismatch():
    # the first 3 bytes of the source aren't the content the name promises
    reader = verifying_reader(io.BytesIO(b"WATSUP"), SUP_OID, size=3)

    assert reader.read(100) == b"WAT"
    with pytest.raises(ContentMismatchError):
        reader.read(100)


def test_bounded_zero_length():
    source = RecordingSource(b"SUP")
    reader = verifying_reader(source, EMPTY_OID, size=0)

    assert reader.read(100) == b""
    assert reader.verified
    assert source.requests == []


def test_negative_size_leaves_source_open():
    source = io.BytesIO(b"SUP")

    with pytest.raises(ValueError):
        VerifyingReader(source, SUP_OID, size=-1)

    gc.collect()
    assert not source.closed


def test_open_missing_file(store_dir: pathlib.Path):
    with pytest.raises(FileNotFoundError):
        open_verified(store_dir / SUP_OID)


def test_open_invalid_name(store_dir: pathlib.Path):
    path = store_dir / "readme.txt"
    path.write_bytes(b"SUP")

    with pytest.raises(InvalidOidError):
        open_verified(path)


def test_open_corrupted_file(sup_path: pathlib.Path):
    sup_path.write_bytes(b"SUQ")

    with open_verified(sup_path) as reader:
        assert reader.read(3) == b"SUQ"
        with pytest.raises(ContentMismatchError) as excinfo:
            reader.read(3)

    assert excinfo.value.path == str(sup_path)


def test_open_with_size(stored_sup: pathlib.Path):
    size = stored_sup.stat().st_size

    with open_verified(stored_sup, size) as reader:
        assert reader.read() == b"SUP"
        assert reader.verified


def test_close_closes_source():
    source = io.BytesIO(b"WAT")
    reader = verifying_reader(source, WAT_OID)

    reader.close()

    assert source.closed
    assert reader.closed
    with pytest.raises(ValueError):
        reader.read(1)


def test_verify_file(stored_sup: pathlib.Path, store_dir: pathlib.Path):
    assert verify_file(stored_sup) == SUP_OID

    corrupted = store_dir / WAT_OID
    corrupted.write_bytes(b"WAT?")
    with pytest.raises(ContentMismatchError):
        verify_file(corrupted)


def test_write_then_read(sup_path: pathlib.Path):
    with AtomicWriter(sup_path) as writer:
        writer.write(b"SUP")
        writer.accept()

    with open_verified(sup_path, sup_path.stat().st_size) as reader:
        assert reader.read() == b"SUP"
