from __future__ import annotations

from typing import AsyncGenerator, AsyncIterable

import anyio
import anyio.to_thread

from ._utils import DEFAULT_CHUNK_SIZE, HashAlgorithm, PathLikeArg, new_hasher
from .file import DEFAULT_DMODE, DEFAULT_FMODE, DEFAULT_SUFFIX, AtomicWriter
from .reader import VerifyingReader, open_verified


class AsyncAtomicWriter:
    """Async front for [`AtomicWriter`][casfile.file.AtomicWriter].

    Every blocking call runs in a worker thread. Use
    [`create()`][casfile.aio.AsyncAtomicWriter.create] to also construct the
    writer off the event loop.

    Example:

        async with await AsyncAtomicWriter.create(path) as writer:
            await writer.copy_from(chunks)
            await writer.accept()
    """

    def __init__(self, writer: AtomicWriter) -> None:
        self._writer = writer

    @classmethod
    async def create(
        cls,
        path: PathLikeArg,
        suffix: str = DEFAULT_SUFFIX,
        *,
        algorithm: HashAlgorithm = HashAlgorithm.SHA256,
        fmode: int = DEFAULT_FMODE,
        dmode: int = DEFAULT_DMODE,
    ) -> AsyncAtomicWriter:
        # a writer created in the worker thread must reach the caller, who
        # owns its cleanup
        with anyio.CancelScope(shield=True):
            writer = await anyio.to_thread.run_sync(
                lambda: AtomicWriter(
                    path, suffix, algorithm=algorithm, fmode=fmode, dmode=dmode
                )
            )
        return cls(writer)

    @property
    def wrapped(self) -> AtomicWriter:
        return self._writer

    @property
    def oid(self) -> str:
        return self._writer.oid

    @property
    def path(self) -> str:
        return self._writer.path

    @property
    def closed(self) -> bool:
        return self._writer.closed

    async def write(self, data: bytes) -> int:
        return await anyio.to_thread.run_sync(self._writer.write, data)

    async def copy_from(self, chunks: AsyncIterable[bytes]) -> int:
        copied = 0
        async for data in chunks:
            await self.write(data)
            copied += len(data)
        return copied

    async def accept(self) -> None:
        await anyio.to_thread.run_sync(self._writer.accept)

    async def aclose(self) -> None:
        # cleanup must run even if the caller was cancelled
        with anyio.CancelScope(shield=True):
            await anyio.to_thread.run_sync(self._writer.close)

    async def __aenter__(self) -> AsyncAtomicWriter:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class AsyncVerifyingReader:
    """Async front for [`VerifyingReader`][casfile.reader.VerifyingReader].

    [`read()`][casfile.aio.AsyncVerifyingReader.read] yields chunks until the
    verification window closes, and raises
    [`ContentMismatchError`][casfile.errors.ContentMismatchError] in place of
    stopping if the content doesn't match.
    """

    def __init__(self, reader: VerifyingReader) -> None:
        self._reader = reader

    @classmethod
    async def open(
        cls,
        path: PathLikeArg,
        size: int | None = None,
        *,
        algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    ) -> AsyncVerifyingReader:
        reader = await anyio.to_thread.run_sync(
            lambda: open_verified(path, size, algorithm=algorithm)
        )
        return cls(reader)

    @property
    def wrapped(self) -> VerifyingReader:
        return self._reader

    @property
    def oid(self) -> str:
        return self._reader.oid

    @property
    def seen_bytes(self) -> int:
        return self._reader.seen_bytes

    @property
    def verified(self) -> bool:
        return self._reader.verified

    async def read(self, size: int = DEFAULT_CHUNK_SIZE) -> AsyncGenerator[bytes, None]:
        while True:
            data = await anyio.to_thread.run_sync(self._reader.read, size)
            if not data:
                break
            yield data

    async def aclose(self) -> None:
        with anyio.CancelScope(shield=True):
            await anyio.to_thread.run_sync(self._reader.close)

    async def __aenter__(self) -> AsyncVerifyingReader:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


async def compute_oid_of_path(
    path: PathLikeArg,
    *,
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
) -> str:
    """Compute the identifier of the file at `path`, without verifying its name."""
    file_path = anyio.Path(path)

    blksize = 4096
    file_size = None

    try:
        file_stat = await file_path.stat()
        blksize = file_stat.st_blksize or 4096
        file_size = file_stat.st_size
    except OSError:
        # open() below reports the real problem
        pass

    if not file_size or file_size > 1.5 * 1024 * 1024:  # > 1.5 MiB
        # block-aligned size closest to 32MiB
        chunk_size = (32 * 1024 * 1024 // blksize) * blksize
    else:
        chunk_size = blksize

    hasher = new_hasher(algorithm)
    async with await file_path.open("rb") as file:
        while True:
            data = await file.read(chunk_size)
            if not data:
                break
            hasher.update(data)

    return hasher.hexdigest()


async def store(
    path: PathLikeArg,
    chunks: AsyncIterable[bytes],
    suffix: str = DEFAULT_SUFFIX,
    *,
    algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    fmode: int = DEFAULT_FMODE,
    dmode: int = DEFAULT_DMODE,
) -> int:
    """Write `chunks` to the content addressable file at `path`.

    Nothing is left on disk unless the content hashes to the base name of
    `path`.

    Returns:
        The number of bytes stored.

    Raises:
        WriteInProgressError: If `path` is already stored or being written.
        ContentMismatchError: If the content doesn't hash to its name.
    """
    async with await AsyncAtomicWriter.create(
        path, suffix, algorithm=algorithm, fmode=fmode, dmode=dmode
    ) as writer:
        copied = await writer.copy_from(chunks)
        await writer.accept()
    return copied
