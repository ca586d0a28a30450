from __future__ import annotations

import logging
import os
import pathlib
from abc import ABC, abstractmethod
from typing import BinaryIO

from ._utils import (
    DEFAULT_CHUNK_SIZE,
    HashAlgorithm,
    PathLikeArg,
    new_hasher,
    oid_from_path,
)
from .errors import (
    AlreadyClosedError,
    ConsistencyError,
    ContentMismatchError,
    WriteInProgressError,
)

log = logging.getLogger(__name__)

DEFAULT_SUFFIX = "-temp"
DEFAULT_FMODE = 0o644
DEFAULT_DMODE = 0o755


class WriteSyncer(ABC):
    """The file capabilities `AtomicWriter` relies on."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def write(self, data: bytes) -> int:
        pass

    @abstractmethod
    def sync(self) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class OSWriteSyncer(WriteSyncer):
    """A file created in exclusive mode: opening fails if `path` exists."""

    def __init__(self, path: str, mode: int = DEFAULT_FMODE) -> None:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
        self._name = path
        self._file = os.fdopen(fd, "wb")

    @property
    def name(self) -> str:
        return self._name

    def write(self, data: bytes) -> int:
        return self._file.write(data)

    def sync(self) -> None:
        self._file.flush()
        os.fsync(self._file.fileno())

    def close(self) -> None:
        self._file.close()


def cleanup_file(file: WriteSyncer, name: str) -> None:
    """Close `file` and remove it from disk.

    The file is removed even if closing fails, in which case the close error
    is raised afterwards.

    Raises:
        ConsistencyError: If `file` does not report `name` as its name. Nothing
            is removed in that case.
    """
    if file.name != name:
        log.error("Refusing to remove %s, handle reports %s", name, file.name)
        raise ConsistencyError(
            f"Invalid filename, expected {name!r}, got {file.name!r}"
        )

    try:
        file.close()
    finally:
        pathlib.Path(name).unlink(missing_ok=True)


class AtomicWriter:
    """Atomic writer of a content addressable file.

    Bytes are written to a temporary sibling of the final path, and only
    renamed into place by [`accept()`][casfile.file.AtomicWriter.accept] once
    their digest matches the identifier taken from the final path's base name.
    Until then the final path holds an empty placeholder, created in exclusive
    mode together with the temp file, so that no two writers can own the
    same identifier.

    An instance is not safe for concurrent use.

    Example:

        with AtomicWriter(f"objects/{oid}") as writer:
            writer.copy_from(source)
            writer.accept()

    Parameters:
        path: Final path of the file. Its base name is the expected OID.
        suffix: Appended to `path` to build the temp path.
        algorithm: Digest algorithm naming the file.
        fmode: Permissions of the created files.
        dmode: Permissions of missing parent directories created for `path`.

    Raises:
        InvalidOidError: If the base name of `path` isn't a valid OID.
        WriteInProgressError: If the final or temp path already exists.
        OSError: If directories or files can't be created.
    """

    def __init__(
        self,
        path: PathLikeArg,
        suffix: str = DEFAULT_SUFFIX,
        *,
        algorithm: HashAlgorithm = HashAlgorithm.SHA256,
        fmode: int = DEFAULT_FMODE,
        dmode: int = DEFAULT_DMODE,
    ) -> None:
        path = os.fspath(path)
        self._oid = oid_from_path(path)
        self._path = path
        self._temp_path = path + suffix
        self._algorithm = HashAlgorithm(algorithm)
        self._hasher = new_hasher(self._algorithm)
        self._bytes_written = 0

        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, mode=dmode, exist_ok=True)

        self._temp_file: WriteSyncer | None = _create(self._temp_path, fmode)
        try:
            self._file: WriteSyncer | None = _create(self._path, fmode)
        except BaseException:
            cleanup_file(self._temp_file, self._temp_path)
            self._temp_file = None
            raise

        log.debug("Opened write slot %s", self._path)

    @property
    def oid(self) -> str:
        """The expected identifier, taken from the final path"""
        return self._oid

    @property
    def path(self) -> str:
        return self._path

    @property
    def temp_path(self) -> str:
        return self._temp_path

    @property
    def algorithm(self) -> HashAlgorithm:
        return self._algorithm

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def closed(self) -> bool:
        """`True` once the writer was accepted or abandoned"""
        return self._temp_file is None or self._file is None

    def write(self, data: bytes) -> int:
        """Append `data` to the temp file and to the running digest.

        The digest includes `data` even if the write raised, so a writer that
        failed to write must be closed rather than reused.
        """
        if self.closed:
            raise AlreadyClosedError(self._path)

        try:
            written = self._temp_file.write(data)  # type: ignore[union-attr]
        finally:
            self._hasher.update(data)
            self._bytes_written += len(data)

        return written

    def copy_from(self, source: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
        """Write everything `source` yields until EOF.

        Returns:
            The number of bytes copied.
        """
        copied = 0
        while True:
            data = source.read(chunk_size)
            if not data:
                break
            self.write(data)
            copied += len(data)
        return copied

    def accept(self) -> None:
        """Verify the written content and move it to the final path.

        On a digest mismatch the writer stays open and still owns both paths;
        call [`close()`][casfile.file.AtomicWriter.close] to discard them.

        Raises:
            AlreadyClosedError: If the writer was already accepted or abandoned.
            ContentMismatchError: If the digest of the written bytes isn't
                the expected OID.
            ConsistencyError: If the placeholder handle isn't the final path.
            OSError: If removing, syncing, closing or renaming fails.
        """
        if self.closed:
            raise AlreadyClosedError(self._path)

        actual = self._hasher.hexdigest()
        if actual != self._oid:
            log.warning("Content mismatch for %s, got %s", self._path, actual)
            raise ContentMismatchError(self._oid, actual, self._path)

        file, self._file = self._file, None
        try:
            cleanup_file(file, self._path)  # type: ignore[arg-type]
        except BaseException:
            self.close()
            raise

        temp_file = self._temp_file
        # flush any data to disk
        temp_file.sync()  # type: ignore[union-attr]

        self._temp_file = None
        try:
            temp_file.close()  # type: ignore[union-attr]
        except BaseException:
            pathlib.Path(self._temp_path).unlink(missing_ok=True)
            raise

        try:
            os.replace(self._temp_path, self._path)
        except BaseException:
            pathlib.Path(self._temp_path).unlink(missing_ok=True)
            raise

        log.debug("Accepted %s (%d bytes)", self._path, self._bytes_written)

    def close(self) -> None:
        """Discard whatever the writer still owns.

        Safe to call any number of times, including after `accept()`. Both
        handles are cleaned up even if one of them fails; the first failure is
        raised afterwards.
        """
        errors: list[BaseException] = []

        for attr, name in (("_temp_file", self._temp_path), ("_file", self._path)):
            handle = getattr(self, attr)
            if handle is None:
                continue
            setattr(self, attr, None)
            try:
                cleanup_file(handle, name)
            except Exception as exc:
                errors.append(exc)
            else:
                log.debug("Removed %s", name)

        if errors:
            raise errors[0]

    def __enter__(self) -> AtomicWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._path!r})"


def _create(path: str, mode: int) -> WriteSyncer:
    try:
        return OSWriteSyncer(path, mode)
    except FileExistsError as exc:
        raise WriteInProgressError(path) from exc
