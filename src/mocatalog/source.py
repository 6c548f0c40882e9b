"""Random-access byte sources for catalog decoding.

A byte source wraps a fixed byte sequence and supports absolute seeks and
exact-length reads. It knows nothing about translations.

Implementations:
    MemoryByteSource: backed by an in-memory ``bytes`` buffer.
    FileByteSource: backed by an open binary file handle.
    PreloadedFileByteSource: reads a whole file into memory up front and
        then behaves exactly like :class:`MemoryByteSource`.

Usage:
    with FileByteSource("locale/fr/LC_MESSAGES/messages.mo") as source:
        magic = source.read_at(0, 4)
"""

from __future__ import annotations

import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO

from mocatalog.exceptions import CatalogIOError


class ByteSource(ABC):
    """Abstract random-access byte source.

    ``seek`` then ``read`` is a two-step sequence on a shared cursor. Use
    :meth:`read_at` when a source may be shared between threads.
    """

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Read exactly ``size`` bytes from the current position.

        Raises:
            CatalogIOError: If fewer than ``size`` bytes are available.
        """

    @abstractmethod
    def seek(self, offset: int) -> None:
        """Move to an absolute offset.

        Raises:
            CatalogIOError: If ``offset`` is negative or past the end.
        """

    @abstractmethod
    def tell(self) -> int:
        """Return the current absolute offset."""

    @abstractmethod
    def length(self) -> int:
        """Return the total number of bytes in the source."""

    def read_at(self, offset: int, size: int) -> bytes:
        """Seek to ``offset`` and read exactly ``size`` bytes."""
        self.seek(offset)
        return self.read(size)

    def close(self) -> None:
        """Release any underlying resources."""

    def __enter__(self) -> "ByteSource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _check_read(self, position: int, size: int) -> None:
        if size < 0:
            raise CatalogIOError("Negative read size", offset=position, length=size)
        if position + size > self.length():
            raise CatalogIOError(
                f"Read past end of source ({self.length()} bytes)",
                offset=position,
                length=size,
            )

    def _check_seek(self, offset: int) -> None:
        if offset < 0 or offset > self.length():
            raise CatalogIOError(
                f"Seek outside source ({self.length()} bytes)",
                offset=offset,
            )


class MemoryByteSource(ByteSource):
    """Byte source over an in-memory buffer."""

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = bytes(data)
        self._position = 0

    def read(self, size: int) -> bytes:
        self._check_read(self._position, size)
        start = self._position
        self._position += size
        return self._data[start:self._position]

    def seek(self, offset: int) -> None:
        self._check_seek(offset)
        self._position = offset

    def tell(self) -> int:
        return self._position

    def length(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MemoryByteSource(length={len(self._data)})"


class FileByteSource(ByteSource):
    """Byte source over a binary file kept open for the source's lifetime.

    The file is opened in the constructor and closed by :meth:`close` or on
    leaving a ``with`` block. If construction fails after the file was
    opened, the handle is closed before the error propagates.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()
        try:
            self._file: BinaryIO | None = open(self.path, "rb")
        except OSError as e:
            raise CatalogIOError(f"Cannot open {self.path}: {e}") from e
        try:
            self._length = os.fstat(self._file.fileno()).st_size
        except OSError as e:
            self._file.close()
            self._file = None
            raise CatalogIOError(f"Cannot stat {self.path}: {e}") from e

    @property
    def closed(self) -> bool:
        return self._file is None

    def _handle(self) -> BinaryIO:
        if self._file is None:
            raise CatalogIOError(f"Source is closed: {self.path}")
        return self._file

    def read(self, size: int) -> bytes:
        with self._lock:
            handle = self._handle()
            position = handle.tell()
            self._check_read(position, size)
            try:
                data = handle.read(size)
            except OSError as e:
                raise CatalogIOError(
                    f"Read failed on {self.path}: {e}", offset=position, length=size
                ) from e
            if len(data) != size:
                raise CatalogIOError(
                    f"Short read on {self.path}", offset=position, length=size
                )
            return data

    def seek(self, offset: int) -> None:
        with self._lock:
            handle = self._handle()
            self._check_seek(offset)
            handle.seek(offset)

    def tell(self) -> int:
        with self._lock:
            return self._handle().tell()

    def length(self) -> int:
        return self._length

    def read_at(self, offset: int, size: int) -> bytes:
        with self._lock:
            self.seek(offset)
            return self.read(size)

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"FileByteSource({str(self.path)!r}, {state})"


class PreloadedFileByteSource(MemoryByteSource):
    """Reads an entire file into memory and serves it from the buffer.

    The file handle is released before the constructor returns.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        try:
            with open(self.path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise CatalogIOError(f"Cannot read {self.path}: {e}") from e
        super().__init__(data)

    def __repr__(self) -> str:
        return f"PreloadedFileByteSource({str(self.path)!r}, length={self.length()})"


def open_source(
    origin: str | os.PathLike[str] | bytes | bytearray | memoryview,
    preload: bool = False,
) -> ByteSource:
    """Create a byte source for a path or an in-memory buffer.

    Args:
        origin: Filesystem path, or the raw catalog bytes.
        preload: For paths, read the whole file into memory and close it.

    Returns:
        A ready-to-use byte source.

    Raises:
        CatalogIOError: If the file cannot be opened or read.
    """
    if isinstance(origin, (bytes, bytearray, memoryview)):
        return MemoryByteSource(origin)
    if preload:
        return PreloadedFileByteSource(origin)
    return FileByteSource(origin)
