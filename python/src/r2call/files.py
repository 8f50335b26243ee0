"""Local file access used for request bodies.

Every pass over a file (hashing, checksumming, transmitting) gets its own
handle from :meth:`LocalFile.open`; nothing is shared between passes.
"""

from collections.abc import AsyncIterator
from pathlib import Path
from typing import BinaryIO

from r2call.errors import ConfigurationError

# Streaming chunk size: 64 KB
CHUNK_SIZE = 64 * 1024


class LocalFile:
    """A reopenable local file with a known byte length.

    Attributes:
        path: The filesystem path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"LocalFile({str(self.path)!r})"

    def size(self) -> int:
        """Return the exact byte length of the file.

        Raises:
            FileNotFoundError: If the path does not exist.
            ConfigurationError: If the path is not a regular file.
        """
        stat = self.path.stat()
        if not self.path.is_file():
            raise ConfigurationError(f"Not a regular file: {self.path}")
        return stat.st_size

    def open(self) -> BinaryIO:
        """Open a fresh, independent binary read handle."""
        return open(self.path, "rb")

    def read_range(self, start: int = 0, end: int | None = None) -> bytes:
        """Read a byte range fully into memory.

        Args:
            start: First byte offset.
            end: Last byte offset (inclusive), or None for end of file.

        Returns:
            The bytes in ``[start, end]``; empty when ``start`` is at or past EOF.
        """
        with self.open() as f:
            if start > 0:
                f.seek(start)
            if end is None:
                return f.read()
            return f.read(max(end - start + 1, 0))

    def iter_chunks(self, length: int | None = None) -> "FileChunks":
        """Return an async iterable over the file, capped at ``length`` bytes.

        The handle is opened when iteration starts, not here.
        """
        return FileChunks(self, length)


class FileChunks:
    """Async iterable of file chunks; each iteration opens its own handle."""

    def __init__(self, source: LocalFile, length: int | None = None) -> None:
        self.source = source
        self.length = length

    async def __aiter__(self) -> AsyncIterator[bytes]:
        remaining = self.length
        with self.source.open() as f:
            while True:
                if remaining is not None:
                    to_read = min(CHUNK_SIZE, remaining)
                    if to_read <= 0:
                        break
                else:
                    to_read = CHUNK_SIZE

                chunk = f.read(to_read)
                if not chunk:
                    break

                yield chunk

                if remaining is not None:
                    remaining -= len(chunk)
