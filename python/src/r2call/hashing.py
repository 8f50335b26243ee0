"""Streaming content digests.

The SHA-256 content hash binds a request signature to its payload; the MD5
integrity checksum feeds the ``Content-MD5`` header. Each streaming function
is one independent read pass that opens and closes its own handle.
"""

import base64
import hashlib
from typing import Any

from r2call.files import CHUNK_SIZE, LocalFile

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def sha256_hex(data: bytes) -> str:
    """Lowercase hex SHA-256 of an in-memory payload."""
    return hashlib.sha256(data).hexdigest()


def md5_base64(data: bytes) -> str:
    """Base64 MD5 of an in-memory payload, as used by ``Content-MD5``."""
    return base64.b64encode(hashlib.md5(data).digest()).decode("ascii")


def _digest_file(digest: Any, source: LocalFile, length: int | None) -> Any:
    """Feed up to ``length`` bytes of ``source`` into ``digest``.

    Read errors propagate unchanged; a short read is not padded.
    """
    remaining = length
    with source.open() as f:
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

            digest.update(chunk)

            if remaining is not None:
                remaining -= len(chunk)
    return digest


def compute_streaming_sha256(source: LocalFile, length: int | None = None) -> str:
    """Compute the lowercase hex SHA-256 of a file in one read pass.

    Args:
        source: The file to hash.
        length: Number of bytes to cover, or None for the whole file.

    Returns:
        64-character lowercase hex string.
    """
    return _digest_file(hashlib.sha256(), source, length).hexdigest()


def compute_streaming_md5(source: LocalFile, length: int | None = None) -> str:
    """Compute the base64 MD5 of a file in one read pass.

    Args:
        source: The file to checksum.
        length: Number of bytes to cover, or None for the whole file.

    Returns:
        The base64-encoded 16-byte digest.
    """
    digest = _digest_file(hashlib.md5(), source, length)
    return base64.b64encode(digest.digest()).decode("ascii")
