"""Request body sources and their preparation.

A body is exactly one of three shapes:

- :class:`EmptyBody` - no payload.
- :class:`BufferedBody` - the whole payload in memory; digests on demand.
- :class:`StreamedBody` - a reopenable local file whose content hash (and
  optional MD5) were computed before the transmission handle is opened.

The streamed shape needs up to three sequential passes over the same file:
content hash, integrity checksum, transmission. The signature depends on the
first, so they never overlap.
"""

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from pydantic import BaseModel

from r2call import metrics
from r2call.errors import ConfigurationError
from r2call.files import FileChunks, LocalFile
from r2call.hashing import (
    EMPTY_SHA256,
    compute_streaming_md5,
    compute_streaming_sha256,
    md5_base64,
    sha256_hex,
)

logger = logging.getLogger(__name__)

UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"

_BYTE_RANGE_RE = re.compile(r"^(?:bytes=)?(\d+)-(\d*)$")


@dataclass(frozen=True)
class EmptyBody:
    """No request payload."""


@dataclass(frozen=True)
class BufferedBody:
    """A payload held entirely in memory.

    Attributes:
        data: The complete payload.
    """

    data: bytes

    def __repr__(self) -> str:
        return f"BufferedBody(<{len(self.data)} bytes>)"


@dataclass(frozen=True)
class StreamedBody:
    """A file-backed payload with its digests already resolved.

    Attributes:
        file: The reopenable source.
        length: Exact number of bytes that will be transmitted.
        content_sha256: Hex SHA-256 of those bytes, or ``UNSIGNED-PAYLOAD``.
        content_md5: Base64 MD5 of those bytes, when it was computed.
    """

    file: LocalFile
    length: int
    content_sha256: str
    content_md5: str | None = None

    def stream(self) -> FileChunks:
        """The transmission pass; opens its own handle when iterated."""
        return self.file.iter_chunks(self.length)


BodySource = Union[EmptyBody, BufferedBody, StreamedBody]

EMPTY_BODY = EmptyBody()


class BodyOptions(BaseModel):
    """Caller-supplied options describing where a request body comes from."""

    file: Path | None = None
    filestream: Path | None = None
    bytes_range: str | None = None
    content_md5: str | None = None
    compute_content_md5: bool = False


@dataclass
class PreparedBody:
    """Result of :func:`load_body`.

    Attributes:
        body: The resolved body source.
        content_md5: Base64 MD5 to send as ``Content-MD5``, if any.
        prep_millis: Time spent reading and hashing, for observability.
    """

    body: BodySource
    content_md5: str | None = None
    prep_millis: int = 0


def content_sha256(body: BodySource, unsigned_payload: bool = False) -> str:
    """Resolve the value of the ``x-amz-content-sha256`` header for a body.

    Streamed bodies carry a precomputed value; the others are hashed here
    unless the payload is unsigned.
    """
    if isinstance(body, StreamedBody):
        return body.content_sha256
    if unsigned_payload:
        return UNSIGNED_PAYLOAD
    if isinstance(body, BufferedBody):
        return sha256_hex(body.data)
    return EMPTY_SHA256


def parse_byte_range(value: str) -> tuple[int, int | None]:
    """Parse a local byte range like ``0-99``, ``100-`` or ``bytes=0-99``.

    Args:
        value: The range expression. The end offset is inclusive.

    Returns:
        ``(start, end)`` where ``end`` is None for an open range.

    Raises:
        ConfigurationError: If the expression is malformed or start > end.
    """
    m = _BYTE_RANGE_RE.match(value.strip())
    if not m:
        raise ConfigurationError(f"Bad bytes: {value}")
    start = int(m.group(1))
    end = int(m.group(2)) if m.group(2) else None
    if end is not None and start > end:
        raise ConfigurationError(f"Bad bytes: {value}")
    return start, end


def load_body(
    options: BodyOptions,
    unsigned_payload: bool = False,
    file_factory: type[LocalFile] = LocalFile,
) -> PreparedBody:
    """Resolve body options into exactly one body source.

    Args:
        options: The body configuration.
        unsigned_payload: Skip the content-hash pass for streamed bodies.
        file_factory: Builds the local-file collaborator from a path.

    Returns:
        The prepared body with its optional Content-MD5 and prep time.

    Raises:
        ConfigurationError: On conflicting or missing options, a bad byte
            range, or a source that cannot provide a requested checksum.
        FileNotFoundError: If the source file does not exist.
    """
    if options.compute_content_md5 and options.content_md5:
        raise ConfigurationError("Cannot compute content-md5 if it's already provided")
    if options.file is not None and options.filestream is not None:
        raise ConfigurationError("The file and filestream options are mutually exclusive")
    if options.file is None and options.filestream is None:
        raise ConfigurationError("Must provide the file or filestream option")
    if options.bytes_range is not None and options.file is None:
        raise ConfigurationError("The bytes option only applies to the file option")

    byte_range = parse_byte_range(options.bytes_range) if options.bytes_range else None

    start = time.monotonic()
    body: BodySource
    if options.file is not None:
        source = file_factory(options.file)
        source.size()  # raises for missing paths and non-regular files
        if byte_range is not None:
            data = source.read_range(*byte_range)
            logger.info("Read %d bytes from %s", len(data), source.path)
        else:
            data = source.read_range()
        body = BufferedBody(data)
    else:
        source = file_factory(options.filestream)
        length = source.size()
        sha256 = (
            UNSIGNED_PAYLOAD if unsigned_payload else compute_streaming_sha256(source, length)
        )
        md5 = compute_streaming_md5(source, length) if options.compute_content_md5 else None
        body = StreamedBody(file=source, length=length, content_sha256=sha256, content_md5=md5)

    content_md5 = options.content_md5
    if options.compute_content_md5:
        content_md5 = resolve_content_md5(body)

    prep_seconds = time.monotonic() - start
    prep_millis = int(prep_seconds * 1000)
    logger.info("prep took %dms", prep_millis, extra={"prep_ms": prep_millis})
    if metrics.body_prep_seconds is not None:
        metrics.body_prep_seconds.observe(prep_seconds)

    return PreparedBody(body=body, content_md5=content_md5, prep_millis=prep_millis)


def resolve_content_md5(body: BodySource) -> str:
    """Produce the Content-MD5 for a body that was asked to compute one.

    Raises:
        ConfigurationError: If the body cannot provide a checksum.
    """
    if isinstance(body, BufferedBody):
        return md5_base64(body.data)
    if isinstance(body, EmptyBody):
        return md5_base64(b"")
    if not body.content_md5:
        raise ConfigurationError(
            "Cannot compute content-md5 if the stream source does not provide it"
        )
    return body.content_md5
