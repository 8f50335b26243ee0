"""Result containers parsed from service responses.

These dataclasses mirror the XML documents returned by list, delete and
copy operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class BucketInfo:
    """A bucket entry from ListAllMyBucketsResult.

    Attributes:
        name: The bucket name.
        creation_date: ISO 8601 creation timestamp as sent by the service.
    """

    name: str
    creation_date: str = ""


@dataclass
class ObjectInfo:
    """An object entry from ListBucketResult.

    Attributes:
        key: The object key.
        size: Size in bytes.
        etag: Quoted ETag as sent by the service.
        last_modified: ISO 8601 last-modified timestamp.
        storage_class: Storage class (e.g. STANDARD).
    """

    key: str
    size: int = 0
    etag: str = ""
    last_modified: str = ""
    storage_class: str = ""


@dataclass
class ListObjectsResult:
    """One page of a v1 or v2 object listing."""

    name: str = ""
    prefix: str = ""
    delimiter: str = ""
    max_keys: int = 0
    is_truncated: bool = False
    contents: list[ObjectInfo] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    key_count: int | None = None
    continuation_token: str = ""
    next_continuation_token: str = ""
    start_after: str = ""
    marker: str = ""
    next_marker: str = ""


@dataclass
class DeleteError:
    """A per-key failure inside a DeleteResult."""

    key: str
    code: str = ""
    message: str = ""


@dataclass
class DeleteObjectsResult:
    """Outcome of a multi-object delete."""

    deleted: list[str] = field(default_factory=list)
    errors: list[DeleteError] = field(default_factory=list)


@dataclass
class CopyObjectResult:
    """Outcome of a server-side copy."""

    etag: str = ""
    last_modified: str = ""
