"""S3 XML request rendering and response parsing helpers."""

import xml.etree.ElementTree as ET
from xml.sax.saxutils import escape as _sax_escape

from r2call.models import (
    BucketInfo,
    CopyObjectResult,
    DeleteError,
    DeleteObjectsResult,
    ListObjectsResult,
    ObjectInfo,
)

S3_NAMESPACE = "http://s3.amazonaws.com/doc/2006-03-01/"


def _escape_xml(value: str) -> str:
    """Escape special XML characters in a string value.

    Args:
        value: The raw string to escape.

    Returns:
        The XML-safe escaped string.
    """
    return _sax_escape(str(value))


def _local_name(tag: str) -> str:
    """Strip a ``{namespace}`` prefix from an element tag."""
    return tag.rsplit("}", 1)[-1]


def _children(elem: ET.Element, name: str) -> list[ET.Element]:
    """Direct children with the given local name, namespace-agnostic."""
    return [child for child in elem if _local_name(child.tag) == name]


def _text(elem: ET.Element, name: str, default: str = "") -> str:
    """Text of the first direct child with the given local name."""
    for child in elem:
        if _local_name(child.tag) == name:
            return child.text or ""
    return default


def _parse_root(body: bytes | str, expected: str) -> ET.Element:
    """Parse a document and check its root element name.

    Raises:
        ValueError: If the body is not XML or has a different root.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise ValueError(f"Malformed {expected} document: {exc}") from exc
    if _local_name(root.tag) != expected:
        raise ValueError(f"Expected {expected}, found {_local_name(root.tag)}")
    return root


# -- Requests -----------------------------------------------------------------


def render_delete_objects(keys: list[str], quiet: bool = False) -> str:
    """Render the request body for a multi-object delete.

    Args:
        keys: The object keys to delete.
        quiet: Ask the service to report only failures.

    Returns:
        An XML string conforming to the S3 Delete request format.
    """
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<Delete xmlns="{S3_NAMESPACE}">',
    ]
    if quiet:
        parts.append("<Quiet>true</Quiet>")
    for key in keys:
        parts.append(f"<Object><Key>{_escape_xml(key)}</Key></Object>")
    parts.append("</Delete>")
    return "".join(parts)


# -- Responses ----------------------------------------------------------------


def parse_error(body: bytes) -> tuple[str, str]:
    """Extract code and message from an S3 error document.

    Returns:
        ``(code, message)``; both empty if the body is not an Error document.
    """
    if not body:
        return "", ""
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return "", ""
    if _local_name(root.tag) != "Error":
        return "", ""
    return _text(root, "Code"), _text(root, "Message")


def parse_list_buckets(body: bytes) -> list[BucketInfo]:
    """Parse a ListAllMyBucketsResult document."""
    root = _parse_root(body, "ListAllMyBucketsResult")
    buckets = []
    for container in _children(root, "Buckets"):
        for bucket in _children(container, "Bucket"):
            buckets.append(
                BucketInfo(
                    name=_text(bucket, "Name"),
                    creation_date=_text(bucket, "CreationDate"),
                )
            )
    return buckets


def parse_list_objects(body: bytes) -> ListObjectsResult:
    """Parse a ListBucketResult document (v1 or v2)."""
    root = _parse_root(body, "ListBucketResult")

    contents = [
        ObjectInfo(
            key=_text(item, "Key"),
            size=int(_text(item, "Size", "0") or 0),
            etag=_text(item, "ETag"),
            last_modified=_text(item, "LastModified"),
            storage_class=_text(item, "StorageClass"),
        )
        for item in _children(root, "Contents")
    ]
    common_prefixes = [_text(cp, "Prefix") for cp in _children(root, "CommonPrefixes")]

    key_count = _text(root, "KeyCount")
    return ListObjectsResult(
        name=_text(root, "Name"),
        prefix=_text(root, "Prefix"),
        delimiter=_text(root, "Delimiter"),
        max_keys=int(_text(root, "MaxKeys", "0") or 0),
        is_truncated=_text(root, "IsTruncated").lower() == "true",
        contents=contents,
        common_prefixes=common_prefixes,
        key_count=int(key_count) if key_count else None,
        continuation_token=_text(root, "ContinuationToken"),
        next_continuation_token=_text(root, "NextContinuationToken"),
        start_after=_text(root, "StartAfter"),
        marker=_text(root, "Marker"),
        next_marker=_text(root, "NextMarker"),
    )


def parse_delete_result(body: bytes) -> DeleteObjectsResult:
    """Parse a DeleteResult document."""
    root = _parse_root(body, "DeleteResult")
    return DeleteObjectsResult(
        deleted=[_text(d, "Key") for d in _children(root, "Deleted")],
        errors=[
            DeleteError(
                key=_text(e, "Key"),
                code=_text(e, "Code"),
                message=_text(e, "Message"),
            )
            for e in _children(root, "Error")
        ],
    )


def parse_copy_object_result(body: bytes) -> CopyObjectResult:
    """Parse a CopyObjectResult document."""
    root = _parse_root(body, "CopyObjectResult")
    return CopyObjectResult(
        etag=_text(root, "ETag"),
        last_modified=_text(root, "LastModified"),
    )
