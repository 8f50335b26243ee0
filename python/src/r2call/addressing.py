"""Bucket/key URL construction.

Two addressing styles are supported:

    path:  https://{origin}/{bucket}/{key}
    vhost: https://{bucket}.{origin}/{key}

Keys are percent-encoded with the S3 unreserved set, so the encoded path is
already the canonical URI used for signing.
"""

import urllib.parse
from collections.abc import Mapping
from enum import Enum

import httpx


class UrlStyle(str, Enum):
    """Where the bucket name appears in the URL."""

    PATH = "path"
    VHOST = "vhost"


def uri_encode(s: str, encode_slash: bool = True) -> str:
    """S3-compatible URI encoding.

    Characters A-Z, a-z, 0-9, '-', '_', '.', '~' are not encoded.
    All other characters are percent-encoded with uppercase hex.
    Spaces become %20 (not +).

    Args:
        s: The string to encode.
        encode_slash: If True (default), '/' is encoded as %2F.
                     If False, '/' is left as-is.

    Returns:
        The URI-encoded string.
    """
    safe = "-_.~" if encode_slash else "-_.~/"
    return urllib.parse.quote(s, safe=safe)


def _encode_path_segments(s: str, preserve_slashes: bool = True) -> str:
    """Encode a bucket or key for use in a URL path.

    Dot-only segments ("." and "..") are percent-encoded so that URL path
    normalization cannot remove them and redirect the request.
    """
    segments = s.split("/") if preserve_slashes else [s]
    return "/".join(
        seg.replace(".", "%2E") if seg in (".", "..") else uri_encode(seg) for seg in segments
    )


def compute_bucket_url(
    origin: str,
    bucket: str,
    key: str | None = None,
    url_style: UrlStyle | str = UrlStyle.PATH,
    query: Mapping[str, str | int] | None = None,
    preserve_slashes: bool = True,
) -> httpx.URL:
    """Build the target URL for a bucket (and optionally a key).

    Args:
        origin: Scheme and host of the storage endpoint, optionally with a
            base path (e.g. ``https://acct.r2.cloudflarestorage.com``).
        bucket: The bucket name, already validated by the caller.
        key: The object key, or None for bucket-level calls.
        url_style: ``path`` or ``vhost``.
        query: Extra query parameters, merged after addressing.
        preserve_slashes: Keep '/' in keys as path separators. When False
            every '/' is encoded as %2F.

    Returns:
        The resolved URL.
    """
    style = UrlStyle(url_style)
    base = httpx.URL(origin)
    encoded_key = _encode_path_segments(key, preserve_slashes) if key else ""

    base_path = base.raw_path.decode("ascii").split("?", 1)[0].rstrip("/")

    if style is UrlStyle.VHOST:
        host = f"{bucket}.{base.host}"
        path = f"{base_path}/{encoded_key}"
    else:
        host = base.host
        path = f"{base_path}/{_encode_path_segments(bucket, preserve_slashes=False)}"
        if key:
            path += f"/{encoded_key}"

    netloc = f"{host}:{base.port}" if base.port is not None else host
    url = httpx.URL(f"{base.scheme}://{netloc}{path}")
    if query:
        url = url.copy_merge_params({name: str(value) for name, value in query.items()})
    return url
