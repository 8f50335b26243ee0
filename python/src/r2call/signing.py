"""AWS Signature Version 4 request signing for r2call.

Implements header-based SigV4 signing for outgoing requests. The signer only
consumes an already-computed payload hash; it never reads the body.

References:
    - https://docs.aws.amazon.com/AmazonS3/latest/API/sig-v4-authenticating-requests.html
"""

import hashlib
import hmac
import re
import urllib.parse
from collections.abc import Mapping
from datetime import datetime, timezone

import httpx

from r2call.addressing import uri_encode
from r2call.credentials import AwsCredentials

# Constants
ALGORITHM = "AWS4-HMAC-SHA256"
KEY_PREFIX = "AWS4"
SCOPE_TERMINATOR = "aws4_request"
SERVICE_NAME = "s3"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"

# Headers that intermediaries may add or rewrite; never part of the signature.
UNSIGNED_HEADERS = frozenset(
    {"authorization", "user-agent", "expect", "x-amzn-trace-id", "content-length"}
)


def sign_request(
    method: str,
    url: httpx.URL,
    headers: Mapping[str, str],
    payload_hash: str,
    credentials: AwsCredentials,
    region: str,
    service: str = SERVICE_NAME,
    now: datetime | None = None,
) -> dict[str, str]:
    """Produce the complete, signed header set for a request.

    Args:
        method: HTTP method.
        url: The fully resolved request URL (path already percent-encoded).
        headers: Caller headers (conditional, range, content-md5, ...).
        payload_hash: Hex SHA-256 of the body or ``UNSIGNED-PAYLOAD``.
        credentials: The signing identity.
        region: Region part of the credential scope.
        service: Service part of the credential scope.
        now: Signing time; defaults to the current UTC time.

    Returns:
        Lowercase header names mapped to values, including ``host``,
        ``x-amz-date``, ``x-amz-content-sha256`` and ``authorization``.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    amz_date = now.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)
    date_part = amz_date[:8]

    signed: dict[str, str] = {name.lower(): value for name, value in headers.items()}
    signed.pop("authorization", None)
    signed["host"] = url.netloc.decode("ascii")
    signed["x-amz-date"] = amz_date
    signed["x-amz-content-sha256"] = payload_hash

    signed_header_names = sorted(name for name in signed if name not in UNSIGNED_HEADERS)

    canonical_request = build_canonical_request(
        method=method.upper(),
        uri=url.raw_path.decode("ascii").split("?", 1)[0],
        query_string=url.query.decode("ascii"),
        headers=signed,
        signed_headers=signed_header_names,
        payload_hash=payload_hash,
    )
    scope = f"{date_part}/{region}/{service}/{SCOPE_TERMINATOR}"
    string_to_sign = build_string_to_sign(amz_date, scope, canonical_request)
    signing_key = derive_signing_key(credentials.secret_key, date_part, region, service)
    signature = compute_signature(signing_key, string_to_sign)

    signed["authorization"] = (
        f"{ALGORITHM} Credential={credentials.access_key}/{scope}, "
        f"SignedHeaders={';'.join(signed_header_names)}, Signature={signature}"
    )
    return signed


# -- Canonical request construction -------------------------------------------


def build_canonical_request(
    method: str,
    uri: str,
    query_string: str,
    headers: Mapping[str, str],
    signed_headers: list[str],
    payload_hash: str,
) -> str:
    """Build the canonical request string.

    Args:
        method: HTTP method (uppercase).
        uri: The request path exactly as it goes on the wire.
        query_string: The raw query string (without leading '?').
        headers: Request headers keyed by lowercase name.
        signed_headers: List of signed header names (lowercase).
        payload_hash: SHA-256 hex digest or UNSIGNED-PAYLOAD.

    Returns:
        The canonical request string.
    """
    canonical_uri = uri or "/"
    canonical_query = build_canonical_query_string(query_string)

    sorted_signed = sorted(signed_headers)
    canonical_headers = "".join(
        f"{name}:{trim_header_value(headers.get(name, ''))}\n" for name in sorted_signed
    )

    return "\n".join(
        [
            method,
            canonical_uri,
            canonical_query,
            canonical_headers,
            ";".join(sorted_signed),
            payload_hash,
        ]
    )


def build_canonical_query_string(query_string: str) -> str:
    """Build the canonical query string from a raw query string.

    Parameters are sorted by name (byte-order), then by value.
    Each name and value is URI-encoded. Parameters with no value
    use empty value (e.g., 'delete=').

    Args:
        query_string: The raw query string (without leading '?').

    Returns:
        The canonical query string.
    """
    if not query_string:
        return ""

    params: list[tuple[str, str]] = []
    for pair in query_string.split("&"):
        if not pair:
            continue
        if "=" in pair:
            name, value = pair.split("=", 1)
        else:
            name = pair
            value = ""
        params.append((urllib.parse.unquote_plus(name), urllib.parse.unquote_plus(value)))

    params.sort()

    return "&".join(
        f"{uri_encode(name, encode_slash=True)}={uri_encode(value, encode_slash=True)}"
        for name, value in params
    )


def trim_header_value(value: str) -> str:
    """Strip surrounding whitespace and collapse inner runs of spaces."""
    return re.sub(r" +", " ", value.strip())


# -- String to sign / signing key ---------------------------------------------


def build_string_to_sign(timestamp: str, scope: str, canonical_request: str) -> str:
    """Build the string to sign.

    Args:
        timestamp: ISO 8601 timestamp (YYYYMMDDTHHMMSSZ).
        scope: Credential scope (YYYYMMDD/region/service/aws4_request).
        canonical_request: The assembled canonical request string.

    Returns:
        The string to sign.
    """
    canonical_hash = hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()
    return f"{ALGORITHM}\n{timestamp}\n{scope}\n{canonical_hash}"


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    """Derive the SigV4 signing key via the HMAC-SHA256 chain.

    Args:
        secret_key: The secret access key.
        date: Date string (YYYYMMDD).
        region: Region name (``auto`` for R2).
        service: Service name.

    Returns:
        The 32-byte signing key.
    """
    k_date = hmac.new(
        (KEY_PREFIX + secret_key).encode("utf-8"),
        date.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    k_region = hmac.new(k_date, region.encode("utf-8"), hashlib.sha256).digest()
    k_service = hmac.new(k_region, service.encode("utf-8"), hashlib.sha256).digest()
    return hmac.new(k_service, SCOPE_TERMINATOR.encode("utf-8"), hashlib.sha256).digest()


def compute_signature(signing_key: bytes, string_to_sign: str) -> str:
    """Compute the final HMAC-SHA256 hex signature."""
    return hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()
