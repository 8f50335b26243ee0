"""Signing and sending a single request.

:func:`s3_fetch` is the one place where a body source, a URL and a call
context meet: it resolves the content hash, signs, transmits and returns the
raw response without looking at its status.
"""

import logging
import time
from collections.abc import Mapping
from datetime import datetime

import httpx

from r2call import metrics
from r2call.body import EMPTY_BODY, BodySource, BufferedBody, StreamedBody, content_sha256
from r2call.credentials import CallContext
from r2call.errors import TransportError
from r2call.signing import SERVICE_NAME, sign_request

logger = logging.getLogger(__name__)


def _redacted(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        name: ("<redacted>" if name.lower() == "authorization" else value)
        for name, value in headers.items()
    }


async def s3_fetch(
    client: httpx.AsyncClient,
    *,
    method: str,
    url: httpx.URL,
    region: str,
    context: CallContext,
    headers: Mapping[str, str] | None = None,
    body: BodySource = EMPTY_BODY,
    service: str = SERVICE_NAME,
    now: datetime | None = None,
) -> httpx.Response:
    """Sign and send one request, returning the raw streaming response.

    Args:
        client: The HTTP client to send through.
        method: HTTP method.
        url: The resolved target URL.
        region: Region for the credential scope.
        context: Credentials, user agent and payload-signing mode.
        headers: Extra request headers, passed through unmodified.
        body: The payload to transmit.
        service: Service for the credential scope.
        now: Signing time override.

    Returns:
        The response with its body unread. The caller must read or close it.

    Raises:
        TransportError: On connection-level failures.
    """
    request_headers = dict(headers or {})
    request_headers["user-agent"] = context.user_agent

    content = None
    sent = 0
    if isinstance(body, StreamedBody):
        request_headers["content-length"] = str(body.length)
        content = body.stream()
        sent = body.length
    elif isinstance(body, BufferedBody):
        content = body.data
        sent = len(body.data)

    signed = sign_request(
        method,
        url,
        request_headers,
        content_sha256(body, context.unsigned_payload),
        context.credentials,
        region,
        service=service,
        now=now,
    )

    log = logger.info if context.verbose else logger.debug
    log(
        "%s %s",
        method,
        url,
        extra={"method": method, "url": str(url)},
    )
    if context.verbose:
        for name, value in sorted(_redacted(signed).items()):
            logger.info("  %s: %s", name, value)

    request = client.build_request(method, url, headers=signed, content=content)
    start = time.monotonic()
    try:
        response = await client.send(request, stream=True)
    except httpx.TransportError as exc:
        metrics.record_request(method, "error", time.monotonic() - start)
        raise TransportError(method, str(url), str(exc) or type(exc).__name__) from exc

    duration = time.monotonic() - start
    metrics.record_request(method, response.status_code, duration, sent)
    log(
        "%s %s -> %d (%.1fms)",
        method,
        url,
        response.status_code,
        duration * 1000,
        extra={
            "method": method,
            "url": str(url),
            "status": response.status_code,
            "duration_ms": round(duration * 1000, 1),
        },
    )
    if context.verbose:
        for name, value in response.headers.items():
            logger.info("  %s: %s", name, value)
    return response
