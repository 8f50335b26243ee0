"""Status-code interpretation for raw service responses."""

import logging

import httpx

from r2call.errors import UnexpectedStatusError
from r2call.xml_utils import parse_error

logger = logging.getLogger(__name__)


async def throw_if_unexpected_status(
    response: httpx.Response, *expected: int
) -> httpx.Response:
    """Return the response untouched if its status is expected.

    Otherwise the body is read to completion (it is not retrievable
    afterwards), the response is closed and an error is raised.

    Args:
        response: A streaming response.
        *expected: Accepted status codes.

    Returns:
        The same response, body still unread.

    Raises:
        UnexpectedStatusError: Carrying the status and body.
    """
    if response.status_code in expected:
        return response

    try:
        body = await response.aread()
    finally:
        await response.aclose()

    code, message = parse_error(body)
    logger.debug(
        "Unexpected status %d (expected %s): %s",
        response.status_code,
        expected,
        code or body[:200],
    )
    raise UnexpectedStatusError(
        status=response.status_code,
        body=body,
        code=code,
        message=message,
        expected=tuple(expected),
    )


async def validate_response(
    response: httpx.Response,
    expected: tuple[int, ...],
    absent_on_not_found: bool = False,
) -> httpx.Response | None:
    """Map a response to success, absent or error.

    Args:
        response: A streaming response.
        expected: Accepted status codes.
        absent_on_not_found: For read-style calls, treat 404 as "absent".

    Returns:
        The response for an expected status, or None when absent.

    Raises:
        UnexpectedStatusError: For any other status.
    """
    if absent_on_not_found and response.status_code == 404 and 404 not in expected:
        await response.aclose()
        return None
    return await throw_if_unexpected_status(response, *expected)
