"""Signing identity and per-invocation call context."""

import hashlib
import logging
from dataclasses import dataclass, field

import httpx

from r2call import __version__
from r2call.errors import ConfigurationError
from r2call.responses import throw_if_unexpected_status

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"r2call/{__version__}"
VERIFY_TOKEN_URL = "https://api.cloudflare.com/client/v4/user/tokens/verify"


@dataclass(frozen=True)
class AwsCredentials:
    """An access key pair. The secret never appears in ``repr``."""

    access_key: str
    secret_key: str = field(repr=False)


@dataclass(frozen=True)
class CallContext:
    """Everything a signed call needs besides its own parameters.

    Attributes:
        credentials: The signing identity.
        user_agent: Sent on every request (not part of the signature).
        unsigned_payload: Send ``UNSIGNED-PAYLOAD`` instead of a body digest.
        verbose: Log each request and response at INFO level.
    """

    credentials: AwsCredentials
    user_agent: str = DEFAULT_USER_AGENT
    unsigned_payload: bool = False
    verbose: bool = False


def credentials_from_api_token(token_id: str, api_token: str) -> AwsCredentials:
    """Derive S3 credentials from a Cloudflare API token.

    The access key is the token id; the secret is the hex SHA-256 of the
    token value, never the token itself.
    """
    return AwsCredentials(
        access_key=token_id,
        secret_key=hashlib.sha256(api_token.encode("utf-8")).hexdigest(),
    )


async def verify_token(api_token: str, client: httpx.AsyncClient) -> str:
    """Resolve the id of an API token via the token verification endpoint.

    Args:
        api_token: The bearer token.
        client: HTTP client used for the call.

    Returns:
        The token id.

    Raises:
        ConfigurationError: If the token is not active.
        UnexpectedStatusError: If the endpoint does not answer 200.
    """
    response = await client.send(
        client.build_request(
            "GET",
            VERIFY_TOKEN_URL,
            headers={"authorization": f"Bearer {api_token}"},
        ),
        stream=True,
    )
    await throw_if_unexpected_status(response, 200)
    await response.aread()
    await response.aclose()

    payload = response.json()
    result = payload.get("result") or {}
    if not payload.get("success") or result.get("status", "active") != "active":
        raise ConfigurationError("API token verification failed")
    token_id = result.get("id")
    if not token_id:
        raise ConfigurationError("API token verification returned no token id")
    logger.debug("Verified API token %s", token_id)
    return token_id
