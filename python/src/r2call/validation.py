"""Caller-side input validation.

These checks run before a URL is built, so malformed names never reach the
network. Each function raises ``ConfigurationError`` on invalid input.
"""

import re

from r2call.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# S3 bucket naming rules:
#   - 3-63 characters
#   - lowercase letters, digits, hyphens, and periods
#   - must start and end with a letter or digit
#   - must not be formatted as an IP address
#   - must not start with "xn--" (internationalized domain prefix)
#   - no consecutive periods ("..") allowed

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")
_IP_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")

_MAX_KEY_BYTES = 1024
_MAX_MAX_KEYS = 1000
_MAX_PART_NUMBER = 10000


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_bucket_name(name: str) -> None:
    """Validate a bucket name against S3 naming rules.

    Raises:
        ConfigurationError: If the name violates any naming rule.
    """
    if (
        len(name) < 3
        or len(name) > 63
        or not _BUCKET_RE.match(name)
        or _IP_RE.match(name)
        or name.startswith("xn--")
        or ".." in name
    ):
        raise ConfigurationError(f"Bad bucket name: {name!r}")


def validate_object_key(key: str) -> None:
    """Validate an object key.

    Raises:
        ConfigurationError: If the key is empty or exceeds 1024 UTF-8 bytes.
    """
    if not key:
        raise ConfigurationError("Object key must not be empty")
    if len(key.encode("utf-8")) > _MAX_KEY_BYTES:
        raise ConfigurationError(f"Object key exceeds {_MAX_KEY_BYTES} bytes")


def validate_max_keys(value: int | str) -> int:
    """Validate and parse a ``max-keys`` value.

    Returns:
        An integer in the range [1, 1000].

    Raises:
        ConfigurationError: If the value is not an integer or is out of range.
    """
    try:
        n = int(value)
    except (ValueError, TypeError):
        raise ConfigurationError(f"max-keys must be an integer between 1 and {_MAX_MAX_KEYS}")

    if n < 1 or n > _MAX_MAX_KEYS:
        raise ConfigurationError(f"max-keys must be an integer between 1 and {_MAX_MAX_KEYS}")

    return n


def validate_part_number(value: int) -> int:
    """Validate a ``partNumber`` query value (1-10000)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"Bad part number: {value!r}")
    if value < 1 or value > _MAX_PART_NUMBER:
        raise ConfigurationError(f"Part number must be between 1 and {_MAX_PART_NUMBER}")
    return value
