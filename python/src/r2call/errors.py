"""Error definitions for r2call."""


class R2CallError(Exception):
    """Base class for every failure raised by the request pipeline."""


class ConfigurationError(R2CallError):
    """Invalid or conflicting options, detected before any network activity.

    Covers mutually exclusive body-source options, malformed byte ranges,
    invalid bucket names and bad configuration files. Never retried.
    """


class TransportError(R2CallError):
    """A connection-level failure (refused, timed out, reset).

    Attributes:
        method: The HTTP method of the failed call.
        url: The URL of the failed call.
    """

    def __init__(self, method: str, url: str, message: str) -> None:
        super().__init__(f"{method} {url} failed: {message}")
        self.method = method
        self.url = url


class UnexpectedStatusError(R2CallError):
    """The service answered with a status outside the operation's expected set.

    Attributes:
        status: The HTTP status code returned by the service.
        body: The raw response body, read to completion.
        code: The S3 error code parsed from the body (e.g. "NoSuchBucket"), if any.
        message: The S3 error message parsed from the body, if any.
        expected: The statuses the operation would have accepted.
    """

    def __init__(
        self,
        status: int,
        body: bytes = b"",
        code: str = "",
        message: str = "",
        expected: tuple[int, ...] = (),
    ) -> None:
        """Initialize the error.

        Args:
            status: HTTP status code.
            body: Raw response body.
            code: Parsed S3 error code.
            message: Parsed S3 error message.
            expected: Statuses the operation accepts.
        """
        detail = f"{code}: {message}" if code else body.decode("utf-8", errors="replace")
        super().__init__(
            f"Unexpected status {status}, expected {', '.join(map(str, expected))}"
            + (f" ({detail})" if detail else "")
        )
        self.status = status
        self.body = body
        self.code = code
        self.message = message
        self.expected = expected
