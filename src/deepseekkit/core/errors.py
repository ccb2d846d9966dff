"""Exception hierarchy for DeepSeek API interactions.

Every failure surfaced by the client is a ``DeepSeekError``. Transport-level
failures (httpx errors, curl exit codes) are translated at the library
boundary and chained with ``raise ... from``.
"""

from __future__ import annotations

from typing import Any


class DeepSeekError(Exception):
    """Base exception for all client errors."""


class InvalidRequestError(DeepSeekError):
    """Raised when a request fails local validation."""


class EncodingError(DeepSeekError):
    """Raised when a request body cannot be serialized."""


class DecodingError(DeepSeekError):
    """Raised when a non-streaming response body does not match the expected model."""

    def __init__(self, message: str, body: bytes | None = None):
        super().__init__(message)
        self.body = body


class NetworkError(DeepSeekError):
    """Connection-level failure: DNS, refused connection, dropped socket."""


class RequestTimeoutError(DeepSeekError):
    """Raised when the server stops sending data for longer than the configured deadline."""


class HTTPStatusError(DeepSeekError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(message or f"HTTP error: {status_code}")
        self.status_code = status_code


class InvalidAPIKeyError(HTTPStatusError):
    """Invalid or missing API key."""

    def __init__(self, message: str = "Invalid API key provided"):
        super().__init__(401, message)


class InsufficientBalanceError(HTTPStatusError):
    """Account balance too low for the request."""

    def __init__(self, message: str = "Insufficient account balance"):
        super().__init__(402, message)


class RateLimitError(HTTPStatusError):
    """Too many requests. Waiting and retrying is left to the caller."""

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(429, message)


class ServiceUnavailableError(HTTPStatusError):
    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(503, message)


class APIError(DeepSeekError):
    """Error envelope returned by the service itself."""

    def __init__(
        self,
        message: str,
        type: str | None = None,
        code: str | int | None = None,
        param: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(f"API error: {message}")
        self.message = message
        self.type = type
        self.code = code
        self.param = param
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "message": self.message,
            "code": self.code,
            "param": self.param,
        }


class StreamingError(DeepSeekError):
    """The streaming transport failed, e.g. curl exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        exit_status: int | None = None,
        stderr: str | None = None,
    ):
        super().__init__(f"Streaming error: {message}")
        self.exit_status = exit_status
        self.stderr = stderr


class TransportLaunchError(StreamingError):
    """The external network tool could not be started (missing or not executable)."""


_STATUS_ERRORS: dict[int, type[HTTPStatusError]] = {
    401: InvalidAPIKeyError,
    402: InsufficientBalanceError,
    429: RateLimitError,
    503: ServiceUnavailableError,
}


def error_for_status(status_code: int) -> HTTPStatusError:
    """Map a non-2xx status to its typed error without looking at the body."""
    error_cls = _STATUS_ERRORS.get(status_code)
    if error_cls is not None:
        return error_cls()
    return HTTPStatusError(status_code)


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300
