"""Typed errors raised by the Valhalla client.

Every failure reaches the caller of a client operation as one of these.
Nothing is retried or swallowed internally.

    ValhallaError
    ├── ValidationError          request rejected before any I/O
    ├── FormatError              undecodable JSON, bad scalar, bad polyline
    └── TransportError
        ├── RemoteError          non-2xx response
        │   └── SizeLimitError   response larger than the configured ceiling
        ├── RequestTimeoutError  configured duration elapsed
        ├── RequestCancelledError  caller's cancellation signal fired
        └── ConnectionFailedError  connect/DNS/reset failure
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(eq=False)
class ValhallaError(Exception):
    """Base error for the client.

    Attributes:
        message: Human-readable error description
        cause: Optional underlying exception that caused this error
    """

    message: str
    cause: Optional[BaseException] = field(default=None, repr=False)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass(eq=False)
class ValidationError(ValhallaError):
    """A request failed a structural or range check.

    Attributes:
        field: Dotted path of the offending field (e.g. ``locations[1].lat``)
        value: The rejected value
    """

    field: str = ""
    value: Any = None


@dataclass(eq=False)
class FormatError(ValhallaError):
    """Decoding failed: malformed JSON, a scalar of the wrong shape,
    a malformed polyline, or a response missing a required member.

    Attributes:
        raw_response: Truncated response body, when one was involved
    """

    raw_response: Optional[str] = field(default=None, repr=False)


@dataclass(eq=False)
class TransportError(ValhallaError):
    """Base for failures of the HTTP exchange itself."""


@dataclass(eq=False)
class RemoteError(TransportError):
    """The service answered with a non-2xx status.

    Attributes:
        status_code: HTTP status code
        error_code: Valhalla machine error code, when the body carried one
        http_status: Status text echoed in the error body
        raw_response: Response body truncated to the configured cap
    """

    status_code: int = 0
    error_code: Optional[int] = None
    http_status: Optional[str] = None
    raw_response: Optional[str] = field(default=None, repr=False)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600


@dataclass(eq=False)
class SizeLimitError(RemoteError):
    """The declared or streamed response size exceeded the ceiling.

    Attributes:
        limit_bytes: Configured ceiling
        observed_bytes: Declared Content-Length, or bytes received when aborted
    """

    limit_bytes: int = 0
    observed_bytes: int = 0


@dataclass(eq=False)
class RequestTimeoutError(TransportError):
    """The configured duration elapsed before the exchange completed."""

    endpoint: str = ""
    timeout_s: float = 0.0


@dataclass(eq=False)
class RequestCancelledError(TransportError):
    """The caller's cancellation signal fired before completion."""

    endpoint: str = ""


@dataclass(eq=False)
class ConnectionFailedError(TransportError):
    """The connection could not be established or was dropped."""

    endpoint: str = ""
