from typing import Optional


class BrowserHTTPError(Exception):
    """Base exception for the browserhttp package."""


class RequestError(BrowserHTTPError):
    """Raised when request building or sending fails."""


class ResponseError(BrowserHTTPError):
    """Raised when response decoding fails."""


class EmptyTargetError(RequestError):
    """Raised when execute() is called without a target URL."""

    def __init__(self, message: str = "Target url must not be empty.") -> None:
        super().__init__(message)


class MalformedUrlError(RequestError):
    """Raised when a target or redirect location cannot be split into parts."""

    def __init__(self, url: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Malformed url {url!r}.")
        self.url = url


class ConnectError(RequestError):
    """Raised when a socket cannot be opened to the remote host."""

    def __init__(self, errno: int, strerror: str) -> None:
        super().__init__(f"{errno} - {strerror}.")
        self.errno = errno
        self.strerror = strerror


class TransportTimeout(RequestError):
    """Raised when no response arrives within the configured bound."""


class TransportProtocolError(RequestError):
    """Raised when the native transport reports a protocol-level failure."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"{code} - {message}.")
        self.code = code
        self.message = message
