from .client import Client
from .config import Defaults
from .connection import NativeTransport, SocketTransport, Transport
from .cookies import Cookie, CookieJar, parse_set_cookie
from .request import Proxy, RequestSpec
from .response import ResponseResult, decode_chunked, parse_headers
from .timeouts import Timeout
from .url import ResolvedURL, resolve, resolve_redirect
from .errors import (
    BrowserHTTPError,
    RequestError,
    ResponseError,
    EmptyTargetError,
    MalformedUrlError,
    ConnectError,
    TransportTimeout,
    TransportProtocolError,
)

__all__ = [
    "Client",
    "Defaults",
    "Transport",
    "NativeTransport",
    "SocketTransport",
    "Cookie",
    "CookieJar",
    "parse_set_cookie",
    "Proxy",
    "RequestSpec",
    "ResponseResult",
    "decode_chunked",
    "parse_headers",
    "Timeout",
    "ResolvedURL",
    "resolve",
    "resolve_redirect",
    "BrowserHTTPError",
    "RequestError",
    "ResponseError",
    "EmptyTargetError",
    "MalformedUrlError",
    "ConnectError",
    "TransportTimeout",
    "TransportProtocolError",
]


__version__ = "0.1.0"
