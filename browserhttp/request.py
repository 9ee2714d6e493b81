import base64
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .config import DEFAULTS, Defaults
from .cookies import CookieJar
from .errors import MalformedUrlError, RequestError
from .url import ResolvedURL

# Headers the engine computes itself; caller-supplied copies are dropped
_ENGINE_HEADERS = {"content-length", "connection"}
BODYLESS_METHODS = {"GET", "HEAD"}


class Headers(MutableMapping):
    """Case-insensitive header mapping that keeps insertion order and original casing."""

    def __init__(self, headers: Optional[Any] = None) -> None:
        self._store: Dict[str, Tuple[str, str]] = {}
        if headers:
            self.update(headers)

    def __setitem__(self, name: str, value: str) -> None:
        name = name.strip()
        self._store[name.lower()] = (name, str(value).strip())

    def __getitem__(self, name: str) -> str:
        return self._store[name.lower()][1]

    def __delitem__(self, name: str) -> None:
        del self._store[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"Headers({dict(self.items())!r})"


@dataclass(frozen=True)
class Proxy:
    """Proxy endpoint given as ``host:port`` plus optional credentials."""
    address: str
    username: str = ""
    password: str = ""

    @property
    def host(self) -> str:
        return self.address.rsplit(":", 1)[0] if ":" in self.address else self.address

    @property
    def port(self) -> int:
        if ":" not in self.address:
            return 8080
        port = self.address.rsplit(":", 1)[1]
        if not port.isdigit():
            raise MalformedUrlError(self.address, f"Malformed proxy address {self.address!r}.")
        return int(port)

    def authorization(self) -> Optional[str]:
        if not self.username:
            return None
        return basic_authorization(self.username, self.password)


def basic_authorization(username: str, password: str) -> str:
    raw = f"{username}:{password}".encode("latin1")
    token = base64.b64encode(raw).decode("ascii")
    return f"Basic {token}"


@dataclass
class RequestSpec:
    """Everything the engine needs to compose one outbound request."""
    http_version: str = DEFAULTS.http_version
    target: str = ""
    method: str = "GET"
    headers: Headers = field(default_factory=Headers)
    parameters: Dict[str, str] = field(default_factory=dict)
    raw_body: bytes = b""
    cookies: CookieJar = field(default_factory=CookieJar)
    user_agent: str = DEFAULTS.user_agent
    timeout: float = DEFAULTS.timeout
    proxy: Optional[Proxy] = None
    auth: Optional[Tuple[str, str]] = None
    multipart: bool = False
    mime_content_type: str = DEFAULTS.mime_content_type
    boundary: str = DEFAULTS.boundary
    use_native: bool = DEFAULTS.use_native

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "method":
            value = value.strip().upper()
        elif name == "target":
            value = value.strip()
        super().__setattr__(name, value)

    @classmethod
    def from_defaults(cls, defaults: Defaults) -> "RequestSpec":
        return cls(
            http_version=defaults.http_version,
            user_agent=defaults.user_agent,
            timeout=defaults.timeout,
            mime_content_type=defaults.mime_content_type,
            boundary=defaults.boundary,
            use_native=defaults.use_native,
        )

    @property
    def content_type(self) -> str:
        if self.multipart:
            return f"{self.mime_content_type}; boundary={self.boundary}"
        return self.mime_content_type

    def sends_body(self, body: bytes) -> bool:
        return bool(body) and self.method not in BODYLESS_METHODS


@dataclass
class OutboundRequest:
    """A fully composed request: request line parts, ordered headers and body."""
    method: str
    target: str
    http_version: str
    headers: List[Tuple[str, str]]
    body: bytes = b""

    def has_header(self, name: str) -> bool:
        name = name.lower()
        return any(key.lower() == name for key, _ in self.headers)

    def header_block(self) -> bytes:
        lines = [f"{self.method} {self.target} HTTP/{self.http_version}"]
        lines.extend(f"{name}: {value}" for name, value in self.headers)
        try:
            return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
        except UnicodeEncodeError as exc:
            raise RequestError(f"Cannot encode request headers: {exc}") from exc


def build_request(spec: RequestSpec, url: ResolvedURL, body: bytes, cookie_header: str = "") -> OutboundRequest:
    """
    Compose the request line and headers for ``spec`` aimed at ``url``.

    Header order is Host, User-Agent, caller headers, Content-Type,
    Authorization, Cookie, Content-Length, Connection. Caller-supplied
    Host/User-Agent/Content-Type/Authorization/Cookie headers take the place
    of the computed ones.
    """
    caller = [(name, value) for name, value in spec.headers.items() if name.lower() not in _ENGINE_HEADERS]
    supplied = {name.lower() for name, _ in caller}
    sends_body = spec.sends_body(body)

    headers: List[Tuple[str, str]] = []
    if "host" not in supplied:
        headers.append(("Host", url.host_header))
    if "user-agent" not in supplied and spec.user_agent:
        headers.append(("User-Agent", spec.user_agent))
    headers.extend(caller)
    if "content-type" not in supplied and spec.mime_content_type and (sends_body or spec.multipart):
        headers.append(("Content-Type", spec.content_type))
    if "authorization" not in supplied and spec.auth and spec.auth[0]:
        headers.append(("Authorization", basic_authorization(*spec.auth)))
    if "cookie" not in supplied and cookie_header:
        headers.append(("Cookie", cookie_header))
    if sends_body:
        headers.append(("Content-Length", str(len(body))))
    headers.append(("Connection", "close"))

    return OutboundRequest(
        method=spec.method,
        target=url.target,
        http_version=spec.http_version,
        headers=headers,
        body=body if sends_body else b"",
    )


def build_header_block(spec: RequestSpec, url: ResolvedURL, body: bytes = b"", cookie_header: str = "") -> bytes:
    return build_request(spec, url, body, cookie_header).header_block()
