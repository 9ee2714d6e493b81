import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl

from .config import DEFAULTS, FORM_URLENCODED, Defaults
from .connection import NativeTransport, SocketTransport, Transport
from .cookies import Cookie, CookieJar
from .errors import BrowserHTTPError, EmptyTargetError
from .filetype import sniff
from .formdata import SniffFunc, build_body, encode_query
from .logging import get_logger
from .request import BODYLESS_METHODS, Proxy, RequestSpec, build_request
from .response import HeaderValue, ResponseResult, decode_chunked, is_chunked, parse_headers, split_header_body
from .url import append_query, resolve, resolve_redirect

_MISSING: Any = object()

HTTP_VERSIONS = ("1.0", "1.1")


class Client:
    """
    Browser-like HTTP/1.x client with a configure-then-execute surface.

    Configure the request with the ``set_*`` methods (each returns the
    client, so calls chain), then call :meth:`execute`. Failures never
    raise: ``execute`` returns False and a message is appended to
    :attr:`errors`.

    Example:
        client = Client()
        client.set_target("http://example.com/login").set_submit_normal()
        client.set_parameters({"user": "me", "pass": "secret"})
        client.set_follow_redirect(True, 5)
        if client.execute():
            print(client.status_code, client.text)
        else:
            print(client.errors)
    """

    def __init__(
        self,
        defaults: Optional[Defaults] = None,
        logger: Optional[logging.Logger] = None,
        native_transport: Optional[Transport] = None,
        socket_transport: Optional[Transport] = None,
        sniff_file: SniffFunc = sniff,
    ) -> None:
        self.defaults = defaults or DEFAULTS
        self.logger = logger or get_logger()
        self.native_transport = native_transport or NativeTransport()
        self.socket_transport = socket_transport or SocketTransport()
        self._sniff_file = sniff_file
        self.errors: List[str] = []
        self.reset()

    # Reset helpers

    def reset(self) -> "Client":
        """Reset request options, redirect policy and the last response."""
        return self.reset_request().reset_follow_redirect().reset_response()

    def reset_request(self) -> "Client":
        self.request = RequestSpec.from_defaults(self.defaults)
        self.errors = []
        return self

    def reset_follow_redirect(self) -> "Client":
        self.follow_redirect = self.defaults.follow_redirect
        self.max_redirect = self.defaults.max_redirect
        self.redirected_count = 0
        self.redirect_cookies = CookieJar()
        return self

    def reset_response(self) -> "Client":
        self.response = ResponseResult()
        return self

    # Request configuration

    def set_http_version(self, version: str) -> "Client":
        """Use HTTP/1.0 or HTTP/1.1; other values are ignored."""
        if version in HTTP_VERSIONS:
            self.request.http_version = version
        return self

    def set_follow_redirect(self, follow: bool = True, max_redirect: Optional[int] = None) -> "Client":
        self.follow_redirect = bool(follow)
        if max_redirect is not None:
            self.max_redirect = max(1, int(max_redirect))
        return self

    def set_target(self, target: str) -> "Client":
        self.request.target = target
        return self

    def set_method(self, method: str) -> "Client":
        self.request.method = method
        return self

    def set_referer(self, referer: str) -> "Client":
        self.request.headers["Referer"] = referer
        return self

    def set_user_agent(self, user_agent: str) -> "Client":
        self.request.user_agent = user_agent
        return self

    def set_timeout(self, seconds: float) -> "Client":
        """Seconds allowed per connect/read; non-positive values are ignored."""
        if seconds > 0:
            self.request.timeout = seconds
        return self

    def set_raw_post(self, data: Union[bytes, str]) -> "Client":
        self.request.raw_body = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        return self

    def set_parameters(self, name: Any, value: Any = _MISSING) -> "Client":
        """
        Add request parameters.

        Accepts ``(name, value)``, a mapping, an iterable of pairs or query
        strings, or a query string such as ``"a=1&b=2"``.
        """
        parameters = self.request.parameters
        if value is not _MISSING:
            parameters[str(name)] = "" if value is None else value
        elif isinstance(name, Mapping):
            for key, item in name.items():
                self.set_parameters(key, item)
        elif isinstance(name, str):
            for key, item in parse_qsl(name, keep_blank_values=True):
                parameters[key] = item
        else:
            for item in name:
                if isinstance(item, (tuple, list)) and len(item) == 2:
                    self.set_parameters(item[0], item[1])
                else:
                    self.set_parameters(item)
        return self

    def set_headers(self, name: Any, value: Any = _MISSING) -> "Client":
        """
        Add request headers.

        Accepts ``(name, value)``, a mapping, an iterable of pairs or
        ``"Name: value"`` strings, or a single ``"Name: value"`` string.
        """
        if value is not _MISSING:
            self.request.headers[name] = value
        elif isinstance(name, Mapping):
            for key, item in name.items():
                self.set_headers(key, item)
        elif isinstance(name, str):
            if ":" in name:
                key, item = name.split(":", 1)
                self.request.headers[key] = item
        else:
            for item in name:
                if isinstance(item, (tuple, list)) and len(item) == 2:
                    self.set_headers(item[0], item[1])
                else:
                    self.set_headers(item)
        return self

    def set_cookies(self, name: Any, value: Any = _MISSING) -> "Client":
        """
        Add request cookies.

        Accepts ``(name, value)``, ``(name, Cookie)``, a :class:`Cookie`, a
        ``Set-Cookie`` style string, a mapping or an iterable of those.
        """
        jar = self.request.cookies
        if value is _MISSING:
            jar.update(name)
        elif isinstance(value, Cookie):
            jar.set(value)
        else:
            jar.update(f"{name}={value}")
        return self

    def remove_headers(self, name: Optional[str] = None) -> "Client":
        """Remove one header, or all of them when ``name`` is None."""
        if name is None:
            self.request.headers.clear()
        else:
            self.request.headers.pop(name, None)
        return self

    def remove_cookies(self, name: Optional[str] = None) -> "Client":
        if name is None:
            self.request.cookies.clear()
        else:
            self.request.cookies.remove(name)
        return self

    def remove_parameters(self, name: Optional[str] = None) -> "Client":
        if name is None:
            self.request.parameters.clear()
        else:
            self.request.parameters.pop(name, None)
        return self

    def use_native(self, use_native: bool = True) -> "Client":
        """Send through the h11 transport instead of the raw socket transport."""
        self.request.use_native = bool(use_native)
        return self

    def set_submit_multipart(self, subtype: str = "form-data") -> "Client":
        self.set_method("POST")
        self.request.multipart = True
        self.request.mime_content_type = f"multipart/{subtype}"
        return self

    def set_submit_normal(self, method: str = "POST") -> "Client":
        self.set_method(method)
        self.request.multipart = False
        self.request.mime_content_type = FORM_URLENCODED
        return self

    def set_mime_content_type(self, mime_type: str) -> "Client":
        self.request.mime_content_type = mime_type
        return self

    def set_proxy(self, address: str, username: str = "", password: str = "") -> "Client":
        """Proxy as ``host:port``; only the native transport uses it."""
        address = address.strip()
        self.request.proxy = Proxy(address, username, password) if address else None
        return self

    def set_auth(self, username: str, password: str = "") -> "Client":
        self.request.auth = (username, password) if username else None
        return self

    def set_boundary(self, boundary: str) -> "Client":
        self.request.boundary = boundary
        return self

    # Response accessors

    @property
    def cookies(self) -> CookieJar:
        return self.request.cookies

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def response_headers(self) -> Dict[str, HeaderValue]:
        return self.response.headers

    def response_header(self, name: str) -> Optional[HeaderValue]:
        return self.response.header(name)

    @property
    def response_cookies(self) -> Dict[str, Cookie]:
        return self.response.cookies

    def response_cookie(self, name: str) -> Optional[Cookie]:
        return self.response.cookie(name)

    @property
    def set_cookie_raw(self) -> str:
        return self.response.set_cookie_raw

    @property
    def body(self) -> bytes:
        return self.response.body

    @property
    def text(self) -> str:
        return self.response.text()

    def __str__(self) -> str:
        return self.text

    # Execution

    def execute(
        self,
        target: Optional[str] = None,
        method: Optional[str] = None,
        parameters: Optional[Union[str, Mapping[str, Any], Iterable[Tuple[str, Any]]]] = None,
        referer: Optional[str] = None,
    ) -> bool:
        """
        Send the configured request, following redirects when enabled.

        Returns True once a response was parsed. On failure returns False
        and records the reason in :attr:`errors`.
        """
        if target:
            self.set_target(target)
        if method:
            self.set_method(method)
        if parameters:
            self.set_parameters(parameters)
        if referer:
            self.set_referer(referer)

        self.redirected_count = 0
        self.reset_response()
        try:
            while True:
                location = self._run_cycle()
                if location is None:
                    break
                self._prepare_redirect(location)
        except BrowserHTTPError as exc:
            self._record_error(exc)
            return False
        finally:
            self.response.redirected_count = self.redirected_count
        return True

    def _effective_target(self) -> str:
        spec = self.request
        if not spec.parameters:
            return spec.target
        if spec.method in BODYLESS_METHODS or (spec.raw_body and not spec.multipart):
            return append_query(spec.target, encode_query(spec.parameters))
        return spec.target

    def _transport(self) -> Transport:
        return self.native_transport if self.request.use_native else self.socket_transport

    def _run_cycle(self) -> Optional[str]:
        """Send one request and parse its response; returns a redirect target to follow, if any."""
        spec = self.request
        if not spec.target:
            raise EmptyTargetError()

        target = self._effective_target()
        url = resolve(target)
        transport = self._transport()

        body = b"" if spec.method in BODYLESS_METHODS else build_body(spec, self._sniff_file)
        if spec.multipart and spec.use_native and "content-type" not in spec.headers:
            spec.headers["Content-Type"] = spec.content_type
        outbound = build_request(spec, url, body, spec.cookies.serialize(url.host))

        self.logger.debug("%s %s (%s, hop %d)", spec.method, target, type(transport).__name__, self.redirected_count)
        raw = transport.send(url, outbound, spec.timeout, spec.proxy)

        head, payload = split_header_body(raw)
        self.response.apply(parse_headers(head))
        if not transport.handles_framing and is_chunked(self.response.headers):
            payload = decode_chunked(payload)
        self.response.body = payload
        self.response.url = target

        location = self.response.location
        if self.follow_redirect and location and self.redirected_count < self.max_redirect:
            return resolve_redirect(location, target)
        return None

    def _prepare_redirect(self, location: str) -> None:
        """Replay as a fresh GET to ``location``, carrying request and response cookies."""
        self.redirected_count += 1
        self.redirect_cookies = self.request.cookies.copy()
        carried = self.redirect_cookies.copy()
        carried.update(self.response.cookies)
        use_native = self.request.use_native

        self.reset_request()
        self.request.cookies = carried
        self.request.use_native = use_native
        self.request.target = location
        self.reset_response()
        self.logger.debug("Following redirect %d/%d to %s", self.redirected_count, self.max_redirect, location)

    def _record_error(self, exc: BrowserHTTPError) -> None:
        message = f"ERROR: {exc}"
        self.errors.append(message)
        self.logger.warning(message)

    def __repr__(self) -> str:
        return f"<Client {self.request.method} {self.request.target!r} status={self.response.status_code}>"


__all__ = ["Client"]
