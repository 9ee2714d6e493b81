import socket
import ssl
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator, List, Optional, Tuple

import h11

from .errors import ConnectError, TransportProtocolError, TransportTimeout
from .logging import get_logger
from .request import OutboundRequest, Proxy
from .response import ACCEPT_ENCODING, HEADER_TERMINATOR, RawResponse, decompress
from .timeouts import Timeout
from .url import ResolvedURL

# Shared buffer size for network reads
READ_BUFFER_SIZE = 65536
CLOSED_BEFORE_RESPONSE = "Connection closed before response"

logger = get_logger("connection")


@lru_cache(maxsize=2)
def _get_ssl_context(verify: bool = False) -> ssl.SSLContext:
    """Get or create cached SSL context."""
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


@contextmanager
def _socket_errors(url: ResolvedURL) -> Iterator[None]:
    """Translate socket failures into transport errors."""
    try:
        yield
    except socket.timeout as exc:
        raise TransportTimeout(f"Timed out talking to {url.host}:{url.port}") from exc
    except OSError as exc:
        if exc.strerror:
            raise ConnectError(exc.errno or 0, exc.strerror) from exc
        raise ConnectError(exc.errno or 0, f'Cannot connect to "{url.host}" with port "{url.port}": {exc}') from exc


class Transport:
    """
    One blocking request/response exchange over a fresh connection.

    ``handles_framing`` is True when the transport already strips chunked
    framing from the body it returns.
    """

    handles_framing = False

    def __init__(self, verify: bool = False) -> None:
        self.verify = verify

    def send(
        self,
        url: ResolvedURL,
        request: OutboundRequest,
        timeout: Optional[float] = None,
        proxy: Optional[Proxy] = None,
    ) -> RawResponse:  # pragma: no cover - to be overridden
        raise NotImplementedError

    def _open(self, host: str, port: int, timeout: Timeout) -> socket.socket:
        sock = socket.create_connection((host, port), timeout=timeout.connect)
        sock.settimeout(timeout.read)
        return sock

    def _wrap_tls(self, sock: socket.socket, host: str) -> socket.socket:
        try:
            return _get_ssl_context(self.verify).wrap_socket(sock, server_hostname=host)
        except BaseException:
            sock.close()
            raise

    def _read_head(self, sock: socket.socket) -> Tuple[bytes, bytes]:
        """Read until the header terminator; returns (header block, bytes already read past it)."""
        buffer = bytearray()
        while True:
            index = buffer.find(HEADER_TERMINATOR)
            if index != -1:
                split = index + len(HEADER_TERMINATOR)
                return bytes(buffer[:split]), bytes(buffer[split:])
            chunk = sock.recv(READ_BUFFER_SIZE)
            if not chunk:
                return bytes(buffer), b""
            buffer.extend(chunk)


class SocketTransport(Transport):
    """Writes the serialized request to a plain (or TLS) socket and reads until EOF."""

    def send(
        self,
        url: ResolvedURL,
        request: OutboundRequest,
        timeout: Optional[float] = None,
        proxy: Optional[Proxy] = None,
    ) -> RawResponse:
        if proxy is not None:
            logger.debug("Socket transport ignores proxy %s", proxy.address)
        resolved_timeout = Timeout.from_value(timeout)
        with _socket_errors(url):
            sock = self._open(url.host, url.port, resolved_timeout)
            if url.use_tls:
                sock = self._wrap_tls(sock, url.host)
            try:
                sock.sendall(request.header_block() + request.body)
                head, body = self._read_head(sock)
                if not head.strip():
                    raise TransportProtocolError(0, CLOSED_BEFORE_RESPONSE)
                body += self._read_to_end(sock)
            finally:
                sock.close()
        return RawResponse(head + body, len(head))

    def _read_to_end(self, sock: socket.socket) -> bytes:
        chunks: List[bytes] = []
        while True:
            chunk = sock.recv(READ_BUFFER_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)


class NativeTransport(Transport):
    """
    HTTP/1.1 exchange driven by an h11 state machine.

    The body comes back de-framed and, when the server used gzip or deflate,
    decompressed. The status line and headers are re-serialized in front of
    it so callers split the result at ``header_size``. Proxies are spoken to
    with an absolute-form target for http and a CONNECT tunnel for https.
    """

    handles_framing = True

    def send(
        self,
        url: ResolvedURL,
        request: OutboundRequest,
        timeout: Optional[float] = None,
        proxy: Optional[Proxy] = None,
    ) -> RawResponse:
        resolved_timeout = Timeout.from_value(timeout)
        deadline = resolved_timeout.deadline()
        h11_request = self._build_h11_request(url, request, proxy)

        with _socket_errors(url):
            sock = self._connect(url, resolved_timeout, proxy)
            try:
                conn = h11.Connection(h11.CLIENT)
                data = conn.send(h11_request)
                if request.body:
                    data += conn.send(h11.Data(data=request.body))
                data += conn.send(h11.EndOfMessage())
                sock.sendall(data)
                response, body = self._read_response(conn, sock, resolved_timeout, deadline)
            except h11.ProtocolError as exc:
                raise TransportProtocolError(exc.error_status_hint, str(exc)) from exc
            finally:
                sock.close()

        head = self._serialize_head(response)
        content_encoding = self._header_value(response, b"content-encoding")
        if content_encoding:
            body = decompress(body, content_encoding)
        return RawResponse(head + body, len(head))

    def _build_h11_request(self, url: ResolvedURL, request: OutboundRequest, proxy: Optional[Proxy]) -> h11.Request:
        headers = list(request.headers)
        if not request.has_header("accept-encoding"):
            headers.append(("Accept-Encoding", ACCEPT_ENCODING))
        target = request.target
        if proxy is not None and not url.use_tls:
            target = f"{url.origin}{request.target}"
            authorization = proxy.authorization()
            if authorization:
                headers.append(("Proxy-Authorization", authorization))
        try:
            return h11.Request(
                method=request.method.encode("ascii"),
                target=target.encode("ascii"),
                headers=[(k.encode("latin-1"), v.encode("latin-1")) for k, v in headers],
            )
        except (h11.LocalProtocolError, UnicodeEncodeError) as exc:
            raise TransportProtocolError(0, f"Cannot encode request: {exc}") from exc

    def _connect(self, url: ResolvedURL, timeout: Timeout, proxy: Optional[Proxy]) -> socket.socket:
        if proxy is None:
            sock = self._open(url.host, url.port, timeout)
        else:
            sock = self._open(proxy.host, proxy.port, timeout)
            if url.use_tls:
                self._tunnel(sock, url, proxy)
        if url.use_tls:
            sock = self._wrap_tls(sock, url.host)
        return sock

    def _tunnel(self, sock: socket.socket, url: ResolvedURL, proxy: Proxy) -> None:
        lines = [f"CONNECT {url.host}:{url.port} HTTP/1.1", f"Host: {url.host}:{url.port}"]
        authorization = proxy.authorization()
        if authorization:
            lines.append(f"Proxy-Authorization: {authorization}")
        try:
            sock.sendall(("\r\n".join(lines) + "\r\n\r\n").encode("latin-1"))
            head, _ = self._read_head(sock)
        except BaseException:
            sock.close()
            raise
        status_line = head.split(b"\r\n", 1)[0].decode("latin-1")
        parts = status_line.split(None, 2)
        status = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else 0
        if not 200 <= status < 300:
            sock.close()
            raise TransportProtocolError(status, f"Tunnel connection failed: {status_line or 'no response'}")

    def _read_response(
        self,
        conn: h11.Connection,
        sock: socket.socket,
        timeout: Timeout,
        deadline: Optional[float],
    ) -> Tuple[h11.Response, bytes]:
        response: Optional[h11.Response] = None
        body = bytearray()
        while True:
            event = conn.next_event()
            if event is h11.NEED_DATA:
                sock.settimeout(timeout.read_timeout(deadline))
                data = sock.recv(READ_BUFFER_SIZE)
                if not data and response is None:
                    raise TransportProtocolError(0, CLOSED_BEFORE_RESPONSE)
                conn.receive_data(data)
                continue
            if isinstance(event, h11.Response):
                response = event
            elif isinstance(event, h11.Data):
                body.extend(event.data)
            elif isinstance(event, (h11.EndOfMessage, h11.ConnectionClosed)):
                break
        if response is None:
            raise TransportProtocolError(0, CLOSED_BEFORE_RESPONSE)
        return response, bytes(body)

    @staticmethod
    def _header_value(response: h11.Response, name: bytes) -> str:
        values = [value.decode("latin-1") for key, value in response.headers if key == name]
        return ", ".join(values)

    @staticmethod
    def _serialize_head(response: h11.Response) -> bytes:
        lines = [
            b"HTTP/" + response.http_version + b" " + str(response.status_code).encode("ascii") + b" " + response.reason
        ]
        lines.extend(name + b": " + value for name, value in response.headers.raw_items())
        return b"\r\n".join(lines) + HEADER_TERMINATOR
