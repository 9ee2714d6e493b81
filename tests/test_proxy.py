import threading
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from browserhttp import Client, Proxy
from browserhttp.errors import MalformedUrlError
from browserhttp.request import basic_authorization


class ProxyHandler(BaseHTTPRequestHandler):
    """Answers as an HTTP proxy would and remembers what it was asked."""

    protocol_version = "HTTP/1.1"
    seen = []

    def _remember(self):
        ProxyHandler.seen.append((self.requestline, self.headers.get("Proxy-Authorization"), self.headers.get("Host")))

    def do_GET(self):
        self._remember()
        body = b"proxied"
        self.send_response(200)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_CONNECT(self):
        self._remember()
        self.send_response(407, "Proxy Authentication Required")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format, *args):  # pragma: no cover
        return


@contextmanager
def run_proxy():
    ProxyHandler.seen = []
    server = HTTPServer(("127.0.0.1", 0), ProxyHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


@pytest.fixture
def proxy_address():
    with run_proxy() as address:
        yield address


def test_http_request_uses_absolute_target_and_credentials(proxy_address):
    client = Client().use_native().set_proxy(proxy_address, "user", "pass")
    assert client.execute("http://example.invalid:8000/path?q=1")
    assert client.body == b"proxied"
    assert ProxyHandler.seen == [(
        "GET http://example.invalid:8000/path?q=1 HTTP/1.1",
        basic_authorization("user", "pass"),
        "example.invalid:8000",
    )]


def test_proxy_without_credentials_sends_no_authorization(proxy_address):
    client = Client().use_native().set_proxy(proxy_address)
    assert client.execute("http://example.invalid/")
    assert ProxyHandler.seen[0][1] is None


def test_https_tunnel_refusal_is_recorded(proxy_address):
    client = Client().use_native().set_proxy(proxy_address, "user", "pass")
    assert client.execute("https://example.invalid/secure") is False
    assert ProxyHandler.seen == [(
        "CONNECT example.invalid:443 HTTP/1.1",
        basic_authorization("user", "pass"),
        "example.invalid:443",
    )]
    assert len(client.errors) == 1
    assert client.errors[0].startswith("ERROR: 407 - Tunnel connection failed: HTTP/1.1 407")


def test_malformed_proxy_address_is_recorded():
    client = Client().use_native().set_proxy("127.0.0.1:abc")
    assert client.execute("http://example.invalid/") is False
    assert client.errors == ["ERROR: Malformed proxy address '127.0.0.1:abc'."]


def test_proxy_address_parts():
    proxy = Proxy("10.0.0.1:3128", "u", "p")
    assert (proxy.host, proxy.port) == ("10.0.0.1", 3128)
    assert proxy.authorization() == "Basic dTpw"
    assert Proxy("proxy.local").port == 8080
    assert Proxy("proxy.local").authorization() is None
    with pytest.raises(MalformedUrlError):
        Proxy("proxy.local:").port
