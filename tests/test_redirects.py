from typing import List, Tuple

import pytest

from browserhttp import Client, Defaults
from browserhttp.connection import Transport
from browserhttp.errors import ConnectError, TransportProtocolError
from browserhttp.response import RawResponse


def _raw(head: str, body: bytes = b"") -> RawResponse:
    block = head.replace("\n", "\r\n").encode("latin-1") + b"\r\n\r\n"
    return RawResponse(block + body, len(block))


class ScriptedTransport(Transport):
    """Replays canned responses and records what was sent."""

    def __init__(self, responses, handles_framing=False):
        super().__init__()
        self.responses = list(responses)
        self.handles_framing = handles_framing
        self.sent: List[Tuple[str, object]] = []

    def send(self, url, request, timeout=None, proxy=None):
        self.sent.append((str(url), request))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(responses, **kwargs):
    transport = ScriptedTransport(responses)
    return Client(socket_transport=transport, **kwargs), transport


def test_redirect_resets_method_body_and_headers():
    client, transport = _client([
        _raw("HTTP/1.1 302 Found\nLocation: /done\nSet-Cookie: sid=1"),
        _raw("HTTP/1.1 200 OK", b"ok"),
    ])
    client.set_submit_normal().set_parameters({"user": "me"}).set_headers("X-Custom", "1")
    client.set_cookies("pref", "dark").set_follow_redirect(True)

    assert client.execute("http://host.com/login")
    assert client.body == b"ok"
    assert client.redirected_count == 1

    first_url, first = transport.sent[0]
    second_url, second = transport.sent[1]
    assert first.method == "POST" and first.body == b"user=me"
    assert second_url == "http://host.com/done"
    assert second.method == "GET" and second.body == b""
    assert not second.has_header("X-Custom")
    assert ("Cookie", "pref=dark; sid=1;") in second.headers


def test_redirect_cookies_from_response_win():
    client, transport = _client([
        _raw("HTTP/1.1 301 Moved\nLocation: http://host.com/b\nSet-Cookie: sid=new"),
        _raw("HTTP/1.1 200 OK"),
    ])
    client.set_cookies("sid=old").set_follow_redirect(True)
    assert client.execute("http://host.com/a")
    assert ("Cookie", "sid=new;") in transport.sent[1][1].headers
    assert client.redirect_cookies.get("sid").value == "old"
    assert client.cookies.get("sid").value == "new"


def test_redirect_bound_returns_last_redirect():
    loop = "HTTP/1.1 302 Found\nLocation: http://host.com/self"
    client, transport = _client([_raw(loop), _raw(loop), _raw(loop), _raw(loop)])
    client.set_follow_redirect(True, 2)
    assert client.execute("http://host.com/self")
    assert len(transport.sent) == 3
    assert client.status_code == 302
    assert client.redirected_count == 2
    assert client.errors == []


def test_max_redirect_is_at_least_one():
    client = Client().set_follow_redirect(True, 0)
    assert client.max_redirect == 1


def test_location_ignored_when_not_following():
    client, transport = _client([_raw("HTTP/1.1 201 Created\nLocation: /item/1")])
    assert client.execute("http://host.com/items", "POST")
    assert len(transport.sent) == 1
    assert client.status_code == 201


def test_location_followed_regardless_of_status():
    client, transport = _client([
        _raw("HTTP/1.1 201 Created\nLocation: /item/1"),
        _raw("HTTP/1.1 200 OK", b"item"),
    ])
    client.set_follow_redirect(True)
    assert client.execute("http://host.com/items")
    assert transport.sent[1][0] == "http://host.com/item/1"


def test_new_execute_resets_hop_counter_and_response():
    loop = "HTTP/1.1 302 Found\nLocation: /again"
    client, transport = _client([_raw(loop), _raw(loop), _raw("HTTP/1.1 200 OK", b"fresh")])
    client.set_follow_redirect(True, 1)
    assert client.execute("http://host.com/")
    assert client.redirected_count == 1
    assert client.execute("http://host.com/")
    assert client.redirected_count == 0
    assert client.body == b"fresh"


def test_redirect_keeps_transport_selection():
    native = ScriptedTransport([
        _raw("HTTP/1.1 302 Found\nLocation: /b"),
        _raw("HTTP/1.1 200 OK"),
    ], handles_framing=True)
    client = Client(native_transport=native, socket_transport=ScriptedTransport([]))
    client.use_native().set_follow_redirect(True)
    assert client.execute("http://host.com/a")
    assert len(native.sent) == 2


def test_chunked_body_decoded_only_when_transport_does_not_frame():
    chunked = b"5\r\nhello\r\n0\r\n\r\n"
    head = "HTTP/1.1 200 OK\nTransfer-Encoding: chunked"
    client, _ = _client([_raw(head, chunked)])
    assert client.execute("http://host.com/")
    assert client.body == b"hello"

    native = ScriptedTransport([_raw(head, b"already-plain")], handles_framing=True)
    client = Client(native_transport=native).use_native()
    assert client.execute("http://host.com/")
    assert client.body == b"already-plain"


def test_native_multipart_injects_content_type_header():
    native = ScriptedTransport([_raw("HTTP/1.1 200 OK")], handles_framing=True)
    client = Client(native_transport=native).use_native().set_submit_multipart().set_boundary("B")
    client.set_parameters("a", "1")
    assert client.execute("http://host.com/upload")
    assert client.request.headers["Content-Type"] == "multipart/form-data; boundary=B"
    request = native.sent[0][1]
    assert [name.lower() for name, _ in request.headers].count("content-type") == 1


def test_blank_location_is_not_followed():
    client, _ = _client([_raw("HTTP/1.1 302 Found\nLocation:    ")])
    client.set_follow_redirect(True)
    assert client.execute("http://host.com/")
    assert client.redirected_count == 0


def test_unresolvable_redirect_records_error():
    client, transport = _client([_raw("HTTP/1.1 302 Found\nLocation: http://")])
    client.set_follow_redirect(True)
    assert client.execute("http://host.com/") is False
    assert client.errors == ["ERROR: Malformed url 'http://'."]
    assert len(transport.sent) == 1


@pytest.mark.parametrize(
    "exc, message",
    [
        (ConnectError(111, "Connection refused"), "ERROR: 111 - Connection refused."),
        (TransportProtocolError(400, "bad status line"), "ERROR: 400 - bad status line."),
    ],
)
def test_transport_errors_are_recorded(exc, message):
    client, _ = _client([exc])
    assert client.execute("http://host.com/") is False
    assert client.errors == [message]


def test_error_mid_redirect_stops_chain():
    client, transport = _client([
        _raw("HTTP/1.1 302 Found\nLocation: http://other.com/"),
        ConnectError(-2, "Name or service not known"),
    ])
    client.set_follow_redirect(True)
    assert client.execute("http://host.com/") is False
    assert client.errors == ["ERROR: -2 - Name or service not known."]
    assert client.redirected_count == 1


def test_defaults_applied_on_reset():
    defaults = Defaults(user_agent="Agent/2", boundary="custom", timeout=3, follow_redirect=True, max_redirect=7)
    client, transport = _client([_raw("HTTP/1.1 200 OK")], defaults=defaults)
    assert client.follow_redirect is True
    assert client.max_redirect == 7
    assert client.request.boundary == "custom"
    client.set_timeout(0).set_http_version("2.0")
    assert client.request.timeout == 3
    assert client.request.http_version == "1.1"
    assert client.execute("http://host.com/")
    assert ("User-Agent", "Agent/2") in transport.sent[0][1].headers


def test_defaults_validation():
    with pytest.raises(ValueError):
        Defaults(http_version="2")
    with pytest.raises(ValueError):
        Defaults(max_redirect=0)


def test_multipart_subtype_reaches_content_type():
    client, transport = _client([_raw("HTTP/1.1 200 OK")])
    client.set_submit_multipart("mixed").set_boundary("B").set_parameters("a", "1")
    assert client.execute("http://host.com/upload")
    assert ("Content-Type", "multipart/mixed; boundary=B") in transport.sent[0][1].headers
