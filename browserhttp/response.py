import gzip
import json
import re
import zlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from .cookies import Cookie, parse_set_cookie
from .errors import ResponseError

HeaderValue = Union[str, List[str]]

_STATUS_REGEX = re.compile(r"HTTP/\S*?\s+(\d+)", re.IGNORECASE)
_CHARSET_REGEX = re.compile(r'charset=([^;,\s]+)', re.IGNORECASE)
HEADER_TERMINATOR = b"\r\n\r\n"


def _decode_gzip(payload: bytes) -> bytes:
    """Decode gzip-compressed payload."""
    return gzip.decompress(payload)


def _decode_deflate(payload: bytes) -> bytes:
    """Decode deflate payload with automatic zlib/raw fallback."""
    try:
        return zlib.decompress(payload)
    except zlib.error:
        return zlib.decompress(payload, -zlib.MAX_WBITS)


# Content-Encoding token -> decoder
DECOMPRESS_HANDLERS: Dict[str, Callable[[bytes], bytes]] = {
    "gzip": _decode_gzip,
    "x-gzip": _decode_gzip,
    "deflate": _decode_deflate,
}
ACCEPT_ENCODING = "gzip, deflate"


def decompress(payload: bytes, content_encoding: str) -> bytes:
    """
    Undo the encodings listed in a Content-Encoding value.

    Unknown tokens are skipped; a payload that fails to decode is returned
    unchanged.
    """
    encodings = [e.strip().lower() for e in content_encoding.split(",") if e.strip()]
    data = payload
    for enc in reversed(encodings):
        handler = DECOMPRESS_HANDLERS.get(enc)
        if handler is None:
            continue
        try:
            data = handler(data)
        except (OSError, EOFError, zlib.error):
            return payload
    return data


class RawResponse(NamedTuple):
    """Bytes as handed back by a transport; the header block spans ``data[:header_size]``."""
    data: bytes
    header_size: int


class ParsedHeaders(NamedTuple):
    status_code: int
    status_line: str
    headers: Dict[str, HeaderValue]
    set_cookie_raw: str
    cookies: Dict[str, Cookie]


def split_header_body(raw: RawResponse) -> Tuple[bytes, bytes]:
    return raw.data[:raw.header_size], raw.data[raw.header_size:]


def parse_headers(block: Union[bytes, str]) -> ParsedHeaders:
    """
    Parse a response header block.

    The first non-blank line is the status line. Header names are
    lower-cased; a name seen twice becomes a list of values in arrival
    order. ``set-cookie`` is always a list and each value is also parsed
    into the cookie mapping (the last cookie with a given name wins).
    """
    if isinstance(block, bytes):
        block = block.decode("latin-1")

    status_code = 0
    status_line = ""
    headers: Dict[str, HeaderValue] = {}
    set_cookie_raw = ""
    cookies: Dict[str, Cookie] = {}

    for line in block.split("\n"):
        line = line.strip()
        if not line:
            continue
        if not status_line:
            status_line = line
            match = _STATUS_REGEX.search(line)
            status_code = int(match.group(1)) if match else 0
            continue
        if line.find(":") < 1:
            continue
        name, value = line.split(":", 1)
        name = name.strip().lower()
        value = value.lstrip()

        if name == "set-cookie":
            set_cookie_raw += value + ";"
            cookie = parse_set_cookie(value)
            if cookie is not None:
                cookies[cookie.name] = cookie
            headers.setdefault(name, [])

        existing = headers.get(name)
        if existing is None:
            headers[name] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            headers[name] = [existing, value]

    return ParsedHeaders(status_code, status_line, headers, set_cookie_raw, cookies)


def decode_chunked(body: bytes) -> bytes:
    """
    Reassemble a chunked body.

    Reads hex size lines and copies that many bytes each time, stopping when
    the input is exhausted, a size line cannot be parsed, or a zero-size
    chunk arrives. A missing terminating chunk is tolerated; trailers are
    not parsed.
    """
    out = bytearray()
    pos = 0
    length = len(body)
    while pos < length:
        end = body.find(b"\r\n", pos)
        if end == -1:
            break
        size_line = body[pos:end].split(b";", 1)[0].strip()
        pos = end + 2
        if not size_line:
            continue
        try:
            size = int(size_line, 16)
        except ValueError:
            break
        if size <= 0:
            break
        out += body[pos:pos + size]
        pos += size
        if body[pos:pos + 2] == b"\r\n":
            pos += 2
    return bytes(out)


def is_chunked(headers: Dict[str, HeaderValue]) -> bool:
    value = headers.get("transfer-encoding")
    if isinstance(value, list):
        value = value[-1]
    return bool(value) and value.strip().lower() == "chunked"


@dataclass
class ResponseResult:
    """
    Outcome of the last execution cycle.

    ``headers`` maps lower-cased names to a string, or to a list of strings
    when the server repeated the header.
    """
    status_code: int = 0
    status_line: str = ""
    headers: Dict[str, HeaderValue] = field(default_factory=dict)
    set_cookie_raw: str = ""
    cookies: Dict[str, Cookie] = field(default_factory=dict)
    body: bytes = b""
    redirected_count: int = 0
    url: Optional[str] = None

    def apply(self, parsed: ParsedHeaders) -> None:
        self.status_code = parsed.status_code
        self.status_line = parsed.status_line
        self.headers = parsed.headers
        self.set_cookie_raw = parsed.set_cookie_raw
        self.cookies = parsed.cookies

    def header(self, name: str, default: Optional[HeaderValue] = None) -> Optional[HeaderValue]:
        return self.headers.get(name.lower(), default)

    def cookie(self, name: str) -> Optional[Cookie]:
        return self.cookies.get(name)

    @property
    def location(self) -> Optional[str]:
        value = self.headers.get("location")
        if isinstance(value, list):
            value = value[-1] if value else None
        return value or None

    @property
    def ok(self) -> bool:
        """True if status code is in the 200-299 range."""
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        """True if status code indicates a redirect (3xx)."""
        return 300 <= self.status_code < 400

    @property
    def encoding(self) -> str:
        """Charset from the Content-Type header, utf-8 when absent."""
        content_type = self.header("content-type", "")
        if isinstance(content_type, list):
            content_type = content_type[-1]
        match = _CHARSET_REGEX.search(content_type or "")
        if match:
            charset_value = match.group(1).strip('"\'').strip()
            if charset_value:
                return charset_value
        return "utf-8"

    def text(self, encoding: Optional[str] = None) -> str:
        enc = encoding or self.encoding
        try:
            return self.body.decode(enc)
        except (UnicodeDecodeError, LookupError):
            return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        text_content = self.text()
        if not text_content.strip():
            raise ResponseError("Response content is empty, cannot parse JSON")
        try:
            return json.loads(text_content)
        except json.JSONDecodeError as e:
            raise ResponseError(f"Failed to parse JSON: {e}") from e

    def __str__(self) -> str:
        return self.text()

    def __repr__(self) -> str:
        return f"<ResponseResult [{self.status_code}] url={self.url!r}>"
