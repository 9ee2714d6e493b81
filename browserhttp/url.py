import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from .errors import MalformedUrlError

DEFAULT_PORTS = {"http": 80, "https": 443}

# "/./", "//" and "/segment/../" each collapse to a single "/"
_DOT_SEGMENT_REGEX = re.compile(r"/\.?/")
_PARENT_SEGMENT_REGEX = re.compile(r"/(?!\.\.(?:/|$))[^/]+/\.\./")
_QUERY_OR_FRAGMENT_REGEX = re.compile(r"[?#].*$", re.DOTALL)
_PATH_SUFFIX_REGEX = re.compile(r"([^?#]*)(.*)", re.DOTALL)


@dataclass(frozen=True)
class ResolvedURL:
    """Connection-level view of a target URL."""
    scheme: str
    host: str
    port: int
    path: str = "/"
    query: str = ""

    @property
    def use_tls(self) -> bool:
        return self.scheme == "https"

    @property
    def target(self) -> str:
        """Request-line target: path plus query string."""
        return f"{self.path}?{self.query}" if self.query else self.path

    @property
    def host_header(self) -> str:
        if self.port == DEFAULT_PORTS.get(self.scheme):
            return self.host
        return f"{self.host}:{self.port}"

    @property
    def origin(self) -> str:
        return f"{self.scheme}://{self.host_header}"

    def __str__(self) -> str:
        return f"{self.origin}{self.target}"


def resolve(target: str) -> ResolvedURL:
    """Split ``target`` into scheme, host, port, path and query."""
    try:
        parsed = urlsplit(target.strip())
        port = parsed.port
        if parsed.hostname:
            parsed.hostname.encode("idna")
    except ValueError as exc:
        raise MalformedUrlError(target, f"Malformed url {target!r}: {exc}.") from exc
    if not parsed.hostname:
        raise MalformedUrlError(target)
    scheme = (parsed.scheme or "http").lower()
    if port is None:
        port = DEFAULT_PORTS.get(scheme, 80)
    return ResolvedURL(
        scheme=scheme,
        host=parsed.hostname,
        port=port,
        path=parsed.path or "/",
        query=parsed.query,
    )


def append_query(target: str, query: str) -> str:
    """Append an already encoded query string to ``target``."""
    if not query:
        return target
    separator = "&" if "?" in target else "?"
    return f"{target}{separator}{query}"


def _normalize_segments(path: str) -> str:
    while True:
        reduced = _PARENT_SEGMENT_REGEX.sub("/", _DOT_SEGMENT_REGEX.sub("/", path))
        if reduced == path:
            return path
        path = reduced


def resolve_redirect(location: str, current_target: str) -> str:
    """
    Resolve a ``Location`` header value against the URL that produced it.

    Absolute locations are returned unchanged, ``#``/``?`` locations replace
    the fragment/query of the current target, and anything else is joined to
    the current directory (or the root, for ``/``-prefixed locations) with
    dot segments collapsed.
    """
    location = location.strip()
    if not location:
        raise MalformedUrlError(location, "Empty redirect location.")
    if urlsplit(location).scheme:
        return location

    base = _QUERY_OR_FRAGMENT_REGEX.sub("", current_target.strip())
    if location[0] in "#?":
        return base + location

    parsed = urlsplit(base)
    if not parsed.scheme or not parsed.netloc:
        raise MalformedUrlError(current_target)

    if location.startswith("//"):
        return f"{parsed.scheme}:{location}"
    if location.startswith("/"):
        directory = ""
    else:
        directory = parsed.path.rsplit("/", 1)[0] if "/" in parsed.path else ""
    absolute = f"{directory}/{location}"
    path, suffix = _PATH_SUFFIX_REGEX.match(absolute).groups()
    absolute = _normalize_segments(path) + suffix
    return f"{parsed.scheme}://{parsed.netloc}{absolute}"
