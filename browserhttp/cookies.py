import re
import time
from dataclasses import dataclass, replace
from email.utils import parsedate_to_datetime
from functools import lru_cache
from typing import Dict, Iterable, Iterator, Mapping, Optional, Union

# Pre-compiled patterns for "name=value" pairs and attribute handling
_PAIR_REGEX = re.compile(r"\s*([^=;]+?)\s*(?:=\s*([^;]*?)\s*)?(?:;|$)")
_MAX_AGE_REGEX = re.compile(r"^-?\d+$")


@lru_cache(maxsize=128)
def _parse_date(date_str: str) -> Optional[float]:
    """Parse an HTTP date into epoch seconds."""
    try:
        dt = parsedate_to_datetime(date_str)
    except (TypeError, ValueError, IndexError):
        return None
    return dt.timestamp() if dt else None


@dataclass
class Cookie:
    """A single cookie as received from a server or supplied by the caller."""
    name: str
    value: str
    expires: Optional[float] = None
    path: Optional[str] = None
    domain: Optional[str] = None
    secure: bool = False
    httponly: bool = False

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires is None:
            return False
        return self.expires < (time.time() if now is None else now)

    def to_header(self) -> str:
        return f"{self.name}={self.value};"


def parse_set_cookie(fragment: str) -> Optional[Cookie]:
    """
    Parse a ``Set-Cookie`` value such as ``a=1; Domain=.example.com; Path=/``.

    Unknown attributes are ignored, missing ones default to None/False.
    Returns None instead of raising when the fragment has no usable
    ``name=value`` pair.
    """
    if not isinstance(fragment, str):
        return None
    pairs = [(m.group(1), m.group(2)) for m in _PAIR_REGEX.finditer(fragment) if m.group(1)]
    if not pairs:
        return None
    name, value = pairs[0]
    if value is None or not name:
        return None

    cookie = Cookie(name=name, value=value)
    max_age: Optional[int] = None
    for key, attr in pairs[1:]:
        key = key.lower()
        attr = (attr or "").strip('"')
        if key == "domain":
            cookie.domain = attr or None
        elif key == "path":
            cookie.path = attr or None
        elif key == "expires":
            cookie.expires = _parse_date(attr)
        elif key == "max-age" and _MAX_AGE_REGEX.match(attr):
            max_age = int(attr)
        elif key == "secure":
            cookie.secure = True
        elif key == "httponly":
            cookie.httponly = True
    if max_age is not None:
        cookie.expires = time.time() + max_age
    return cookie


def base_domain(host: str) -> str:
    """Keep the last two labels of ``host``: ``www.example.com`` -> ``example.com``."""
    return ".".join(host.lower().rstrip(".").split(".")[-2:])


def applicable(cookie: Cookie, request_host: str) -> bool:
    """Whether ``cookie`` may be sent to ``request_host``."""
    if not cookie.domain:
        return True
    return cookie.domain.lstrip(".").lower() == base_domain(request_host)


CookieInput = Union[Cookie, str, Mapping[str, Union[str, Cookie]], Iterable[Union[Cookie, str]]]


class CookieJar:
    """
    Name-keyed cookie store used for outbound ``Cookie`` headers.

    A cookie name is unique within the jar, so setting a cookie with a
    known name replaces the old record while keeping its position.
    """

    def __init__(self, cookies: Optional[CookieInput] = None) -> None:
        self._store: Dict[str, Cookie] = {}
        if cookies:
            self.update(cookies)

    def set(self, cookie: Cookie) -> None:
        self._store[cookie.name] = cookie

    def set_cookie(
        self,
        name: str,
        value: str,
        expires: Optional[float] = None,
        path: Optional[str] = None,
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = False,
    ) -> None:
        self.set(Cookie(name, value, expires, path, domain, secure, httponly))

    def update(self, cookies: CookieInput) -> None:
        """Add cookies from a Cookie, a Set-Cookie string, a mapping or an iterable of those."""
        if isinstance(cookies, Cookie):
            self.set(cookies)
        elif isinstance(cookies, str):
            cookie = parse_set_cookie(cookies)
            if cookie is not None:
                self.set(cookie)
        elif isinstance(cookies, Mapping):
            for name, value in cookies.items():
                if isinstance(value, Cookie):
                    self.set(value)
                else:
                    self.update(f"{name}={value}")
        else:
            for item in cookies:
                self.update(item)

    def get(self, name: str) -> Optional[Cookie]:
        return self._store.get(name)

    def remove(self, name: str) -> None:
        self._store.pop(name, None)

    def clear(self) -> None:
        self._store.clear()

    def copy(self) -> "CookieJar":
        jar = CookieJar()
        jar._store = {name: replace(cookie) for name, cookie in self._store.items()}
        return jar

    def serialize(self, host: str) -> str:
        """Build the ``Cookie`` header value for ``host``; empty when nothing applies."""
        now = time.time()
        return " ".join(
            cookie.to_header()
            for cookie in self._store.values()
            if applicable(cookie, host) and not cookie.is_expired(now)
        )

    def __iter__(self) -> Iterator[Cookie]:
        return iter(list(self._store.values()))

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, name: object) -> bool:
        return name in self._store

    def __repr__(self) -> str:
        return f"<CookieJar {list(self._store)!r}>"
