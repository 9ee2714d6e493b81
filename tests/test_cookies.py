import calendar
import time

from browserhttp.cookies import Cookie, CookieJar, applicable, base_domain, parse_set_cookie


def test_parse_full_set_cookie():
    cookie = parse_set_cookie(
        "sid=abc123; Expires=Wed, 21 Oct 2037 07:28:00 GMT; Path=/app; Domain=.example.com; Secure; HttpOnly"
    )
    assert cookie.name == "sid"
    assert cookie.value == "abc123"
    assert cookie.path == "/app"
    assert cookie.domain == ".example.com"
    assert cookie.secure is True
    assert cookie.httponly is True
    assert cookie.expires == calendar.timegm((2037, 10, 21, 7, 28, 0))


def test_parse_defaults_missing_attributes():
    cookie = parse_set_cookie("theme=dark")
    assert cookie == Cookie(name="theme", value="dark")
    assert cookie.expires is None and cookie.path is None and cookie.domain is None
    assert cookie.secure is False and cookie.httponly is False


def test_parse_keeps_equals_in_value():
    assert parse_set_cookie("token=a=b==; Path=/").value == "a=b=="


def test_parse_max_age():
    cookie = parse_set_cookie("a=1; Max-Age=60")
    assert cookie.expires is not None
    assert 0 < cookie.expires - time.time() <= 61


def test_parse_bad_expires_is_ignored():
    assert parse_set_cookie("a=1; expires=not-a-date").expires is None


def test_parse_failures_return_none():
    assert parse_set_cookie("") is None
    assert parse_set_cookie("novalue") is None
    assert parse_set_cookie(";;;") is None
    assert parse_set_cookie(None) is None


def test_base_domain():
    assert base_domain("www.Example.com") == "example.com"
    assert base_domain("a.b.c.example.co") == "example.co"
    assert base_domain("localhost") == "localhost"


def test_applicable():
    assert applicable(Cookie("a", "1"), "anything.org")
    assert applicable(Cookie("a", "1", domain=".example.com"), "www.example.com")
    assert applicable(Cookie("a", "1", domain="EXAMPLE.com"), "api.example.com")
    assert not applicable(Cookie("a", "1", domain="example.com"), "example.org")


def test_domain_cookie_serialized_for_subdomain():
    jar = CookieJar()
    jar.update("a=1; Domain=.example.com; Path=/")
    assert "a=1" in jar.serialize("www.example.com")
    assert jar.serialize("www.other.com") == ""


def test_serialize_skips_expired_but_keeps_them():
    jar = CookieJar()
    jar.set_cookie("fresh", "1")
    jar.set_cookie("stale", "2", expires=time.time() - 10)
    jar.set_cookie("later", "3", expires=time.time() + 3600)
    assert jar.serialize("host.com") == "fresh=1; later=3;"
    assert "stale" in jar
    assert len(jar) == 3


def test_update_accepts_mixed_inputs():
    jar = CookieJar({"a": "1"})
    jar.update(["b=2; Path=/", Cookie("c", "3")])
    jar.update({"d": Cookie("d", "4", domain="example.com")})
    jar.update("garbage")
    assert [cookie.name for cookie in jar] == ["a", "b", "c", "d"]
    assert jar.get("b").path == "/"


def test_same_name_replaces_in_place():
    jar = CookieJar()
    jar.update("a=1")
    jar.update("b=2")
    jar.update("a=9")
    assert jar.serialize("h.com") == "a=9; b=2;"


def test_copy_is_independent():
    jar = CookieJar("a=1")
    clone = jar.copy()
    clone.get("a").value = "2"
    clone.remove("a")
    assert jar.get("a").value == "1"
    assert "a" not in clone
