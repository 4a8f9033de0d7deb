import logging
import time
from http.cookiejar import Cookie as _JarCookie
from http.cookiejar import CookieJar, CookiePolicy, DefaultCookiePolicy
from http.cookies import CookieError, Morsel, SimpleCookie
from typing import Any, Dict, Iterable, List, NamedTuple, Optional
from urllib.parse import urlsplit
from urllib.request import Request

from ._collections import HTTPHeaderDict

__all__ = ("Cookie", "CookieStore", "parse_set_cookie")

log = logging.getLogger(__name__)


class Cookie(NamedTuple):
    """A single cookie as seen by a response: its name, value and attributes."""

    name: str
    value: str
    attributes: Dict[str, Any]

    @classmethod
    def from_morsel(cls, morsel: "Morsel[str]") -> "Cookie":
        attributes = {key: val for key, val in morsel.items() if val}
        return cls(morsel.key, morsel.value, attributes)

    @classmethod
    def from_jar(cls, cookie: _JarCookie) -> "Cookie":
        attributes: Dict[str, Any] = {
            "domain": cookie.domain,
            "path": cookie.path,
            "secure": cookie.secure,
            "version": cookie.version,
        }
        if cookie.expires is not None:
            attributes["expires"] = cookie.expires
        if any(key.lower() == "httponly" for key in cookie._rest):  # type: ignore[attr-defined]
            attributes["httponly"] = True
        return cls(cookie.name, cookie.value or "", attributes)


def parse_set_cookie(values: Iterable[str]) -> List[Cookie]:
    """
    Parse ``Set-Cookie`` header values into :class:`Cookie` objects, in
    order. Values :class:`http.cookies.SimpleCookie` cannot make sense of are
    skipped.

    >>> [c.name for c in parse_set_cookie(["a=1; Path=/", "b=2"])]
    ['a', 'b']
    """
    cookies = []
    for value in values:
        parsed: "SimpleCookie[str]" = SimpleCookie()
        try:
            parsed.load(value)
        except CookieError as e:
            log.debug("Ignoring unparseable Set-Cookie %r: %s", value, e)
            continue
        cookies.extend(Cookie.from_morsel(morsel) for morsel in parsed.values())
    return cookies


class _CookieResponse:
    """The slice of a response :meth:`http.cookiejar.CookieJar.extract_cookies` reads."""

    def __init__(self, headers: HTTPHeaderDict) -> None:
        self._headers = headers

    def info(self) -> HTTPHeaderDict:
        return self._headers


def _effective_host(host: str) -> str:
    # http.cookiejar stores host-only cookies for dotless hosts as "<host>.local"
    if "." not in host:
        return host + ".local"
    return host


def _domain_matches(cookie: _JarCookie, host: str) -> bool:
    if not cookie.domain_specified:
        return cookie.domain in (host, _effective_host(host))
    domain = cookie.domain.lstrip(".")
    return host == domain or host.endswith("." + domain)


def _path_matches(cookie_path: str, request_path: str) -> bool:
    if request_path == cookie_path:
        return True
    if not request_path.startswith(cookie_path):
        return False
    return cookie_path.endswith("/") or request_path[len(cookie_path)] == "/"


class CookieStore:
    """
    Client-wide cookie repository backed by a :class:`http.cookiejar.CookieJar`.

    Responses hand their headers to :meth:`persist`; :meth:`cookies_for`
    returns what applies to a target URL, including cookies from earlier
    responses. A disabled store persists nothing, and responses read cookies
    from their own ``Set-Cookie`` headers instead.

    :param enabled:
        Whether the store starts out enabled.

    :param jar:
        Use this jar instead of a fresh :class:`http.cookiejar.CookieJar`.

    :param policy:
        Acceptance policy for a fresh jar. Ignored when ``jar`` is given.
    """

    def __init__(
        self,
        enabled: bool = True,
        jar: Optional[CookieJar] = None,
        policy: Optional[CookiePolicy] = None,
    ) -> None:
        self._enabled = enabled
        if jar is None:
            jar = CookieJar(policy or DefaultCookiePolicy())
        self.jar = jar

    def __repr__(self) -> str:
        state = "enabled" if self._enabled else "disabled"
        return f"<{type(self).__name__} {state}, {len(self)} cookies>"

    def __len__(self) -> int:
        return len(self.jar)

    def is_enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def persist(self, target: str, headers: HTTPHeaderDict) -> None:
        """
        Store the cookies a response to ``target`` set. Values the jar's
        policy rejects, and headers it cannot parse, are dropped.
        """
        if not self._enabled:
            return
        try:
            self.jar.extract_cookies(_CookieResponse(headers), Request(target))  # type: ignore[arg-type]
        except (ValueError, TypeError) as e:
            log.debug("Failed to store cookies from %s: %r", target, e)

    def cookies_for(self, target: str) -> List[Cookie]:
        """Unexpired cookies whose domain, path and secure flag match ``target``."""
        parts = urlsplit(target)
        host = (parts.hostname or "").lower()
        path = parts.path or "/"
        is_secure = parts.scheme == "https"
        now = int(time.time())

        matched = []
        for cookie in self.jar:
            if cookie.is_expired(now):
                continue
            if cookie.secure and not is_secure:
                continue
            if not _domain_matches(cookie, host) or not _path_matches(cookie.path, path):
                continue
            matched.append(Cookie.from_jar(cookie))
        return matched

    def cookie_header(self, target: str) -> Optional[str]:
        """The ``Cookie`` request header for ``target``, ``None`` if nothing applies."""
        if not self._enabled:
            return None
        cookies = self.cookies_for(target)
        if not cookies:
            return None
        return "; ".join(f"{cookie.name}={cookie.value}" for cookie in cookies)

    def clear(self) -> None:
        self.jar.clear()
