import json as _json
from http.client import HTTPException
from typing import Any, Mapping, Optional

from ._collections import HTTPHeaderDict
from .config import ResponseOptions
from .connection import _TYPE_BODY, connection_from_url
from .cookies import CookieStore
from .exceptions import ProtocolError
from .response import HTTPResponse

__all__ = ("HTTPClient",)


class HTTPClient:
    """
    Sends requests and hands back :class:`~httphandle.response.HTTPResponse`
    objects. Each request gets its own connection, owned by the response.

    :param cookie_store:
        Cookies from this store are sent with every request, and cookies set
        by responses are stored in it.

    :param options:
        Default :class:`~httphandle.config.ResponseOptions` for every response.

    :param timeout:
        Socket timeout in seconds, ``None`` to block forever.

    :param headers:
        Headers to include with all requests, unless other headers are given
        explicitly.

    :param \\**conn_kw:
        Additional parameters are used to create fresh
        :class:`~httphandle.connection.HTTPConnection` instances.

    Example::

        client = HTTPClient(cookie_store=CookieStore())
        with client.request("GET", "http://example.com/") as r:
            print(r.status, r.get_cookies())
    """

    def __init__(
        self,
        cookie_store: Optional[CookieStore] = None,
        options: Optional[ResponseOptions] = None,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
        **conn_kw: Any,
    ) -> None:
        self.cookie_store = cookie_store
        self.options = options or ResponseOptions()
        self.timeout = timeout
        self.headers = HTTPHeaderDict(headers)
        self.conn_kw = conn_kw

    def __repr__(self) -> str:
        return f"{type(self).__name__}(cookie_store={self.cookie_store!r})"

    def request(
        self,
        method: str,
        url: str,
        body: Optional[_TYPE_BODY] = None,
        headers: Optional[Mapping[str, str]] = None,
        *,
        json: Optional[Any] = None,
        **response_kw: Any,
    ) -> HTTPResponse:
        """
        Send a request to the absolute ``url`` and return its response.

        Extra keyword arguments override fields of :attr:`options` for this
        response only (``is_async=True``, ``ignore_body=True``, ...).

        :raises ProtocolError: the request could not be sent.
        """
        options = self.options.as_kwargs(**response_kw)

        request_headers = self.headers.copy()
        if headers is not None:
            for key in headers:
                request_headers.discard(key)
            request_headers.extend(headers)

        if json is not None and body is not None:
            raise TypeError(
                "request got values for both 'body' and 'json' parameters which are mutually exclusive"
            )
        if json is not None:
            if "content-type" not in request_headers:
                request_headers["Content-Type"] = "application/json"
            body = _json.dumps(json, separators=(",", ":"), ensure_ascii=False).encode(
                "utf-8"
            )

        if self.cookie_store is not None and "cookie" not in request_headers:
            cookie = self.cookie_store.cookie_header(url)
            if cookie:
                request_headers["Cookie"] = cookie

        conn = connection_from_url(url, timeout=self.timeout, **self.conn_kw)
        try:
            conn.request(method, url, body=body, headers=request_headers)
        except (HTTPException, OSError) as e:
            conn.close_quietly()
            raise ProtocolError(
                f"Failed to send {method} {url}: {e!r}", e, phase="request"
            ) from e

        return HTTPResponse(
            conn, self.cookie_store, request_method=method, **options
        )
