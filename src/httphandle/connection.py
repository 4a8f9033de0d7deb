import io
import logging
from http.client import HTTPConnection as _HTTPConnection
from http.client import HTTPResponse as _HttplibHTTPResponse
from http.client import HTTPSConnection as _HTTPSConnection
from http.client import RemoteDisconnected
from socket import timeout as SocketTimeout
from typing import IO, Any, Mapping, Optional, Protocol, Union
from urllib.parse import urljoin, urlsplit

from ._collections import HTTPHeaderDict
from .exceptions import ContentAbsentError, ReadTimeoutError
from .util.response import assert_header_parsing

log = logging.getLogger(__name__)

port_by_scheme = {"http": 80, "https": 443}

_TYPE_BODY = Union[bytes, IO[Any], str]


class BaseConnection(Protocol):
    """
    What :class:`~httphandle.response.HTTPResponse` needs from the exchange it
    wraps. A connection belongs to exactly one response at a time.
    """

    @property
    def target(self) -> str:
        """The URL the request was sent to; cookie stores are keyed by it."""

    def status_code(self) -> int:
        """
        :raises ContentAbsentError: the server sent nothing at all.
        """

    def headers(self) -> HTTPHeaderDict:
        """
        :raises HeaderParsingError: the header block was malformed.
        """

    def raw_stream(self) -> IO[bytes]:
        ...

    def close(self) -> None:
        ...

    @property
    def is_closed(self) -> bool:
        ...


class HTTPConnection:
    """
    One request/response exchange over :class:`http.client.HTTPConnection`.

    The response is read lazily: nothing is received until the first call to
    :meth:`status_code`, :meth:`headers` or :meth:`raw_stream`.

    :param host:
        Host to connect to.

    :param port:
        Port to connect to, the scheme's default when ``None``.

    :param timeout:
        Socket timeout in seconds for connecting and each read, ``None`` to
        block forever.
    """

    scheme = "http"
    default_port = port_by_scheme["http"]
    ConnectionCls = _HTTPConnection

    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        *,
        timeout: Optional[float] = None,
        **conn_kw: Any,
    ) -> None:
        self.host = host
        self.port = port or self.default_port
        self.timeout = timeout
        self._conn = self.ConnectionCls(host, self.port, timeout=timeout, **conn_kw)
        self._response: Optional[_HttplibHTTPResponse] = None
        self._content_absent = False
        self._closed = False
        self._target = f"{self.scheme}://{self._netloc}/"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(host={self.host!r}, port={self.port!r})"

    @property
    def _netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port == self.default_port:
            return host
        return f"{host}:{self.port}"

    @property
    def target(self) -> str:
        return self._target

    def request(
        self,
        method: str,
        url: str,
        body: Optional[_TYPE_BODY] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Send the request line, headers and body. Does not wait for a response."""
        self._target = urljoin(self._target, url)
        request_url = url
        if urlsplit(url).scheme:
            parts = urlsplit(url)
            request_url = parts.path or "/"
            if parts.query:
                request_url += "?" + parts.query
        log.debug("%s %s (%s)", method, request_url, self._target)
        self._conn.request(method, request_url, body=body, headers=dict(headers or {}))

    def getresponse(self) -> Optional[_HttplibHTTPResponse]:
        """
        The underlying :class:`http.client.HTTPResponse`, or ``None`` when the
        server closed the connection without answering.
        """
        if self._response is None and not self._content_absent:
            try:
                self._response = self._conn.getresponse()
            except RemoteDisconnected as e:
                self._content_absent = True
                log.debug("%s closed the connection without a response", self._target)
                raise ContentAbsentError(
                    f"{self._target}: server returned no content"
                ) from e
            except SocketTimeout as e:
                raise ReadTimeoutError(
                    f"{self._target}: read timed out. (read timeout={self.timeout})",
                    e,
                    phase="status",
                ) from e
        return self._response

    def status_code(self) -> int:
        response = self.getresponse()
        if response is None:
            raise ContentAbsentError(f"{self._target}: server returned no content")
        return response.status

    def headers(self) -> HTTPHeaderDict:
        response = self._get_response_quietly()
        if response is None:
            return HTTPHeaderDict()
        assert_header_parsing(response.msg)
        return HTTPHeaderDict(response.msg.items())

    def raw_stream(self) -> IO[bytes]:
        response = self._get_response_quietly()
        if response is None:
            return io.BytesIO()
        return response  # type: ignore[return-value]

    def _get_response_quietly(self) -> Optional[_HttplibHTTPResponse]:
        try:
            return self.getresponse()
        except ContentAbsentError:
            return None

    def close(self) -> None:
        self._closed = True
        try:
            if self._response is not None:
                self._response.close()
        finally:
            self._conn.close()

    def close_quietly(self) -> None:
        try:
            self.close()
        except OSError as e:
            log.debug("Error closing %r: %r", self, e)

    @property
    def is_closed(self) -> bool:
        return self._closed


class HTTPSConnection(HTTPConnection):
    """
    Same as :class:`HTTPConnection`, but over TLS. Extra keyword arguments
    (``context=``, ...) go straight to :class:`http.client.HTTPSConnection`.
    """

    scheme = "https"
    default_port = port_by_scheme["https"]
    ConnectionCls = _HTTPSConnection


connection_classes_by_scheme = {"http": HTTPConnection, "https": HTTPSConnection}


def connection_from_url(url: str, **kw: Any) -> HTTPConnection:
    """
    Given a url, return an :class:`HTTPConnection` or :class:`HTTPSConnection`
    for its host. The connection is not opened until a request is sent.

    :param url:
        Absolute URL string that must include the scheme. Port is optional.

    :param \\**kw:
        Passes additional parameters to the constructor of the appropriate
        connection class.

    Example::

        conn = connection_from_url('http://example.com/')
        conn.request('GET', '/')
    """
    parts = urlsplit(url)
    scheme = (parts.scheme or "http").lower()
    try:
        cls = connection_classes_by_scheme[scheme]
    except KeyError:
        raise ValueError(f"Not supported URL scheme {scheme}") from None
    if not parts.hostname:
        raise ValueError(f"Failed to parse: {url}")
    return cls(parts.hostname, parts.port, **kw)
