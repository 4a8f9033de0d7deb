import io
import json as _json
import logging
from contextlib import contextmanager
from http.client import HTTPException
from socket import timeout as SocketTimeout
from typing import (
    IO,
    TYPE_CHECKING,
    Any,
    Generator,
    List,
    Optional,
    Tuple,
)

from ._collections import HTTPHeaderDict
from .body import BodyState, ResponseBody
from .cookies import Cookie, parse_set_cookie
from .exceptions import (
    ContentAbsentError,
    HeaderParsingError,
    ProtocolError,
    ReadTimeoutError,
)
from .util.response import get_charset

if TYPE_CHECKING:
    from .connection import BaseConnection
    from .cookies import CookieStore

log = logging.getLogger(__name__)


def _close_quietly(obj: Any, what: str) -> None:
    try:
        obj.close()
    except Exception as e:
        log.debug("Error closing %s %r: %r", what, obj, e)


class HTTPResponse:
    """
    HTTP Response container owning one connection from status line to close.

    Construction reads the status code and headers, hands ``Set-Cookie`` to the
    cookie store, and wraps the body stream. With ``is_async=False`` (the
    default) the body is then read into memory and the connection closed
    right away. With ``is_async=True`` the connection stays open and
    :meth:`body_stream` returns the live stream until :meth:`sync`,
    :meth:`body_bytes` or :meth:`close` is called.

    Not thread-safe: a response belongs to a single request/response exchange.
    Use it as a context manager, or call :meth:`close`, to release the
    connection on every exit path.

    :param connection:
        An open :class:`~httphandle.connection.BaseConnection` whose request
        has been sent. The response owns it from here on.

    :param cookie_store:
        When given, cookies set by this response are persisted into it.

    :param ignore_eof_error:
        Accept bodies that end before the server said they would (e.g. a
        ``Transfer-Encoding: chunked`` stream missing its last chunk) and keep
        what was received.

    :param request_charset:
        Encoding used for :meth:`text` when ``Content-Type`` names none.

    :param is_async:
        Keep the connection open and read the body on demand.

    :param ignore_body:
        Do not capture the body at all; :meth:`body_stream` is then empty.

    :param decode_content:
        If True, will attempt to decode the body based on the
        'content-encoding' header.

    :param request_method:
        Method of the request, used to tell whether a body is expected.
    """

    def __init__(
        self,
        connection: "BaseConnection",
        cookie_store: Optional["CookieStore"] = None,
        *,
        ignore_eof_error: bool = False,
        request_charset: str = "utf-8",
        is_async: bool = False,
        ignore_body: bool = False,
        decode_content: bool = True,
        request_method: Optional[str] = None,
    ) -> None:
        self._connection = connection
        self.cookie_store = cookie_store
        self.ignore_eof_error = ignore_eof_error
        self.request_charset = request_charset
        self.decode_content = decode_content

        self.status = 0
        self._headers = HTTPHeaderDict()
        self._body: Optional[ResponseBody] = None
        self._closed = False

        try:
            self._init(is_async, ignore_body, request_method)
        except BaseException:
            self.close()
            raise

    def __repr__(self) -> str:
        if self._closed:
            state = "closed"
        elif self.is_synced:
            state = "sync"
        else:
            state = "async"
        return f"<{type(self).__name__} [{self.status}] {state}>"

    def __enter__(self) -> "HTTPResponse":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @contextmanager
    def _error_catcher(self, phase: str) -> Generator[None, None, None]:
        """
        Catch low-level python exceptions, instead re-raising httphandle
        variants that name the phase of the exchange that failed.
        """
        try:
            yield

        except SocketTimeout as e:
            raise ReadTimeoutError(
                f"Read timed out. (phase={phase})", e, phase=phase
            ) from e

        except (HTTPException, OSError) as e:
            raise ProtocolError(
                f"Connection broken while reading {phase}: {e!r}", e, phase=phase
            ) from e

    def _init(
        self, is_async: bool, ignore_body: bool, request_method: Optional[str]
    ) -> None:
        with self._error_catcher("status"):
            try:
                self.status = self._connection.status_code()
            except ContentAbsentError as e:
                # The server sent nothing at all; that is an empty response,
                # not a failure.
                log.debug("No content received from %s: %s", self.url, e)

        with self._error_catcher("headers"):
            try:
                self._headers = self._connection.headers()
            except HeaderParsingError as hpe:
                log.warning(
                    "Failed to parse headers (url=%s): %s",
                    self.url,
                    hpe,
                    exc_info=True,
                )

        if self.cookie_store is not None:
            self._persist_cookies()

        if not ignore_body:
            content_encoding = None
            if self.decode_content:
                content_encoding = self._headers.first("content-encoding")
            with self._error_catcher("body"):
                fp = self._connection.raw_stream()
            self._body = ResponseBody(
                fp,
                is_async=True,
                ignore_eof_error=self.ignore_eof_error,
                content_encoding=content_encoding,
                length=self._init_length(request_method),
            )

        if not is_async:
            self.sync()

    def _persist_cookies(self) -> None:
        assert self.cookie_store is not None
        try:
            self.cookie_store.persist(self.url, self._headers.copy())
        except Exception as e:
            log.debug("Failed to persist cookies from %s: %r", self.url, e)

    def _init_length(self, request_method: Optional[str]) -> Optional[int]:
        """
        Set initial length value for Response content if available.
        """
        length: Optional[int]
        content_length = self._headers.get("content-length")
        tr_enc = self._headers.get("transfer-encoding", "").lower()
        chunked = "chunked" in (enc.strip() for enc in tr_enc.split(","))

        if content_length is None or chunked:
            length = None
        else:
            try:
                # RFC 7230 section 3.3.2 specifies multiple content lengths can
                # be sent in a single Content-Length header
                # (e.g. Content-Length: 42, 42). This line ensures the values
                # are all valid ints and that as long as the `set` length is 1,
                # all values are the same. Otherwise, the header is invalid.
                lengths = {int(val) for val in content_length.split(",")}
            except ValueError:
                lengths = set()
            if len(lengths) != 1:
                log.warning(
                    "Ignoring invalid Content-Length %r from %s",
                    content_length,
                    self.url,
                )
                length = None
            else:
                length = lengths.pop()
                if length < 0:
                    length = None

        # Check for responses that shouldn't include a body
        if (
            self.status in (204, 304)
            or 100 <= self.status < 200
            or (request_method or "").upper() == "HEAD"
        ):
            length = 0

        return length

    @property
    def connection(self) -> "BaseConnection":
        return self._connection

    @property
    def url(self) -> str:
        """The URL this response was received from."""
        return self._connection.target

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_synced(self) -> bool:
        """True once the body is held in memory and the connection released."""
        return self._body is None or self._body.state is not BodyState.LIVE

    @property
    def is_async(self) -> bool:
        """True while the body is still read from the open connection."""
        return not self.is_synced

    # Headers

    def header(self, name: str) -> Optional[str]:
        """The first value of header ``name`` (case-insensitive), or ``None``."""
        return self._headers.first(name)

    @property
    def headers(self) -> HTTPHeaderDict:
        """All headers. A copy: changing it does not affect the response."""
        return self._headers.copy()

    def getheaders(self) -> List[Tuple[str, str]]:
        return list(self._headers.iteritems())

    def getheader(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._headers.get(name, default)

    @property
    def charset(self) -> str:
        """
        The charset declared by ``Content-Type``, falling back to the
        request's charset.
        """
        return get_charset(self._headers) or self.request_charset

    # Cookies

    def get_cookies(self) -> List[Cookie]:
        """
        With an enabled cookie store: every cookie the store holds for this
        URL, including ones set by earlier responses. Otherwise: the cookies
        set by this response's own ``Set-Cookie`` headers.
        """
        if self.cookie_store is not None and self.cookie_store.is_enabled():
            return self.cookie_store.cookies_for(self.url)
        return parse_set_cookie(self._headers.getlist("set-cookie"))

    def get_cookie(self, name: str) -> Optional[Cookie]:
        for cookie in self.get_cookies():
            if cookie.name == name:
                return cookie
        return None

    def get_cookie_value(self, name: str) -> Optional[str]:
        cookie = self.get_cookie(name)
        return None if cookie is None else cookie.value

    # Body

    @property
    def body(self) -> Optional[ResponseBody]:
        return self._body

    def sync(self) -> "HTTPResponse":
        """
        Read the rest of the body into memory, then close the connection.

        Does not re-read anything when the body is already in memory. The
        connection is closed even when reading fails; the error is raised
        afterwards.
        """
        try:
            if self._body is not None:
                self._body.sync()
        finally:
            _close_quietly(self._connection, "connection")
        return self

    def body_stream(self) -> IO[bytes]:
        """
        Before :meth:`sync`, the live stream of the connection; close the
        response once done with it. After :meth:`sync`, a fresh reader over
        the body held in memory. Never ``None``.
        """
        if self._body is None:
            return io.BytesIO()
        return self._body.stream()

    def body_bytes(self) -> bytes:
        """
        The whole body.

        Calls :meth:`sync` first, which closes the connection: a stream
        obtained from :meth:`body_stream` before this call is closed too.
        """
        self.sync()
        if self._body is None:
            return b""
        return self._body.get_bytes()

    @property
    def data(self) -> bytes:
        return self.body_bytes()

    def text(self, encoding: Optional[str] = None, errors: str = "strict") -> str:
        """The body decoded with ``encoding``, or :attr:`charset` when not given."""
        return self.body_bytes().decode(encoding or self.charset, errors)

    def json(self) -> Any:
        """
        Parses the body of the HTTP response as JSON.

        To use a custom JSON decoder pass the result of :meth:`body_bytes` to the decoder.

        This method can raise either `UnicodeDecodeError` or `json.JSONDecodeError`.
        """
        return _json.loads(self.text())

    def close(self) -> None:
        """
        Discard the body and close the connection. Safe to call repeatedly
        and never raises.
        """
        if self._body is not None:
            _close_quietly(self._body, "response body")
        _close_quietly(self._connection, "connection")
        self._closed = True
