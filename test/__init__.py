from __future__ import annotations

import io
import typing
from http.client import IncompleteRead as httplib_IncompleteRead

from httphandle._collections import HTTPHeaderDict
from httphandle.cookies import Cookie
from httphandle.exceptions import ContentAbsentError, HeaderParsingError


class DummyConnection:
    """
    In-memory stand-in for :class:`httphandle.connection.BaseConnection`.

    ``status`` of ``None`` simulates a server that hung up without a status
    line; ``headers`` may be an exception instance to raise instead.
    """

    def __init__(
        self,
        body: bytes | typing.IO[bytes] = b"",
        status: int | None = 200,
        headers: typing.Any = None,
        target: str = "http://example.com/",
        status_error: BaseException | None = None,
    ) -> None:
        self.target = target
        self._status = status
        self._status_error = status_error
        self._headers = headers
        if isinstance(body, bytes):
            body = io.BytesIO(body)
        self.stream = body
        self.close_calls = 0

    def status_code(self) -> int:
        if self._status_error is not None:
            raise self._status_error
        if self._status is None:
            raise ContentAbsentError(f"{self.target}: server returned no content")
        return self._status

    def headers(self) -> HTTPHeaderDict:
        if isinstance(self._headers, BaseException):
            raise self._headers
        return HTTPHeaderDict(self._headers)

    def raw_stream(self) -> typing.IO[bytes]:
        return self.stream

    def close(self) -> None:
        self.close_calls += 1
        self.stream.close()

    @property
    def is_closed(self) -> bool:
        return self.close_calls > 0


class BrokenCloseConnection(DummyConnection):
    def close(self) -> None:
        super().close()
        raise OSError("socket already gone")


class TruncatedStream(io.RawIOBase):
    """Hands out ``data`` then fails the way :mod:`http.client` does on a short body."""

    def __init__(self, data: bytes, missing: int = 10) -> None:
        super().__init__()
        self._data = data
        self._missing = missing
        self._sent = False

    def readable(self) -> bool:
        return True

    def read(self, amt: int | None = -1) -> bytes:
        if self._sent:
            return b""
        self._sent = True
        raise httplib_IncompleteRead(self._data, self._missing)


class FailingStream(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def read(self, amt: int | None = -1) -> bytes:
        raise ConnectionResetError("connection reset by peer")


class FakeCookieStore:
    """Cookie store double that records what it was handed."""

    def __init__(self, cookies: list[Cookie] | None = None, enabled: bool = True) -> None:
        self.cookies = cookies or []
        self.enabled = enabled
        self.persisted: list[tuple[str, HTTPHeaderDict]] = []

    def is_enabled(self) -> bool:
        return self.enabled

    def persist(self, target: str, headers: HTTPHeaderDict) -> None:
        self.persisted.append((target, headers))

    def cookies_for(self, target: str) -> list[Cookie]:
        return list(self.cookies)


class ExplodingCookieStore(FakeCookieStore):
    def __init__(self, error: Exception | None = None) -> None:
        super().__init__()
        self.error = error or ValueError("store unreachable")

    def persist(self, target: str, headers: HTTPHeaderDict) -> None:
        raise self.error


MALFORMED_HEADERS = HeaderParsingError(["MissingHeaderBodySeparatorDefect()"], "garbage")
