from __future__ import annotations

import socket
import typing
from unittest import mock

import pytest

import httphandle
from httphandle import HTTPClient, ResponseOptions
from httphandle.connection import (
    HTTPConnection,
    HTTPSConnection,
    connection_from_url,
)
from httphandle.cookies import CookieStore
from httphandle.exceptions import ProtocolError

from . import DummyConnection


def unused_port() -> int:
    with socket.socket(socket.AF_INET) as sock:
        sock.bind(("127.0.0.1", 0))
        return typing.cast(int, sock.getsockname()[1])


class RecordingConnection(DummyConnection):
    def __init__(self, *args: typing.Any, **kwargs: typing.Any) -> None:
        super().__init__(*args, **kwargs)
        self.requests: list[tuple[str, str, typing.Any, dict[str, str]]] = []

    def request(
        self,
        method: str,
        url: str,
        body: typing.Any = None,
        headers: typing.Any = None,
    ) -> None:
        self.requests.append((method, url, body, dict(headers or {})))


@pytest.fixture()
def recording() -> typing.Iterator[RecordingConnection]:
    conn = RecordingConnection(b"ok")
    with mock.patch(
        "httphandle.client.connection_from_url", return_value=conn
    ) as from_url:
        conn.from_url = from_url  # type: ignore[attr-defined]
        yield conn


class TestConnectionFromURL:
    @pytest.mark.parametrize(
        ["url", "cls", "host", "port", "target"],
        [
            ("http://example.com/", HTTPConnection, "example.com", 80, "http://example.com/"),
            ("http://example.com:8080/x", HTTPConnection, "example.com", 8080, "http://example.com:8080/"),
            ("https://example.com/", HTTPSConnection, "example.com", 443, "https://example.com/"),
            ("HTTPS://example.com:443/", HTTPSConnection, "example.com", 443, "https://example.com/"),
            ("http://[::1]:8080/", HTTPConnection, "::1", 8080, "http://[::1]:8080/"),
        ],
    )
    def test_connection_from_url(
        self, url: str, cls: type, host: str, port: int, target: str
    ) -> None:
        conn = connection_from_url(url)

        assert type(conn) is cls
        assert conn.host == host
        assert conn.port == port
        assert conn.target == target
        assert not conn.is_closed

    @pytest.mark.parametrize("url", ["ftp://example.com/", "http:///path"])
    def test_bad_url(self, url: str) -> None:
        with pytest.raises(ValueError):
            connection_from_url(url)

    def test_close_before_request(self) -> None:
        conn = connection_from_url("http://example.com/")
        conn.close()
        conn.close()

        assert conn.is_closed

    def test_repr(self) -> None:
        conn = connection_from_url("http://example.com:8080/")
        assert repr(conn) == "HTTPConnection(host='example.com', port=8080)"


class TestHTTPClient:
    def test_request_returns_response(self, recording: RecordingConnection) -> None:
        r = HTTPClient().request("GET", "http://example.com/path")

        assert r.status == 200
        assert r.body_bytes() == b"ok"
        assert recording.requests == [("GET", "http://example.com/path", None, {})]
        recording.from_url.assert_called_once_with(  # type: ignore[attr-defined]
            "http://example.com/path", timeout=None
        )

    def test_timeout_and_conn_kw(self, recording: RecordingConnection) -> None:
        HTTPClient(timeout=2.5, blocksize=1024).request("GET", "http://example.com/")

        recording.from_url.assert_called_once_with(  # type: ignore[attr-defined]
            "http://example.com/", timeout=2.5, blocksize=1024
        )

    def test_headers_are_merged(self, recording: RecordingConnection) -> None:
        client = HTTPClient(headers={"User-Agent": "default", "Accept": "*/*"})
        client.request("GET", "http://example.com/", headers={"user-agent": "mine"})

        _, _, _, headers = recording.requests[0]
        assert headers == {"Accept": "*/*", "user-agent": "mine"}
        assert client.headers["User-Agent"] == "default"

    def test_json(self, recording: RecordingConnection) -> None:
        HTTPClient().request("POST", "http://example.com/", json={"a": ["é"]})

        _, _, body, headers = recording.requests[0]
        assert body == '{"a":["é"]}'.encode()
        assert headers["Content-Type"] == "application/json"

    def test_json_keeps_content_type(self, recording: RecordingConnection) -> None:
        HTTPClient().request(
            "POST",
            "http://example.com/",
            json=[1],
            headers={"Content-Type": "application/vnd.api+json"},
        )

        _, _, _, headers = recording.requests[0]
        assert headers == {"Content-Type": "application/vnd.api+json"}

    def test_json_and_body(self) -> None:
        with pytest.raises(TypeError, match="mutually exclusive"):
            HTTPClient().request("POST", "http://example.com/", body=b"x", json={})

    def test_cookie_header_from_store(self, recording: RecordingConnection) -> None:
        store = CookieStore()
        store.persist(
            "http://example.com/",
            httphandle.HTTPHeaderDict({"Set-Cookie": "a=1; Path=/"}),
        )
        HTTPClient(cookie_store=store).request("GET", "http://example.com/")

        _, _, _, headers = recording.requests[0]
        assert headers == {"Cookie": "a=1"}

    def test_explicit_cookie_header_wins(self, recording: RecordingConnection) -> None:
        store = CookieStore()
        store.persist(
            "http://example.com/",
            httphandle.HTTPHeaderDict({"Set-Cookie": "a=1; Path=/"}),
        )
        HTTPClient(cookie_store=store).request(
            "GET", "http://example.com/", headers={"Cookie": "b=2"}
        )

        _, _, _, headers = recording.requests[0]
        assert headers == {"Cookie": "b=2"}

    def test_options(self, recording: RecordingConnection) -> None:
        client = HTTPClient(options=ResponseOptions(is_async=True))
        r = client.request("GET", "http://example.com/")

        assert not r.is_synced
        assert not recording.is_closed
        r.close()

    def test_per_request_options(self, recording: RecordingConnection) -> None:
        r = HTTPClient().request("GET", "http://example.com/", ignore_body=True)

        assert r.body is None
        assert r.body_bytes() == b""

    def test_unknown_option(self) -> None:
        with pytest.raises(TypeError):
            HTTPClient().request("GET", "http://example.com/", preload_content=False)

    def test_request_failure(self) -> None:
        url = f"http://127.0.0.1:{unused_port()}/"
        with pytest.raises(ProtocolError) as e:
            HTTPClient(timeout=1).request("GET", url)

        assert e.value.phase == "request"
        assert isinstance(e.value.original_error, OSError)

    def test_module_level_request(self, recording: RecordingConnection) -> None:
        r = httphandle.request("GET", "http://example.com/")

        assert r.data == b"ok"
        assert recording.is_closed

    def test_repr(self) -> None:
        assert repr(HTTPClient()) == "HTTPClient(cookie_store=None)"
