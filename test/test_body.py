from __future__ import annotations

import io
import zlib

import pytest

from httphandle.body import (
    BodyState,
    DeflateDecoder,
    GzipDecoder,
    LiveBodyStream,
    MultiDecoder,
    ResponseBody,
    brotli,
    get_content_decoder,
)
from httphandle.exceptions import DecodeError, IncompleteRead, ProtocolError

from . import FailingStream, TruncatedStream


def gzip_compress(data: bytes) -> bytes:
    compress = zlib.compressobj(6, zlib.DEFLATED, 16 + zlib.MAX_WBITS)
    return compress.compress(data) + compress.flush()


def deflate2_compress(data: bytes) -> bytes:
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


class TestGetContentDecoder:
    @pytest.mark.parametrize(
        ["content_encoding", "decoder_cls"],
        [
            ("gzip", GzipDecoder),
            ("GZIP", GzipDecoder),
            ("deflate", DeflateDecoder),
            ("deflate, gzip", MultiDecoder),
        ],
    )
    def test_known(self, content_encoding: str, decoder_cls: type) -> None:
        assert isinstance(get_content_decoder(content_encoding), decoder_cls)

    @pytest.mark.parametrize("content_encoding", [None, "", "identity", "compress"])
    def test_unknown(self, content_encoding: str | None) -> None:
        assert get_content_decoder(content_encoding) is None


class TestDecoders:
    def test_chunked_decoding_deflate(self) -> None:
        data = zlib.compress(b"foo")
        decoder = DeflateDecoder()
        decoded = b"".join(
            decoder.decompress(data[i : i + 1]) for i in range(len(data))
        )
        assert decoded + decoder.flush() == b"foo"

    def test_raw_deflate(self) -> None:
        decoder = DeflateDecoder()
        assert decoder.decompress(deflate2_compress(b"foo")) + decoder.flush() == b"foo"

    def test_gzip_multiple_members(self) -> None:
        data = gzip_compress(b"foo") + gzip_compress(b"bar")
        assert GzipDecoder().decompress(data) == b"foobar"

    def test_gzip_trailing_garbage_after_members(self) -> None:
        data = gzip_compress(b"foo") + gzip_compress(b"bar") + b"garbage"
        assert GzipDecoder().decompress(data) == b"foobar"

    def test_gzip_garbage_first(self) -> None:
        with pytest.raises(zlib.error):
            GzipDecoder().decompress(b"garbage")

    def test_multi_decoder_order(self) -> None:
        data = gzip_compress(zlib.compress(b"foo"))
        decoder = MultiDecoder("deflate, gzip")
        assert decoder.decompress(data) == b"foo"

    @pytest.mark.skipif(brotli is None, reason="brotli is not installed")
    def test_brotli(self) -> None:
        decoder = get_content_decoder("br")
        assert decoder is not None
        assert decoder.decompress(brotli.compress(b"foo")) == b"foo"


class TestLiveBodyStream:
    def test_read_in_chunks(self) -> None:
        stream = LiveBodyStream(io.BytesIO(b"hello world"))

        assert stream.read(5) == b"hello"
        assert stream.read(1) == b" "
        assert stream.read() == b"world"
        assert stream.read() == b""
        assert stream.tell() == 11

    def test_readinto(self) -> None:
        stream = LiveBodyStream(io.BytesIO(b"hello"))
        buffer = bytearray(3)

        assert stream.readinto(buffer) == 3
        assert buffer == b"hel"

    def test_decoded_size_differs_from_tell(self) -> None:
        data = gzip_compress(b"x" * 1000)
        stream = LiveBodyStream(
            io.BytesIO(data), decoder=GzipDecoder(), content_encoding="gzip"
        )

        assert stream.read() == b"x" * 1000
        assert stream.tell() == len(data)

    def test_decode_error(self) -> None:
        stream = LiveBodyStream(
            io.BytesIO(b"\x00" * 10), decoder=DeflateDecoder(), content_encoding="deflate"
        )
        with pytest.raises(DecodeError, match="content-encoding: deflate"):
            stream.read()

    def test_length_shortfall(self) -> None:
        stream = LiveBodyStream(io.BytesIO(b"abc"), length=5)
        with pytest.raises(IncompleteRead) as e:
            stream.read()
        assert (e.value.partial, e.value.expected) == (3, 2)

    def test_length_shortfall_while_reading_chunks(self) -> None:
        stream = LiveBodyStream(io.BytesIO(b"abc"), length=5)
        assert stream.read(2) == b"ab"
        with pytest.raises(IncompleteRead):
            stream.read(2)

    def test_exact_length(self) -> None:
        stream = LiveBodyStream(io.BytesIO(b"abc"), length=3)
        assert stream.read() == b"abc"

    def test_truncated_stream_ignored(self) -> None:
        stream = LiveBodyStream(TruncatedStream(b"partial"), ignore_eof_error=True)

        assert stream.read() == b"partial"
        assert stream.read() == b""

    def test_truncated_stream_raises(self) -> None:
        stream = LiveBodyStream(TruncatedStream(b"partial", missing=4))
        with pytest.raises(IncompleteRead) as e:
            stream.read()
        assert (e.value.partial, e.value.expected) == (7, 4)

    def test_broken_stream(self) -> None:
        stream = LiveBodyStream(FailingStream())
        with pytest.raises(ProtocolError) as e:
            stream.read()
        assert e.value.phase == "body"
        assert isinstance(e.value.original_error, ConnectionResetError)

    def test_closed_fp_reads_empty(self) -> None:
        fp = io.BytesIO(b"data")
        fp.close()
        assert LiveBodyStream(fp).read() == b""

    def test_close_closes_fp(self) -> None:
        fp = io.BytesIO(b"data")
        stream = LiveBodyStream(fp)
        stream.close()

        assert stream.closed
        assert fp.closed


class TestResponseBody:
    def test_starts_live(self) -> None:
        body = ResponseBody(io.BytesIO(b"data"))

        assert body.state is BodyState.LIVE
        assert not body.is_synced
        assert isinstance(body.stream(), LiveBodyStream)

    def test_sync_buffers_and_closes_stream(self) -> None:
        fp = io.BytesIO(b"data")
        body = ResponseBody(fp)
        assert body.sync() is body

        assert body.state is BodyState.BUFFERED
        assert body.is_synced
        assert fp.closed
        assert body.tell() == 4
        assert body.stream().read() == b"data"
        assert body.get_bytes() == b"data"

    def test_sync_is_buffered_when_stream_closes(self) -> None:
        states = []

        class RecordingStream(io.BytesIO):
            def close(self) -> None:
                states.append(body.state)
                super().close()

        body = ResponseBody(RecordingStream(b"data"))
        body.sync()

        assert states == [BodyState.BUFFERED]
        assert body.state is BodyState.BUFFERED

    def test_not_async_syncs_immediately(self) -> None:
        body = ResponseBody(io.BytesIO(b"data"), is_async=False)
        assert body.is_synced
        assert body.get_bytes() == b"data"

    def test_get_bytes_syncs(self) -> None:
        body = ResponseBody(io.BytesIO(b"data"))
        assert body.get_bytes() == b"data"
        assert body.is_synced

    def test_sync_keeps_what_was_not_read_yet(self) -> None:
        body = ResponseBody(io.BytesIO(b"data"))
        assert body.stream().read(2) == b"da"

        body.sync()

        assert body.get_bytes() == b"ta"

    def test_close_discards(self) -> None:
        fp = io.BytesIO(b"data")
        body = ResponseBody(fp)
        body.close()

        assert body.closed
        assert fp.closed
        assert body.stream().read() == b""
        assert body.get_bytes() == b""

    def test_close_after_sync_discards(self) -> None:
        body = ResponseBody(io.BytesIO(b"data"), is_async=False)
        body.close()
        body.close()

        assert body.state is BodyState.CLOSED
        assert body.get_bytes() == b""

    def test_failed_sync_leaves_body_closed(self) -> None:
        body = ResponseBody(FailingStream())
        with pytest.raises(ProtocolError):
            body.sync()

        assert body.closed
        assert body.get_bytes() == b""

    def test_content_encoding(self) -> None:
        body = ResponseBody(io.BytesIO(gzip_compress(b"foo")), content_encoding="gzip")
        assert body.get_bytes() == b"foo"

    def test_context_manager(self) -> None:
        with ResponseBody(io.BytesIO(b"data")) as body:
            assert body.stream().read(1) == b"d"
        assert body.closed

    def test_repr(self) -> None:
        body = ResponseBody(io.BytesIO(b"data"))
        assert repr(body) == "<ResponseBody live>"
        body.sync()
        assert repr(body) == "<ResponseBody buffered>"
        body.close()
        assert repr(body) == "<ResponseBody closed>"
