import io
import logging
import zlib
from contextlib import contextmanager
from enum import Enum
from http.client import HTTPException
from http.client import IncompleteRead as httplib_IncompleteRead
from socket import timeout as SocketTimeout
from typing import IO, Generator, Optional, Tuple, Type, Union

try:
    try:
        import brotlicffi as brotli  # type: ignore[import]
    except ImportError:
        import brotli  # type: ignore[import]
except ImportError:
    brotli = None

from .exceptions import DecodeError, IncompleteRead, ProtocolError, ReadTimeoutError
from .util.response import is_fp_closed

log = logging.getLogger(__name__)


class ContentDecoder:
    def decompress(self, data: bytes) -> bytes:
        raise NotImplementedError()

    def flush(self) -> bytes:
        raise NotImplementedError()


class DeflateDecoder(ContentDecoder):
    def __init__(self) -> None:
        self._first_try = True
        self._data = b""
        self._obj = zlib.decompressobj()

    def decompress(self, data: bytes) -> bytes:
        if not data:
            return data

        if not self._first_try:
            return self._obj.decompress(data)

        self._data += data
        try:
            decompressed = self._obj.decompress(data)
            if decompressed:
                self._first_try = False
                self._data = None  # type: ignore[assignment]
            return decompressed
        except zlib.error:
            # Some servers send raw deflate without the zlib wrapper.
            self._first_try = False
            self._obj = zlib.decompressobj(-zlib.MAX_WBITS)
            try:
                return self.decompress(self._data)
            finally:
                self._data = None  # type: ignore[assignment]

    def flush(self) -> bytes:
        return self._obj.flush()


class GzipDecoderState:
    FIRST_MEMBER = 0
    OTHER_MEMBERS = 1
    SWALLOW_DATA = 2


class GzipDecoder(ContentDecoder):
    def __init__(self) -> None:
        self._obj = zlib.decompressobj(16 + zlib.MAX_WBITS)
        self._state = GzipDecoderState.FIRST_MEMBER

    def decompress(self, data: bytes) -> bytes:
        ret = bytearray()
        if self._state == GzipDecoderState.SWALLOW_DATA or not data:
            return bytes(ret)
        while True:
            try:
                ret += self._obj.decompress(data)
            except zlib.error:
                previous_state = self._state
                # Ignore data after the first error
                self._state = GzipDecoderState.SWALLOW_DATA
                if previous_state == GzipDecoderState.OTHER_MEMBERS:
                    # Allow trailing garbage acceptable in other gzip clients
                    return bytes(ret)
                raise
            data = self._obj.unused_data
            if not data:
                return bytes(ret)
            self._state = GzipDecoderState.OTHER_MEMBERS
            self._obj = zlib.decompressobj(16 + zlib.MAX_WBITS)

    def flush(self) -> bytes:
        return self._obj.flush()


if brotli is not None:

    class BrotliDecoder(ContentDecoder):
        # Supports both 'brotlicffi' and 'Brotli' packages
        # since they share an import name. The top branches
        # are for 'brotlicffi' and bottom branches for 'Brotli'
        def __init__(self) -> None:
            self._obj = brotli.Decompressor()
            if hasattr(self._obj, "decompress"):
                setattr(self, "decompress", self._obj.decompress)
            else:
                setattr(self, "decompress", self._obj.process)

        def flush(self) -> bytes:
            if hasattr(self._obj, "flush"):
                return self._obj.flush()  # type: ignore[no-any-return]
            return b""


class MultiDecoder(ContentDecoder):
    """
    From RFC7231:
        If one or more encodings have been applied to a representation, the
        sender that applied the encodings MUST generate a Content-Encoding
        header field that lists the content codings in the order in which
        they were applied.
    """

    def __init__(self, modes: str) -> None:
        self._decoders = [_get_decoder(m.strip()) for m in modes.split(",")]

    def flush(self) -> bytes:
        return self._decoders[0].flush()

    def decompress(self, data: bytes) -> bytes:
        for d in reversed(self._decoders):
            data = d.decompress(data)
        return data


def _get_decoder(mode: str) -> ContentDecoder:
    if "," in mode:
        return MultiDecoder(mode)

    if mode == "gzip":
        return GzipDecoder()

    if brotli is not None and mode == "br":
        return BrotliDecoder()

    return DeflateDecoder()


CONTENT_DECODERS = ["gzip", "deflate"]
if brotli is not None:
    CONTENT_DECODERS += ["br"]

DECODER_ERROR_CLASSES: Tuple[Type[Exception], ...] = (IOError, zlib.error)
if brotli is not None:
    DECODER_ERROR_CLASSES += (brotli.error,)


def get_content_decoder(content_encoding: Optional[str]) -> Optional[ContentDecoder]:
    """
    The decoder for a ``Content-Encoding`` value, or ``None`` when the body is
    not encoded or uses only codings we cannot decode.
    """
    # Note: content-encoding value should be case-insensitive, per RFC 7230
    # Section 3.2
    content_encoding = (content_encoding or "").lower()
    if content_encoding in CONTENT_DECODERS:
        return _get_decoder(content_encoding)
    if "," in content_encoding:
        encodings = [
            e.strip()
            for e in content_encoding.split(",")
            if e.strip() in CONTENT_DECODERS
        ]
        if encodings:
            return _get_decoder(content_encoding)
    return None


class LiveBodyStream(io.RawIOBase):
    """
    Reader over the raw byte stream of an open connection.

    Decodes the ``Content-Encoding`` on the fly and translates low-level
    errors into :mod:`httphandle.exceptions`. A stream that ends early raises
    :class:`~httphandle.exceptions.IncompleteRead`, unless
    ``ignore_eof_error`` is set, in which case the bytes received so far are
    returned and the stream reports EOF.

    :param length:
        Expected number of bytes on the wire (``Content-Length``), or ``None``
        when unknown. Used to detect bodies cut short.
    """

    blocksize = 2 ** 16

    def __init__(
        self,
        fp: IO[bytes],
        *,
        decoder: Optional[ContentDecoder] = None,
        ignore_eof_error: bool = False,
        content_encoding: Optional[str] = None,
        length: Optional[int] = None,
    ) -> None:
        super().__init__()
        self._fp = fp
        self._decoder = decoder
        self._content_encoding = content_encoding
        self.ignore_eof_error = ignore_eof_error
        self.length_remaining = length
        self._buffer = bytearray()
        self._eof = False
        self._fp_bytes_read = 0

    def readable(self) -> bool:
        return True

    def tell(self) -> int:
        """
        Obtain the number of bytes pulled over the wire so far. May differ from
        the amount of content returned by :meth:`read` if bytes are encoded on
        the wire (e.g, compressed).
        """
        return self._fp_bytes_read

    def close(self) -> None:
        try:
            if not is_fp_closed(self._fp):
                self._fp.close()
        finally:
            super().close()

    @contextmanager
    def _error_catcher(self) -> Generator[None, None, None]:
        """
        Catch low-level python exceptions, instead re-raising httphandle
        variants, so that low-level exceptions are not leaked in the
        high-level api.
        """
        try:
            yield

        except SocketTimeout as e:
            raise ReadTimeoutError("Read timed out.", e, phase="body") from e

        except IncompleteRead:
            raise

        except httplib_IncompleteRead as e:
            raise IncompleteRead(
                self._fp_bytes_read + len(e.partial), e.expected
            ) from e

        except (HTTPException, OSError) as e:
            raise ProtocolError(f"Connection broken: {e!r}", e, phase="body") from e

    def _decode(self, data: bytes, flush_decoder: bool) -> bytes:
        if self._decoder is None:
            return data
        try:
            data = self._decoder.decompress(data)
            if flush_decoder:
                data += self._decoder.decompress(b"") + self._decoder.flush()
        except DECODER_ERROR_CLASSES as e:
            raise DecodeError(
                "Received response with content-encoding: %s, but "
                "failed to decode it." % self._content_encoding,
                e,
            ) from e
        return data

    def _read_raw(self, amt: Optional[int]) -> bytes:
        if is_fp_closed(self._fp):
            return b""
        with self._error_catcher():
            try:
                # cStringIO doesn't like amt=None
                return self._fp.read() if amt is None else self._fp.read(amt)
            except httplib_IncompleteRead as e:
                if not self.ignore_eof_error:
                    raise
                log.debug("Ignoring truncated response body: %r", e)
                self._eof = True
                return e.partial if isinstance(e.partial, bytes) else b""

    def _check_length(self) -> None:
        if not self.length_remaining:
            return
        if self.ignore_eof_error:
            log.debug(
                "Response body ended %d bytes short, ignoring", self.length_remaining
            )
            return
        raise IncompleteRead(self._fp_bytes_read, self.length_remaining)

    def _fill(self, amt: Optional[int]) -> None:
        while not self._eof and (amt is None or len(self._buffer) < amt):
            # Without an amount a single read() drains the stream.
            data = self._read_raw(None if amt is None else self.blocksize)
            self._fp_bytes_read += len(data)
            if self.length_remaining is not None:
                self.length_remaining = max(self.length_remaining - len(data), 0)

            if amt is None or not data or self._eof:
                self._eof = True
                self._check_length()
                self._buffer += self._decode(data, flush_decoder=True)
            else:
                self._buffer += self._decode(data, flush_decoder=False)

    def read(self, size: Optional[int] = -1) -> bytes:
        if size is None or size < 0:
            return self.readall()
        if size == 0:
            return b""
        self._fill(size)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def readall(self) -> bytes:
        self._fill(None)
        data = bytes(self._buffer)
        self._buffer.clear()
        return data

    def readinto(self, b: Union[bytearray, memoryview]) -> int:  # type: ignore[override]
        data = self.read(len(b))
        b[: len(data)] = data
        return len(data)


class BodyState(Enum):
    LIVE = "live"
    BUFFERED = "buffered"
    CLOSED = "closed"


class ResponseBody:
    """
    The body of one response: either a live stream over the connection or an
    in-memory copy of everything the server sent.

    The transition is one way. :meth:`sync` drains the live stream into memory
    and closes it; from then on every read is served from the buffer.
    :meth:`close` discards whatever the body holds.

    :param fp:
        The raw byte stream of the connection.

    :param is_async:
        When false the stream is drained during construction.

    :param ignore_eof_error:
        Accept a body that ends early (e.g. a chunked response missing its
        terminating chunk) instead of raising
        :class:`~httphandle.exceptions.IncompleteRead`.

    :param content_encoding:
        The ``Content-Encoding`` header value, used to decode the body.
        ``None`` leaves the bytes as they came off the wire.

    :param length:
        Expected body length on the wire, see :class:`LiveBodyStream`.
    """

    def __init__(
        self,
        fp: IO[bytes],
        *,
        is_async: bool = True,
        ignore_eof_error: bool = False,
        content_encoding: Optional[str] = None,
        length: Optional[int] = None,
    ) -> None:
        self.ignore_eof_error = ignore_eof_error
        self._stream: Optional[LiveBodyStream] = LiveBodyStream(
            fp,
            decoder=get_content_decoder(content_encoding),
            ignore_eof_error=ignore_eof_error,
            content_encoding=content_encoding,
            length=length,
        )
        self._data: Optional[bytes] = None
        self._bytes_read = 0
        self.state = BodyState.LIVE

        if not is_async:
            self.sync()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.state.value}>"

    @property
    def is_synced(self) -> bool:
        return self.state is BodyState.BUFFERED

    @property
    def closed(self) -> bool:
        return self.state is BodyState.CLOSED

    def tell(self) -> int:
        """Bytes pulled from the connection so far."""
        if self._stream is not None:
            return self._stream.tell()
        return self._bytes_read

    def sync(self) -> "ResponseBody":
        """
        Drain the live stream into memory and close it. Does nothing once
        buffered or closed.

        If draining fails the stream is closed anyway, the body ends up
        closed, and the error propagates.
        """
        if self.state is not BodyState.LIVE:
            return self

        assert self._stream is not None
        try:
            self._data = self._stream.readall()
        finally:
            self._release()

        assert self._data is not None
        log.debug("Buffered %d bytes of response body", len(self._data))
        return self

    def stream(self) -> IO[bytes]:
        """
        The live stream while the body has not been synced, a fresh reader
        over the buffer afterwards, and an empty reader once closed.
        """
        if self.state is BodyState.LIVE:
            assert self._stream is not None
            return self._stream  # type: ignore[return-value]
        if self.state is BodyState.BUFFERED:
            assert self._data is not None
            return io.BytesIO(self._data)
        return io.BytesIO()

    def get_bytes(self) -> bytes:
        self.sync()
        if self._data is None:
            return b""
        return self._data

    def close(self) -> None:
        self._data = None
        self._release()

    def _release(self) -> None:
        stream, self._stream = self._stream, None
        self.state = BodyState.CLOSED if self._data is None else BodyState.BUFFERED
        if stream is None:
            return
        self._bytes_read = stream.tell()
        try:
            stream.close()
        except (HTTPException, OSError) as e:
            log.debug("Error closing response stream: %r", e)

    def __enter__(self) -> "ResponseBody":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
