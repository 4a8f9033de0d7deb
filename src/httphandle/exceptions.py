from http.client import IncompleteRead as httplib_IncompleteRead
from typing import Callable, Optional, Tuple

# Base Exceptions


class HTTPError(Exception):
    """Base exception used by this module."""

    pass


_TYPE_REDUCE_RESULT = Tuple[Callable[..., object], Tuple[object, ...]]


class ProtocolError(HTTPError):
    """Raised when something unexpected happens mid-request/response.

    :param message: Human readable description.
    :param error: The underlying low-level exception, if any.
    :param phase: Which part of the exchange failed, one of ``"request"``,
        ``"status"``, ``"headers"`` or ``"body"``.
    """

    def __init__(
        self,
        message: str,
        error: Optional[BaseException] = None,
        phase: Optional[str] = None,
    ) -> None:
        super().__init__(message, error)
        self.original_error = error
        self.phase = phase

    def __reduce__(self) -> _TYPE_REDUCE_RESULT:
        # For pickling purposes.
        return self.__class__, (self.args[0], self.original_error, self.phase)


#: The transport-layer error callers are expected to catch.
TransportError = ProtocolError


class TimeoutError(HTTPError):
    """Raised when a socket timeout error occurs."""

    pass


class ReadTimeoutError(TimeoutError, ProtocolError):
    """Raised when a socket timeout occurs while receiving data from a server"""

    pass


class DecodeError(HTTPError):
    """Raised when automatic decoding based on Content-Encoding fails."""

    pass


class ContentAbsentError(HTTPError):
    """
    Raised by a connection when the server closed it without sending a status
    line. :class:`~httphandle.response.HTTPResponse` treats this as an empty
    response rather than a failure.
    """

    pass


class HeaderParsingError(HTTPError, ValueError):
    """Raised by connections on a malformed header block, we convert it to a log.warning statement."""

    def __init__(self, defects: object, unparsed_data: object = None) -> None:
        message = f"{defects or 'Unknown'}, unparsed data: {unparsed_data!r}"
        super().__init__(message)


class IncompleteRead(HTTPError, httplib_IncompleteRead):
    """
    Response body ended before the server said it would.

    Subclass of :class:`http.client.IncompleteRead` to allow int value
    for ``partial`` to avoid creating large objects on streamed reads.
    """

    def __init__(self, partial: int, expected: Optional[int]) -> None:
        self.partial = partial  # type: ignore[assignment]
        self.expected = expected

    def __repr__(self) -> str:
        if self.expected is None:
            return "IncompleteRead(%i bytes read)" % self.partial  # type: ignore[str-format]
        return "IncompleteRead(%i bytes read, %i more expected)" % (
            self.partial,  # type: ignore[str-format]
            self.expected,
        )

    def __str__(self) -> str:
        return repr(self)

    def __reduce__(self) -> _TYPE_REDUCE_RESULT:
        return self.__class__, (self.partial, self.expected)

