import codecs
import http.client as httplib
from email.errors import MultipartInvariantViolationDefect, StartBoundaryNotFoundDefect
from email.message import Message
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from ..exceptions import HeaderParsingError

if TYPE_CHECKING:
    from .._collections import HTTPHeaderDict


def is_fp_closed(obj: object) -> bool:
    """
    Checks whether a given file-like object is closed.

    :param obj:
        The file-like object to check.
    """

    try:
        # Check `isclosed()` first, in case Python3 doesn't set `closed`.
        # GH Issue #928
        return obj.isclosed()  # type: ignore[no-any-return, attr-defined]
    except AttributeError:
        pass

    try:
        # Check via the official file-like-object way.
        return obj.closed  # type: ignore[no-any-return, attr-defined]
    except AttributeError:
        pass

    try:
        # Check if the object is a container for another file-like object that
        # gets released on exhaustion (e.g. HTTPResponse).
        return obj.fp is None  # type: ignore[attr-defined]
    except AttributeError:
        pass

    raise ValueError("Unable to determine whether fp is closed.")


def parse_content_type(value: Optional[str]) -> Tuple[Optional[str], Dict[str, Any]]:
    """
    Split a ``Content-Type`` value into its media type and parameters.

    >>> parse_content_type("text/html; charset=GBK")
    ('text/html', {'charset': 'GBK'})
    """
    if not value:
        return None, {}

    msg = Message()
    msg["content-type"] = value
    params = msg.get_params(failobj=[])
    # get_params() hands back the media type as the first "parameter".
    media_type = msg.get_content_type() if params else None
    return media_type, {k.lower(): v for k, v in params[1:]}


def get_charset(headers: "HTTPHeaderDict") -> Optional[str]:
    """
    The charset named by the ``Content-Type`` header, or ``None`` when the
    header is missing, carries no charset, or names one Python cannot decode.
    """
    _, params = parse_content_type(headers.first("content-type"))
    charset = params.get("charset")
    if not isinstance(charset, str) or not charset.strip():
        return None
    charset = charset.strip().strip("\"'")
    try:
        codecs.lookup(charset)
    except LookupError:
        return None
    return charset


def assert_header_parsing(headers: httplib.HTTPMessage) -> None:
    """
    Asserts whether all headers have been successfully parsed.
    Extracts encountered errors from the result of parsing headers.

    :param http.client.HTTPMessage headers: Headers to verify.

    :raises httphandle.exceptions.HeaderParsingError:
        If parsing errors are found.
    """

    # This will fail silently if we pass in the wrong kind of parameter.
    # To make debugging easier add an explicit check.
    if not isinstance(headers, httplib.HTTPMessage):
        raise TypeError(f"expected httplib.Message, got {type(headers)}.")

    unparsed_data = None

    # get_payload is actually email.message.Message.get_payload;
    # we're only interested in the result if it's not a multipart message
    if not headers.is_multipart():
        payload = headers.get_payload()

        if isinstance(payload, (bytes, str)):
            unparsed_data = payload

    # httplib is assuming a response body is available
    # when parsing headers even when httplib only sends
    # header data to parse_headers() This results in
    # defects on multipart responses in particular.

    # So we ignore the following defects:
    # - StartBoundaryNotFoundDefect:
    #     The claimed start boundary was never found.
    # - MultipartInvariantViolationDefect:
    #     A message claimed to be a multipart but no subparts were found.
    defects = [
        defect
        for defect in headers.defects
        if not isinstance(
            defect, (StartBoundaryNotFoundDefect, MultipartInvariantViolationDefect)
        )
    ]

    if defects or unparsed_data:
        raise HeaderParsingError(defects=defects, unparsed_data=unparsed_data)
