"""
HTTP response handling with lazy or eager bodies and guaranteed connection release
"""

# Set default logging handler to avoid "No handler found" warnings.
import logging
from logging import NullHandler
from typing import Any, Mapping, Optional, TextIO

from . import exceptions
from ._collections import HTTPHeaderDict
from ._version import __version__
from .body import ResponseBody
from .client import HTTPClient
from .config import ResponseOptions
from .connection import (
    _TYPE_BODY,
    HTTPConnection,
    HTTPSConnection,
    connection_from_url,
)
from .cookies import Cookie, CookieStore
from .response import HTTPResponse
from .util.convert import convert

__license__ = "MIT"
__version__ = __version__

__all__ = (
    "Cookie",
    "CookieStore",
    "HTTPClient",
    "HTTPConnection",
    "HTTPHeaderDict",
    "HTTPResponse",
    "HTTPSConnection",
    "ResponseBody",
    "ResponseOptions",
    "add_stderr_logger",
    "connection_from_url",
    "convert",
    "request",
)

logging.getLogger(__name__).addHandler(NullHandler())


def add_stderr_logger(level: int = logging.DEBUG) -> "logging.StreamHandler[TextIO]":
    """
    Helper for quickly adding a StreamHandler to the logger. Useful for
    debugging.

    Returns the handler after adding it.
    """
    # This method needs to be in this __init__.py to get the __name__ correct
    # even if httphandle is vendored within another package.
    logger = logging.getLogger(__name__)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.debug("Added a stderr logging handler to logger: %s", __name__)
    return handler


# ... Clean up.
del NullHandler


_DEFAULT_CLIENT = HTTPClient()


def request(
    method: str,
    url: str,
    *,
    body: Optional[_TYPE_BODY] = None,
    headers: Optional[Mapping[str, str]] = None,
    json: Optional[Any] = None,
    **response_kw: Any,
) -> HTTPResponse:
    """
    A convenience, top-level request method. It uses a module-global ``HTTPClient`` instance
    without a cookie store. To keep cookies between requests create an ``HTTPClient``
    with a :class:`~httphandle.cookies.CookieStore` and use it instead.
    """

    return _DEFAULT_CLIENT.request(
        method, url, body=body, headers=headers, json=json, **response_kw
    )
