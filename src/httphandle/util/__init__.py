from .convert import convert
from .getter import GroupedDict, GroupedTypeGetter
from .response import (
    assert_header_parsing,
    get_charset,
    is_fp_closed,
    parse_content_type,
)

__all__ = (
    "GroupedDict",
    "GroupedTypeGetter",
    "assert_header_parsing",
    "convert",
    "get_charset",
    "is_fp_closed",
    "parse_content_type",
)
