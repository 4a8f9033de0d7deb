from typing import Any, Dict, NamedTuple

from .util.getter import GroupedTypeGetter


class ResponseOptions(NamedTuple):
    """
    How responses are built. Every field maps to the keyword argument of the
    same name on :class:`~httphandle.response.HTTPResponse`.

    >>> ResponseOptions()._replace(is_async=True).is_async
    True
    """

    ignore_eof_error: bool = False
    request_charset: str = "utf-8"
    is_async: bool = False
    ignore_body: bool = False
    decode_content: bool = True

    @classmethod
    def from_getter(
        cls, getter: "GroupedTypeGetter[str, str]", group: str = "response"
    ) -> "ResponseOptions":
        """
        Read options from ``group`` of a
        :class:`~httphandle.util.getter.GroupedTypeGetter`. Missing or
        unconvertible values keep their defaults.
        """
        defaults = cls()
        return cls(
            ignore_eof_error=getter.get_bool_by_group(  # type: ignore[arg-type]
                "ignore_eof_error", group, defaults.ignore_eof_error
            ),
            request_charset=getter.get_str_by_group(  # type: ignore[arg-type]
                "request_charset", group, defaults.request_charset
            ),
            is_async=getter.get_bool_by_group(  # type: ignore[arg-type]
                "is_async", group, defaults.is_async
            ),
            ignore_body=getter.get_bool_by_group(  # type: ignore[arg-type]
                "ignore_body", group, defaults.ignore_body
            ),
            decode_content=getter.get_bool_by_group(  # type: ignore[arg-type]
                "decode_content", group, defaults.decode_content
            ),
        )

    def as_kwargs(self, **overrides: Any) -> Dict[str, Any]:
        kwargs = self._asdict()
        unknown = set(overrides) - set(kwargs)
        if unknown:
            raise TypeError(f"unexpected response options: {sorted(unknown)}")
        kwargs.update(overrides)
        return kwargs
