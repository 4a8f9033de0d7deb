from typing import Any, Optional, Type, TypeVar, Union, overload

T = TypeVar("T")

_TRUE_VALUES = frozenset(("true", "yes", "y", "on", "1"))
_FALSE_VALUES = frozenset(("false", "no", "n", "off", "0", ""))


def to_bytes(
    x: Union[str, bytes], encoding: Optional[str] = None, errors: Optional[str] = None
) -> bytes:
    if isinstance(x, bytes):
        return x
    elif not isinstance(x, str):
        raise TypeError(f"not expecting type {type(x).__name__}")
    if encoding or errors:
        return x.encode(encoding or "utf-8", errors=errors or "strict")
    return x.encode()


def to_str(
    x: Union[str, bytes], encoding: Optional[str] = None, errors: Optional[str] = None
) -> str:
    if isinstance(x, str):
        return x
    elif not isinstance(x, bytes):
        raise TypeError(f"not expecting type {type(x).__name__}")
    if encoding or errors:
        return x.decode(encoding or "utf-8", errors=errors or "strict")
    return x.decode()


def _to_bool(value: Any) -> bool:
    if isinstance(value, (bytes, str)):
        text = to_str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ValueError(f"ambiguous boolean {value!r}")
    if isinstance(value, (int, float)):
        return bool(value)
    raise TypeError(f"not expecting type {type(value).__name__}")


def _to_int(value: Any) -> int:
    if isinstance(value, float):
        # 1.5 has no integer value; refuse rather than truncate.
        if not value.is_integer():
            raise ValueError(f"{value!r} is not integral")
        return int(value)
    if isinstance(value, (bytes, str)):
        return int(to_str(value).strip(), 10)
    return int(value)


def _to_sequence(value: Any) -> list:  # type: ignore[type-arg]
    if isinstance(value, (bytes, str)):
        text = to_str(value)
        if not text.strip():
            return []
        return [part.strip() for part in text.split(",")]
    return list(value)


@overload
def convert(target_type: Type[T], value: Any) -> Optional[T]:
    ...


@overload
def convert(target_type: Type[T], value: Any, default: T) -> T:
    ...


def convert(target_type: Type[Any], value: Any, default: Any = None) -> Any:
    """
    Coerce ``value`` to ``target_type``, returning ``default`` when ``value``
    is ``None`` or cannot be converted unambiguously.

    >>> convert(int, " 42 ")
    42
    >>> convert(bool, "yes")
    True
    >>> convert(int, "forty-two", 0)
    0
    >>> convert(list, "a, b")
    ['a', 'b']
    """
    if value is None:
        return default

    # bool is a subclass of int; an int target never accepts a bool as is.
    if type(value) is target_type:
        return value

    try:
        if target_type is bool:
            return _to_bool(value)
        if target_type is int:
            if isinstance(value, bool):
                return int(value)
            return _to_int(value)
        if target_type is float:
            return float(to_str(value) if isinstance(value, bytes) else value)
        if target_type is str:
            return to_str(value) if isinstance(value, bytes) else str(value)
        if target_type is bytes:
            if isinstance(value, (bytearray, memoryview)):
                return bytes(value)
            return to_bytes(value)
        if target_type in (list, tuple, set, frozenset):
            return target_type(_to_sequence(value))
        if isinstance(value, target_type):
            return value
        return target_type(value)
    except (TypeError, ValueError, UnicodeError, OverflowError):
        return default
