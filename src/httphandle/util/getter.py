from typing import Any, Dict, Generic, Hashable, Mapping, Optional, Type, TypeVar

from .convert import convert

K = TypeVar("K", bound=Hashable)
G = TypeVar("G", bound=Hashable)
T = TypeVar("T")


class GroupedTypeGetter(Generic[K, G]):
    """
    Typed access to values stored under a ``(group, key)`` pair.

    Subclasses implement :meth:`get_obj_by_group`; every typed getter goes
    through :func:`~httphandle.util.convert.convert` so that a stored ``"8"``
    reads back as ``8`` and an unconvertible value yields the default.
    """

    def get_obj_by_group(self, key: K, group: G, default: Any = None) -> Any:
        raise NotImplementedError()

    def get_by_group(
        self, key: K, group: G, target_type: Type[T], default: Optional[T] = None
    ) -> Optional[T]:
        return convert(target_type, self.get_obj_by_group(key, group), default)

    def get_str_by_group(
        self, key: K, group: G, default: Optional[str] = None
    ) -> Optional[str]:
        return self.get_by_group(key, group, str, default)

    def get_int_by_group(
        self, key: K, group: G, default: Optional[int] = None
    ) -> Optional[int]:
        return self.get_by_group(key, group, int, default)

    def get_float_by_group(
        self, key: K, group: G, default: Optional[float] = None
    ) -> Optional[float]:
        return self.get_by_group(key, group, float, default)

    def get_bool_by_group(
        self, key: K, group: G, default: Optional[bool] = None
    ) -> Optional[bool]:
        return self.get_by_group(key, group, bool, default)


class GroupedDict(GroupedTypeGetter[str, str]):
    """
    A :class:`GroupedTypeGetter` over a ``{group: {key: value}}`` mapping, such
    as the sections of a :class:`configparser.ConfigParser`.

    >>> settings = GroupedDict({"response": {"is_async": "yes"}})
    >>> settings.get_bool_by_group("is_async", "response")
    True
    """

    def __init__(self, groups: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._groups: Dict[str, Dict[str, Any]] = {}
        for group, values in (groups or {}).items():
            self._groups[group] = dict(values)

    def get_obj_by_group(self, key: str, group: str, default: Any = None) -> Any:
        return self._groups.get(group, {}).get(key, default)

    def set(self, key: str, group: str, value: Any) -> None:
        self._groups.setdefault(group, {})[key] = value

    def groups(self) -> Dict[str, Dict[str, Any]]:
        return {group: dict(values) for group, values in self._groups.items()}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._groups!r})"
