"""Small collection helpers and a request-scoped context with a user id."""

from __future__ import annotations

import hashlib
from functools import cmp_to_key
from typing import Any, Callable, Hashable, Iterable, Mapping, TypeVar

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")
D = TypeVar("D")

CONTEXT_USER_ID_KEY = "user_id:context"


class Context:
    """An immutable chain of key/value pairs, looked up from child to parent."""

    def __init__(self, parent: Context | None = None) -> None:
        self._parent = parent
        self._entry: tuple[Any, Any] | None = None

    def with_value(self, key: Any, value: Any) -> Context:
        """Return a child context that carries ``key`` bound to ``value``."""
        child = Context(self)
        child._entry = (key, value)
        return child

    def value(self, key: Any) -> Any:
        """Return the value bound to ``key`` in this context or an ancestor."""
        ctx: Context | None = self
        while ctx is not None:
            found, value = ctx._lookup(key)
            if found:
                return value
            ctx = ctx._parent
        return None

    def _lookup(self, key: Any) -> tuple[bool, Any]:
        if self._entry is not None and self._entry[0] == key:
            return True, self._entry[1]
        return False, None


class RequestContext(Context):
    """A context for one request, with a mutable store of keys."""

    def __init__(self, parent: Context | None = None) -> None:
        super().__init__(parent)
        self._keys: dict[Any, Any] = {}

    def set(self, key: Any, value: Any) -> None:
        self._keys[key] = value

    def get(self, key: Any, default: Any = None) -> Any:
        return self._keys.get(key, default)

    def _lookup(self, key: Any) -> tuple[bool, Any]:
        if key in self._keys:
            return True, self._keys[key]
        return super()._lookup(key)


def map_to_list(mapping: Mapping[K, T], func: Callable[[K, T], D]) -> list[D]:
    return [func(k, v) for k, v in mapping.items()]


def map_keys(mapping: Mapping[K, T]) -> list[K]:
    return list(mapping)


def map_values(mapping: Mapping[K, T]) -> list[T]:
    return list(mapping.values())


def map_change(mapping: Mapping[K, T], func: Callable[[T], D]) -> dict[K, D]:
    return {k: func(v) for k, v in mapping.items()}


def md5_hex(text: str) -> str:
    """Hex MD5 digest of the UTF-8 encoding of ``text``."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def intersection(a: Iterable[T], b: Iterable[T]) -> list[T]:
    """Items of ``a`` (in order, duplicates kept) that also occur in ``b``."""
    members = set(b)
    return [x for x in a if x in members]


def slice_to_map(items: Iterable[T], key: Callable[[T], K]) -> dict[K, T]:
    return {key(item): item for item in items}


def slice_to_map_pairs(items: Iterable[T], pair: Callable[[T], tuple[K, D]]) -> dict[K, D]:
    return dict(pair(item) for item in items)


def group_by(items: Iterable[T], key: Callable[[T], K]) -> dict[K, list[T]]:
    groups: dict[K, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def group_pairs(items: Iterable[T], pair: Callable[[T], tuple[K, D]]) -> dict[K, list[D]]:
    groups: dict[K, list[D]] = {}
    for item in items:
        k, v = pair(item)
        groups.setdefault(k, []).append(v)
    return groups


def slice_to_slice(
    items: Iterable[T],
    func: Callable[[T], D],
    predicate: Callable[[T], bool] | None = None,
) -> list[D]:
    """Map ``func`` over ``items``, keeping only those ``predicate`` accepts."""
    if predicate is None:
        return [func(item) for item in items]
    return [func(item) for item in items if predicate(item)]


def slice_merge(lists: Iterable[Iterable[T]]) -> list[T]:
    return [item for part in lists for item in part]


def copy_map(mapping: Mapping[K, T]) -> dict[K, T]:
    return dict(mapping)


def sort_by(items: list[T], less: Callable[[T, T], bool]) -> None:
    """Sort ``items`` in place using a ``less(a, b)`` predicate."""

    def compare(a: T, b: T) -> int:
        if less(a, b):
            return -1
        if less(b, a):
            return 1
        return 0

    items.sort(key=cmp_to_key(compare))


def user_id(ctx: Context) -> str:
    """Return the user id carried by ``ctx``, or an empty string."""
    if isinstance(ctx, RequestContext):
        value = ctx.get(CONTEXT_USER_ID_KEY, "")
        return value if isinstance(value, str) else ""
    value = ctx.value(CONTEXT_USER_ID_KEY)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"user id in context is not a string: {value!r}")
    return value


def set_user_id(ctx: Context, user_id: str) -> Context:
    """Attach ``user_id`` to ``ctx``; request contexts are updated in place."""
    if isinstance(ctx, RequestContext):
        ctx.set(CONTEXT_USER_ID_KEY, user_id)
        return ctx
    return ctx.with_value(CONTEXT_USER_ID_KEY, user_id)