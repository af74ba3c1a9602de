"""Cache key resolution, flattening and matching."""

import dataclasses
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from tiny_query.types import CacheKey

# A static base path, or a function of the query parameter producing the key
KeySpec = Sequence[str] | Callable[[Any], Sequence[str]]

_SEPARATOR = ":"
_FRAGMENT_SEPARATOR = "|"
_ESCAPE_MAP = {"\\": "\\\\", ":": "\\:"}


def _slot_names(cls: type) -> list[str]:
    names: list[str] = []
    for klass in cls.__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        names.extend(s for s in slots if s not in ("__dict__", "__weakref__"))
    return names


def param_fields(param: Any) -> Iterable[tuple[str, Any]] | None:
    """Own fields of a parameter value, or None for scalars."""
    if isinstance(param, Mapping):
        return param.items()
    if dataclasses.is_dataclass(param) and not isinstance(param, type):
        return ((f.name, getattr(param, f.name)) for f in dataclasses.fields(param))
    if hasattr(param, "__dict__"):
        return vars(param).items()
    # Unset slots are skipped
    slots = [name for name in _slot_names(type(param)) if hasattr(param, name)]
    if slots:
        return ((name, getattr(param, name)) for name in slots)
    return None


def key_fragment(param: Any) -> str:
    """Render a parameter value as one order-independent key segment.

    Example:
        key_fragment({"page": 2, "id": 7})  # "id:7|page:2"
        key_fragment({"id": 7, "page": 2})  # "id:7|page:2"
    """
    items = param_fields(param)
    if items is None:
        return str(param)
    return _FRAGMENT_SEPARATOR.join(
        sorted(f"{name}:{value}" for name, value in items)
    )


def resolve_key(base: KeySpec, param: Any = None) -> CacheKey:
    """Resolve the cache key for a base key and an optional parameter.

    A callable base owns the whole key. A static base is used as-is when
    ``param`` is None, otherwise one fragment segment is appended.
    """
    if callable(base):
        parts = base(param)
        if isinstance(parts, str) or not isinstance(parts, Sequence):
            raise TypeError(
                f"Key function must return a sequence of strings, got {parts!r}"
            )
        return CacheKey(tuple(str(part) for part in parts))

    if param is None:
        return CacheKey(tuple(base))
    return CacheKey((*base, key_fragment(param)))


def serialize_key(key: Sequence[str]) -> str:
    """Flatten a key to its storage address."""

    def escape(part: str) -> str:
        for char, escaped in _ESCAPE_MAP.items():
            part = part.replace(char, escaped)
        return part

    return _SEPARATOR.join(escape(str(part)) for part in key)


def deserialize_key(address: str) -> CacheKey:
    """Decode a storage address back into its key segments."""
    parts: list[str] = []
    current: list[str] = []
    chars = iter(address)

    for char in chars:
        if char == "\\":
            current.append(next(chars, "\\"))
        elif char == _SEPARATOR:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)

    parts.append("".join(current))
    return CacheKey(tuple(parts))


def is_key_prefix(prefix: Sequence[str], key: Sequence[str]) -> bool:
    """Check if prefix is a segment-wise prefix of key."""
    if len(prefix) > len(key):
        return False
    return tuple(key[: len(prefix)]) == tuple(prefix)


def key_matches(prefix: Sequence[str], key: Sequence[str], *, exact: bool) -> bool:
    """Match a stored key against an invalidation prefix."""
    if exact:
        return tuple(key) == tuple(prefix)
    return is_key_prefix(prefix, key)
