from __future__ import annotations

import datetime
import os
import typing as tp
from dataclasses import dataclass, field

from typing_extensions import TypeAlias

from ._storages import BaseStore, FileStore, InMemoryStore, default_store, shared_store

if tp.TYPE_CHECKING:  # pragma: no cover
    from ._models import Request

__all__ = ("CachePolicy", "normalize_cache_spec", "resolve_store", "KEY_FIELDS", "DEFAULT_KEYS")

KEY_FIELDS = ("url", "method", "params", "headers", "data")
FIELD_ALIASES = {"body": "data"}
DEFAULT_KEYS: tp.Tuple[str, ...] = ("url", "method", "headers", "data")

Selector: TypeAlias = tp.Union[str, tp.Tuple[str, str]]
KeyFunction: TypeAlias = tp.Callable[["Request"], tp.Any]
Ttl: TypeAlias = tp.Union[None, float, tp.Callable[[], bool]]


def _normalize_selector(selector: tp.Any) -> Selector:
    if isinstance(selector, str):
        name = FIELD_ALIASES.get(selector, selector)
        if name not in KEY_FIELDS:
            raise ValueError(f"Unknown cache key field: {selector!r}")
        return name
    if isinstance(selector, tuple) and len(selector) == 2 and isinstance(selector[0], str):
        name = FIELD_ALIASES.get(selector[0], selector[0])
        if name not in KEY_FIELDS:
            raise ValueError(f"Unknown cache key field: {selector[0]!r}")
        return (name, selector[1])
    raise ValueError(f"Invalid cache key selector: {selector!r}")


def _normalize_ttl(ttl: tp.Any) -> Ttl:
    if ttl is None or callable(ttl):
        return tp.cast(Ttl, ttl)
    if isinstance(ttl, datetime.timedelta):
        return ttl.total_seconds()
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        raise TypeError(f"Invalid cache ttl: {ttl!r}")
    return float(ttl)


def resolve_store(store: tp.Any) -> BaseStore:
    """
    Turn a store handle into a store.

    ``None`` is the process-wide default table, a string names a shared
    table, a mapping is wrapped (and shared by reference), a path is a
    directory for a ``FileStore``.
    """
    if store is None:
        return default_store()
    if isinstance(store, BaseStore):
        return store
    if isinstance(store, str):
        return shared_store(store)
    if isinstance(store, os.PathLike):
        return FileStore(store)
    if isinstance(store, tp.MutableMapping):
        return InMemoryStore(store)
    raise TypeError(f"Invalid cache store: {store!r}")


def _is_store_handle(value: tp.Any) -> bool:
    return isinstance(value, (BaseStore, os.PathLike, tp.MutableMapping))


@dataclass(frozen=True)
class CachePolicy:
    """
    How responses of a request are cached.

    Args:
        ttl: Seconds (or a ``timedelta``) an entry stays valid, a
            zero-argument predicate telling whether entries are still valid,
            or ``None`` for entries that never expire.
        keys: Ordered key selectors, or a function mapping a request to its
            key. A selector is a field name (``url``, ``method``, ``params``,
            ``headers``, ``data``) or a ``(field, name)`` pair selecting a
            single header, param or body entry.
        store: A store or store handle, see ``resolve_store``.
    """

    ttl: Ttl = None
    keys: tp.Union[tp.Tuple[Selector, ...], KeyFunction] = DEFAULT_KEYS
    store: tp.Any = field(default_factory=default_store)

    def __post_init__(self) -> None:
        object.__setattr__(self, "ttl", _normalize_ttl(self.ttl))
        if not callable(self.keys):
            keys = (self.keys,) if isinstance(self.keys, str) else tuple(self.keys)
            object.__setattr__(self, "keys", tuple(_normalize_selector(selector) for selector in keys))
        object.__setattr__(self, "store", resolve_store(self.store))


def normalize_cache_spec(spec: tp.Any) -> tp.Optional[CachePolicy]:
    """
    Normalize every accepted cache spec form into a ``CachePolicy``.

    Accepted forms:
        - ``None`` or ``False``: no caching
        - ``CachePolicy``: used as-is
        - a number or ``timedelta``: ttl only, default keys and store
        - a dict with ``ttl``, ``keys`` and ``store`` entries
        - a tuple ``(ttl, *selectors)`` optionally ending with a store
          (a ``BaseStore``, a mapping or a path); a callable in place of the
          selectors is the key function
    """
    if spec is None or spec is False:
        return None
    if isinstance(spec, CachePolicy):
        return spec
    if isinstance(spec, (int, float, datetime.timedelta)) and not isinstance(spec, bool):
        return CachePolicy(ttl=spec)
    if isinstance(spec, tp.Mapping):
        unknown = set(spec) - {"ttl", "keys", "store"}
        if unknown:
            raise ValueError(f"Unknown cache policy options: {', '.join(sorted(unknown))}")
        return CachePolicy(
            ttl=spec.get("ttl"),
            keys=spec.get("keys", DEFAULT_KEYS),
            store=spec.get("store"),
        )
    if isinstance(spec, tuple) and spec:
        ttl, *rest = spec
        store = None
        if rest and _is_store_handle(rest[-1]):
            store = rest.pop()
        keys: tp.Any
        if len(rest) == 1 and callable(rest[0]):
            keys = rest[0]
        else:
            keys = tuple(rest) if rest else DEFAULT_KEYS
        return CachePolicy(ttl=ttl, keys=keys, store=store)
    raise TypeError(f"Invalid cache spec: {spec!r}")
