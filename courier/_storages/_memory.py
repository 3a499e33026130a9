from __future__ import annotations

import logging
import threading
import typing as tp

from .._models import CacheEntry
from .._utils import freeze
from ._base import BaseStore

logger = logging.getLogger("courier.storages")

__all__ = ("InMemoryStore", "shared_store", "default_store")


class InMemoryStore(BaseStore):
    """
    A store backed by a mutable mapping.

    :param table: Mapping that receives the entries, defaults to a new dict.
        Passing the same mapping to several stores makes them share entries.
    :type table: tp.Optional[tp.MutableMapping[tp.Any, CacheEntry]], optional
    """

    def __init__(self, table: tp.Optional[tp.MutableMapping[tp.Any, CacheEntry]] = None) -> None:
        self.table: tp.MutableMapping[tp.Any, CacheEntry] = table if table is not None else {}
        self._lock = threading.Lock()

    def get(self, key: tp.Any) -> tp.Optional[CacheEntry]:
        with self._lock:
            return self.table.get(freeze(key))

    def put(self, entry: CacheEntry) -> None:
        with self._lock:
            self.table[freeze(entry.key)] = entry

    def remove(self, key: tp.Any) -> None:
        with self._lock:
            self.table.pop(freeze(key), None)

    def clear(self) -> None:
        with self._lock:
            self.table.clear()

    def __len__(self) -> int:
        return len(self.table)


_named_stores: tp.Dict[str, InMemoryStore] = {}
_named_stores_lock = threading.Lock()


def shared_store(name: str) -> InMemoryStore:
    """Return the process-wide in-memory store registered under ``name``, creating it on first use."""
    with _named_stores_lock:
        store = _named_stores.get(name)
        if store is None:
            logger.debug(f"Creating shared store {name!r}")
            store = _named_stores[name] = InMemoryStore()
        return store


def default_store() -> InMemoryStore:
    return shared_store("default")
