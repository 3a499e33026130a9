from __future__ import annotations

import abc
import typing as tp
from types import TracebackType

from .._models import CacheEntry

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self


class BaseStore(abc.ABC):
    """
    Keyed table of cache entries.

    Stores only persist and return entries; deciding whether an entry is
    still valid is left to the cache layer, so expired entries stay in place
    until they are overwritten or removed explicitly.
    """

    @abc.abstractmethod
    def get(self, key: tp.Any) -> tp.Optional[CacheEntry]:
        raise NotImplementedError()

    @abc.abstractmethod
    def put(self, entry: CacheEntry) -> None:
        raise NotImplementedError()

    @abc.abstractmethod
    def remove(self, key: tp.Any) -> None:
        raise NotImplementedError()

    @abc.abstractmethod
    def clear(self) -> None:
        raise NotImplementedError()

    def close(self) -> None:
        pass

    def __enter__(self) -> "Self":
        return self

    def __exit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[TracebackType] = None,
    ) -> None:
        self.close()
