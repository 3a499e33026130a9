from __future__ import annotations

import pickle
import typing as tp

import msgpack

from ._headers import Headers
from ._models import CacheEntry, Response

__all__ = ("BaseSerializer", "PickleSerializer", "MsgpackSerializer")


class BaseSerializer:
    def dumps(self, entry: CacheEntry) -> bytes:
        raise NotImplementedError()

    def loads(self, data: bytes) -> CacheEntry:
        raise NotImplementedError()


class PickleSerializer(BaseSerializer):
    """
    A simple pickle-based serializer.

    Handles any decoded ``data`` value that pickle can handle, which makes it
    the default for file-backed stores.
    """

    def dumps(self, entry: CacheEntry) -> bytes:
        """
        Dumps the cache entry.

        :param entry: The entry to persist; its response is detached first
        :type entry: CacheEntry
        :return: Serialized entry
        :rtype: bytes
        """
        return pickle.dumps(CacheEntry(key=entry.key, value=entry.value.detach(), created_at=entry.created_at))

    def loads(self, data: bytes) -> CacheEntry:
        """
        Loads a cache entry from serialized data.

        :param data: Serialized data
        :type data: bytes
        :return: The stored entry
        :rtype: CacheEntry
        """
        return tp.cast(CacheEntry, pickle.loads(data))


class MsgpackSerializer(BaseSerializer):
    """
    A msgpack-based serializer.

    Portable across Python versions, but the decoded ``data`` must be made of
    msgpack-native values (``None``, booleans, numbers, ``str``, ``bytes``,
    lists and string-keyed dicts), which covers the default decoders.
    The cache key itself is not persisted: file names already encode it.
    """

    def dumps(self, entry: CacheEntry) -> bytes:
        response = entry.value
        return tp.cast(
            bytes,
            msgpack.packb(
                {
                    "created_at": entry.created_at,
                    "response": {
                        "status_code": response.status_code,
                        "reason_phrase": response.reason_phrase,
                        "headers": response.headers.multi_items(),
                        "content": response.content,
                        "http_version": response.http_version,
                        "url": response.url,
                        "data": response.data,
                    },
                },
                use_bin_type=True,
            ),
        )

    def loads(self, data: bytes) -> CacheEntry:
        unpacked = msgpack.unpackb(data, raw=False)
        response_data = unpacked["response"]
        response = Response(
            status_code=response_data["status_code"],
            reason_phrase=response_data["reason_phrase"],
            headers=Headers([tuple(item) for item in response_data["headers"]]),
            content=response_data["content"],
            http_version=response_data["http_version"],
            url=response_data["url"],
            data=response_data["data"],
        )
        return CacheEntry(key=None, value=response, created_at=unpacked["created_at"])
