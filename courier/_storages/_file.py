from __future__ import annotations

import logging
import os
import tempfile
import threading
import typing as tp
from pathlib import Path

from .._models import CacheEntry
from .._serializers import BaseSerializer, PickleSerializer
from .._utils import ensure_cache_dir, key_digest
from ._base import BaseStore

logger = logging.getLogger("courier.storages")

__all__ = ("FileStore",)


class FileStore(BaseStore):
    """
    A store keeping one file per cache key.

    The file name is the SHA-256 digest of the key and the file holds the
    serialized entry, creation timestamp included, so the ttl does not
    depend on file modification times. There is no index: a file's
    existence is what signals presence.

    :param base_path: Directory that receives the files, defaults to ``.cache/courier``
    :type base_path: tp.Optional[tp.Union[str, os.PathLike[str]]], optional
    :param serializer: Serializer for the entries, defaults to ``PickleSerializer``
    :type serializer: tp.Optional[BaseSerializer], optional
    """

    def __init__(
        self,
        base_path: tp.Optional[tp.Union[str, "os.PathLike[str]"]] = None,
        serializer: tp.Optional[BaseSerializer] = None,
    ) -> None:
        self.base_path = ensure_cache_dir(Path(base_path) if base_path is not None else None)
        self._serializer = serializer if serializer is not None else PickleSerializer()
        self._lock = threading.Lock()

    def path_for(self, key: tp.Any) -> Path:
        return self.base_path / key_digest(key)

    def get(self, key: tp.Any) -> tp.Optional[CacheEntry]:
        path = self.path_for(key)
        with self._lock:
            try:
                with open(path, "rb") as f:
                    data = f.read()
            except FileNotFoundError:
                return None
        if not data:
            return None
        entry = self._serializer.loads(data)
        entry.key = key
        return entry

    def put(self, entry: CacheEntry) -> None:
        path = self.path_for(entry.key)
        data = self._serializer.dumps(entry)
        with self._lock:
            # Write next to the target and rename so readers never see a partial file.
            fd, tmp_path = tempfile.mkstemp(dir=self.base_path, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        logger.debug(f"Stored cache entry in {path.name}")

    def remove(self, key: tp.Any) -> None:
        path = self.path_for(key)
        with self._lock:
            if path.exists():
                path.unlink()

    def clear(self) -> None:
        with self._lock:
            with os.scandir(self.base_path) as entries:
                for entry in entries:
                    if entry.is_file() and not entry.name.startswith("."):
                        try:
                            os.unlink(entry.path)
                        except FileNotFoundError:  # pragma: no cover
                            pass
