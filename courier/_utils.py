from __future__ import annotations

import hashlib
import typing as tp
from pathlib import Path

from ._headers import Headers

__all__ = ("freeze", "key_digest", "ensure_cache_dir")


def freeze(value: tp.Any) -> tp.Hashable:
    """
    Turn a key component into a hashable value with structural equality.

    Mappings become tuples of pairs sorted by their representation, so two
    dicts with the same items freeze to the same value whatever their
    insertion order. Headers keep their order since it is significant on
    the wire.

    Examples:
        >>> freeze({"b": [1, 2], "a": None})
        (('a', None), ('b', (1, 2)))
    """
    if isinstance(value, Headers):
        return tuple(value.multi_items())
    if isinstance(value, tp.Mapping):
        return tuple(sorted(((freeze(k), freeze(v)) for k, v in value.items()), key=repr))
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted((freeze(item) for item in value), key=repr))
    if isinstance(value, bytearray):
        return bytes(value)
    return tp.cast(tp.Hashable, value)


def key_digest(key: tp.Any) -> str:
    """Stable hex digest of a cache key, suitable as a file name."""
    return hashlib.sha256(repr(freeze(key)).encode("utf-8")).hexdigest()


def ensure_cache_dir(base_path: Path | None = None) -> Path:
    _base_path = base_path if base_path is not None else Path(".cache/courier")
    _gitignore_file = _base_path / ".gitignore"

    _base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by courier\n*")
    return _base_path
