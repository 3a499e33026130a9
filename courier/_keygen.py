from __future__ import annotations

import typing as tp

from ._headers import Headers
from ._models import Request
from ._policies import CachePolicy
from ._utils import freeze

__all__ = ("cache_key", "select")


def _lookup(container: tp.Any, name: str) -> tp.Any:
    if container is None:
        return None
    if isinstance(container, Headers):
        return container.get(name)
    if isinstance(container, tp.Mapping):
        return container.get(name)
    if isinstance(container, (list, tuple)):
        for item in container:
            if isinstance(item, (list, tuple)) and len(item) == 2 and item[0] == name:
                return item[1]
    return None


def select(request: Request, selector: tp.Union[str, tp.Tuple[str, str]]) -> tp.Hashable:
    """
    Resolve one key selector against a request.

    A plain field name takes the whole field, a ``(field, name)`` pair looks
    ``name`` up inside the field (header names are case-insensitive).
    """
    if isinstance(selector, tuple):
        field_name, name = selector
        return freeze(_lookup(getattr(request, field_name), name))
    return freeze(getattr(request, selector))


def cache_key(request: Request, policy: CachePolicy) -> tp.Any:
    """
    Derive the cache key of a request under a policy.

    Keys compare by structure: requests that agree on every selected field
    get equal keys, whatever their unselected fields hold.

    Examples:
        >>> policy = CachePolicy(ttl=5, keys=("url",), store={})
        >>> cache_key(Request(url="https://example.com/ip"), policy)
        'https://example.com/ip'
    """
    if callable(policy.keys):
        return policy.keys(request)
    keys = tp.cast(tp.Tuple[tp.Union[str, tp.Tuple[str, str]], ...], policy.keys)
    if len(keys) == 1 and isinstance(keys[0], str):
        return select(request, keys[0])
    return tuple(select(request, selector) for selector in keys)
