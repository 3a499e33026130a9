from __future__ import annotations

import logging
import time
import typing as tp
import copy
from dataclasses import replace

from ._models import CacheEntry, Request, Response
from ._policies import CachePolicy

logger = logging.getLogger("courier.cache")

__all__ = ("is_valid", "lookup", "store", "response_from_cache")


def is_valid(policy: CachePolicy, entry: CacheEntry, now: tp.Optional[float] = None) -> bool:
    ttl = policy.ttl
    if ttl is None:
        return True
    if callable(ttl):
        return bool(ttl())
    now = time.time() if now is None else now
    return now - entry.created_at < ttl


def lookup(policy: CachePolicy, key: tp.Any) -> tp.Optional[CacheEntry]:
    """
    Find a live entry for ``key``.

    Expired entries are reported as a miss but left in the store; the next
    successful response for the key overwrites them.
    """
    entry = policy.store.get(key)
    if entry is None:
        logger.debug("Cache miss")
        return None
    if not is_valid(policy, entry):
        logger.debug("Cache entry expired")
        return None
    logger.debug("Cache hit")
    return entry


def store(policy: CachePolicy, key: tp.Any, response: Response) -> CacheEntry:
    entry = CacheEntry(key=key, value=response.detach(), created_at=time.time())
    policy.store.put(entry)
    logger.debug("Storing response in cache")
    return entry


def response_from_cache(entry: CacheEntry, request: Request) -> Response:
    """Fresh copy of a cached response, attached to the request that hit it."""
    value = entry.value
    return replace(
        value,
        headers=value.headers.copy(),
        data=copy.deepcopy(value.data),
        from_cache=True,
        request=request,
    )
