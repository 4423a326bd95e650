from __future__ import annotations

import functools
import logging
import math
from typing import Any, Awaitable, Callable, Optional, TypeVar

from registry_migrator.cache.store import CacheStore, escape_cache_key
from registry_migrator.core.utils import epoch_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")

INFINITE_TTL_MS = math.inf

HOUR_MS = 60 * 60 * 1000


def memoize(
    fn: Callable[..., Awaitable[T]],
    *,
    to_id: Callable[..., str],
    ttl_ms: float,
    store: CacheStore,
    clock: Optional[Callable[[], int]] = None,
) -> Callable[..., Awaitable[T]]:
    """
    Wrap an async fetch so its JSON result is persisted in `store`.

    `to_id` receives the same arguments as `fn` and must derive a collision-free id.
    An entry is served while `now - written_at_ms < ttl_ms`; use INFINITE_TTL_MS only
    for immutable facts. Failures of `fn` propagate and are never stored.
    """
    if ttl_ms <= 0:
        raise ValueError(f"ttl_ms must be positive, got: {ttl_ms}")
    now_ms = clock or epoch_ms

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        cache_id = to_id(*args, **kwargs)
        key = escape_cache_key(cache_id)

        entry = store.read(key)
        if entry is not None and now_ms() - entry.written_at_ms < ttl_ms:
            logger.debug("cache.hit id=%s", cache_id)
            return entry.payload

        logger.debug("cache.miss id=%s", cache_id)
        result = await fn(*args, **kwargs)
        store.write(key, result, now_ms())
        return result

    return wrapper
