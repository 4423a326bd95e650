"""Disk-backed memoization of remote fetches."""

from __future__ import annotations

from registry_migrator.cache.memoize import HOUR_MS, INFINITE_TTL_MS, memoize
from registry_migrator.cache.store import (
    CacheEntry,
    CacheStore,
    FileSystemCacheStore,
    InMemoryCacheStore,
    escape_cache_key,
)

__all__ = [
    "CacheEntry",
    "CacheStore",
    "FileSystemCacheStore",
    "HOUR_MS",
    "INFINITE_TTL_MS",
    "InMemoryCacheStore",
    "escape_cache_key",
    "memoize",
]
