from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote

from registry_migrator.core.utils import atomic_write_json

logger = logging.getLogger(__name__)

CACHE_FILE_SUFFIX = ".json"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    id: str
    payload: Any
    written_at_ms: int


class CacheStore(Protocol):
    def read(self, key: str) -> Optional[CacheEntry]:
        ...

    def write(self, key: str, payload: Any, written_at_ms: int) -> None:
        ...


def escape_cache_key(cache_id: str) -> str:
    """
    Map a caller-derived id to a single safe path segment.

    Percent-encoding is injective, so two distinct ids never share a key, and the
    result never contains a path separator. A leading dot is encoded as well so
    the key can not be "." or "..".
    """
    if not cache_id:
        raise ValueError("Cache id must not be empty")
    key = quote(cache_id, safe="-_.")
    if key.startswith("."):
        key = "%2E" + key[1:]
    return key


class InMemoryCacheStore:
    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}

    def read(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        # Hand out a fresh copy, as a disk round trip would.
        return CacheEntry(id=entry.id, payload=json.loads(json.dumps(entry.payload)), written_at_ms=entry.written_at_ms)

    def write(self, key: str, payload: Any, written_at_ms: int) -> None:
        self._entries[key] = CacheEntry(id=key, payload=json.loads(json.dumps(payload)), written_at_ms=written_at_ms)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


class FileSystemCacheStore:
    """One pretty-printed JSON file per key; the file mtime is the freshness clock."""

    def __init__(self, root_dir: str | Path) -> None:
        self._root_dir = Path(root_dir)

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    def path_for(self, key: str) -> Path:
        return self._root_dir / f"{key}{CACHE_FILE_SUFFIX}"

    def read(self, key: str) -> Optional[CacheEntry]:
        path = self.path_for(key)
        try:
            with path.open("rb") as f:
                stat = os.fstat(f.fileno())
                raw = f.read()
        except FileNotFoundError:
            return None

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Corrupt cache entry, treating as a miss. path=%s", path)
            return None

        return CacheEntry(id=key, payload=payload, written_at_ms=stat.st_mtime_ns // 1_000_000)

    def write(self, key: str, payload: Any, written_at_ms: int) -> None:
        path = self.path_for(key)
        # The file clock follows the caller clock, not the wall clock of the write.
        atomic_write_json(path, payload, mtime_sec=written_at_ms / 1000)
