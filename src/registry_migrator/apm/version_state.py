from __future__ import annotations

import logging
from typing import Callable, Optional

from registry_migrator.apm.models import ApmVersionState, decode_version_state, encode_version_state
from registry_migrator.cache import HOUR_MS, INFINITE_TTL_MS, CacheStore, memoize
from registry_migrator.chain.interfaces import RepoContractSource

logger = logging.getLogger(__name__)


class VersionStateReader:
    """
    Cached reads of APM repo versions.

    Version counts grow when a repo publishes and are cached with a finite TTL.
    A given version id never changes once published, so it is cached forever.
    """

    def __init__(
        self,
        repo_source: RepoContractSource,
        store: CacheStore,
        *,
        version_count_ttl_ms: float = HOUR_MS,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._repo_source = repo_source
        self._get_version_count = memoize(
            self._fetch_version_count,
            to_id=lambda repo_address: f"version-count-{repo_address}",
            ttl_ms=version_count_ttl_ms,
            store=store,
            clock=clock,
        )
        self._get_version_by_id = memoize(
            self._fetch_version_by_id,
            to_id=lambda repo_address, version_id: f"version-{repo_address}-{version_id}",
            ttl_ms=INFINITE_TTL_MS,
            store=store,
            clock=clock,
        )

    async def _fetch_version_count(self, repo_address: str) -> int:
        return int(await self._repo_source.get_versions_count(repo_address))

    async def _fetch_version_by_id(self, repo_address: str, version_id: int) -> dict:
        semantic_version, _contract_address, content_uri = await self._repo_source.get_by_version_id(
            repo_address, version_id
        )
        if not isinstance(semantic_version, (list, tuple)):
            raise ValueError(f"Repo {repo_address} version {version_id}: semanticVersion must be an array")
        return encode_version_state(
            ApmVersionState(
                version=".".join(str(part) for part in semantic_version),
                # Undecodable bytes are kept as replacement characters for downstream checks
                content_uri=bytes(content_uri).decode("utf-8", errors="replace"),
            )
        )

    async def get_version_count(self, repo_address: str) -> int:
        return int(await self._get_version_count(repo_address))

    async def get_version_by_id(self, repo_address: str, version_id: int) -> ApmVersionState:
        """Return a 1-indexed version; ids outside [1, count] fail in the contract call."""
        return decode_version_state(await self._get_version_by_id(repo_address, version_id))

    async def get_last_n_versions(self, repo_address: str, n: int) -> list[ApmVersionState]:
        if n < 1:
            raise ValueError(f"n must be at least 1, got: {n}")
        count = await self.get_version_count(repo_address)
        if count == 0:
            return []

        first_id = max(count - n + 1, 1)
        versions = []
        for version_id in range(first_id, count + 1):
            versions.append(await self.get_version_by_id(repo_address, version_id))
        logger.debug("Read repo versions. repo=%s count=%s returned=%d", repo_address, count, len(versions))
        return versions
