from __future__ import annotations

from typing import Optional, Protocol, Sequence

from registry_migrator.chain.models import Block, RawLog


class LogSource(Protocol):
    async def get_logs(
        self,
        address: str,
        from_block: int,
        to_block: int,
        topics: Sequence[str],
    ) -> list[RawLog]:
        """Return logs in the inclusive range [from_block, to_block], ordered by block and log index."""
        ...

    async def get_block(self, block_number: int) -> Block:
        ...

    async def resolve_name(self, name: str) -> Optional[str]:
        ...


class RepoContractSource(Protocol):
    async def get_versions_count(self, repo_address: str) -> int:
        ...

    async def get_by_version_id(self, repo_address: str, version_id: int) -> tuple[list[int], str, bytes]:
        """Return (semantic_version, contract_address, content_uri) of a 1-indexed version."""
        ...
