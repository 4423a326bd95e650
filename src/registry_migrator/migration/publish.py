from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from registry_migrator.migration.models import MigrationPlan

logger = logging.getLogger(__name__)


class RegistryPublisher(Protocol):
    async def new_package_with_version(
        self,
        name: str,
        dev_address: str,
        flags: int,
        version: str,
        content_uris: Sequence[str],
    ) -> str:
        """Create the repo with its first version and return the repo address."""
        ...

    async def new_version(self, repo_address: str, version: str, content_uris: Sequence[str]) -> None:
        ...


async def publish_plan(plan: MigrationPlan, publisher: RegistryPublisher, *, dev_address: str) -> int:
    """Issue the registry calls of `plan` in order and return how many were issued."""
    calls = 0
    for package in plan.packages:
        first, *rest = package.versions
        logger.info(
            "Publishing package. package=%s version=%s content_uris=%s",
            package.repo_name,
            first.version,
            first.content_uris,
        )
        repo_address = await publisher.new_package_with_version(
            package.repo_name,
            dev_address,
            package.flags,
            first.version,
            first.content_uris,
        )
        calls += 1
        for version in rest:
            logger.info("Publishing version. package=%s version=%s", package.repo_name, version.version)
            await publisher.new_version(repo_address, version.version, version.content_uris)
            calls += 1
    return calls


@dataclass(slots=True)
class DryRunPublisher:
    """Records the registry calls a live run would send, without sending them."""

    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)

    async def new_package_with_version(
        self,
        name: str,
        dev_address: str,
        flags: int,
        version: str,
        content_uris: Sequence[str],
    ) -> str:
        self.calls.append(("newPackageWithVersion", (name, dev_address, flags, version, list(content_uris))))
        repo_address = "0x" + hashlib.sha256(name.encode("utf-8")).hexdigest()[:40]
        logger.info("[dry-run] newPackageWithVersion name=%s flags=%#06b version=%s", name, flags, version)
        return repo_address

    async def new_version(self, repo_address: str, version: str, content_uris: Sequence[str]) -> None:
        self.calls.append(("newVersion", (repo_address, version, list(content_uris))))
        logger.info("[dry-run] newVersion repo=%s version=%s", repo_address, version)
