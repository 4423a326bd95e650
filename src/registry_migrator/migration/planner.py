from __future__ import annotations

import logging
from typing import Sequence

from registry_migrator.apm.manifest import ManifestResolver
from registry_migrator.apm.models import ApmVersionState, Manifest
from registry_migrator.apm.version_state import VersionStateReader
from registry_migrator.config.models import MigrationPolicy
from registry_migrator.migration.models import (
    MigrationPlan,
    PackageToPublishData,
    PublishVersion,
    SkippedPackage,
)
from registry_migrator.migration.policy import resolve_flags, transform_content_uri, transform_version
from registry_migrator.migration.versioning import VersionChangeClass, compute_version_change
from registry_migrator.snapshot.store import RegistryPackageRecord

logger = logging.getLogger(__name__)


def _latest_index_by_name(records: Sequence[RegistryPackageRecord]) -> dict[str, int]:
    """Index of the record kept for each name: latest deploy, then latest position."""
    winners: dict[str, int] = {}
    for index, record in enumerate(records):
        current = winners.get(record.name)
        if current is None or record.deploy_timestamp_sec >= records[current].deploy_timestamp_sec:
            winners[record.name] = index
    return winners


class MigrationPlanner:
    """
    Builds the publish plan of one namespace from a registry snapshot.

    Packages are processed one at a time so logs and failures stay attributable
    to a single package. The planner holds no policy state; the policy is passed
    to each `plan` call.
    """

    def __init__(self, version_reader: VersionStateReader, manifest_resolver: ManifestResolver) -> None:
        self._version_reader = version_reader
        self._manifest_resolver = manifest_resolver

    async def plan(self, policy: MigrationPolicy, records: Sequence[RegistryPackageRecord]) -> MigrationPlan:
        drop_set = set(policy.drop_list)
        candidates: list[RegistryPackageRecord] = []
        for record in records:
            if record.name in drop_set:
                logger.info("Ignoring drop-listed package. package=%s", record.name)
                continue
            candidates.append(record)

        # Configuration faults surface before any remote call
        for record in candidates:
            resolve_flags(policy, record.name)

        plan = MigrationPlan(
            namespace=policy.namespace,
            source_registry=policy.source_registry,
            target_registry=policy.target_registry,
            flag_layout=policy.flag_layout,
        )

        winners = _latest_index_by_name(candidates)
        for index, record in enumerate(candidates):
            if winners[record.name] != index:
                logger.warning(
                    "Skipping duplicate registry entry. package=%s repo=%s kept_repo=%s",
                    record.name,
                    record.repo_address,
                    candidates[winners[record.name]].repo_address,
                )
                plan.skipped.append(
                    SkippedPackage(name=record.name, repo_address=record.repo_address, reason="duplicate")
                )
                continue

            package = await self.plan_package(policy, record)
            if package is None:
                plan.skipped.append(
                    SkippedPackage(name=record.name, repo_address=record.repo_address, reason="no_versions")
                )
                continue
            plan.packages.append(package)

        logger.info(
            "Migration plan built. namespace=%s packages=%d skipped=%d",
            policy.namespace,
            len(plan.packages),
            len(plan.skipped),
        )
        return plan

    async def plan_package(
        self,
        policy: MigrationPolicy,
        record: RegistryPackageRecord,
    ) -> PackageToPublishData | None:
        versions = await self._version_reader.get_last_n_versions(record.repo_address, policy.versions_to_migrate)
        if not versions:
            logger.info("Package has no published version, skipping. package=%s repo=%s", record.name, record.repo_address)
            return None

        publish_versions = []
        for apm_version in versions:
            publish_versions.append(await self._plan_version(policy, record, apm_version))

        return PackageToPublishData(
            repo_name=record.name,
            flags=resolve_flags(policy, record.name),
            versions=publish_versions,
        )

    async def _plan_version(
        self,
        policy: MigrationPolicy,
        record: RegistryPackageRecord,
        apm_version: ApmVersionState,
    ) -> PublishVersion:
        manifest: Manifest | None = None
        if policy.needs_manifest:
            logger.info("Resolving manifest. package=%s pointer=%s", record.name, apm_version.content_uri)
            try:
                manifest = await self._manifest_resolver.resolve_manifest(apm_version.content_uri)
            except Exception as e:
                raise RuntimeError(
                    f"Manifest of package {record.name} (repo {record.repo_address}) "
                    f"could not be resolved at {apm_version.content_uri}: {e}"
                ) from e

        version = transform_version(apm_version.version, manifest, policy.version_transform)
        try:
            content_uri = transform_content_uri(apm_version.content_uri, policy.content_uri_transform)
            change = compute_version_change(apm_version.version, version)
        except ValueError as e:
            raise ValueError(f"Package {record.name} (repo {record.repo_address}): {e}") from e

        if change == VersionChangeClass.INVALID_NEXT:
            logger.warning(
                "Transformed version is not a semantic version. package=%s original=%s transformed=%s",
                record.name,
                apm_version.version,
                version,
            )
        else:
            logger.info(
                "Planned version. package=%s version=%s change=%s content_uri=%s",
                record.name,
                version,
                change.value,
                content_uri,
            )

        return PublishVersion(
            version=version,
            version_change_class=change,
            content_uris=[content_uri],
            source_apm_version=apm_version,
        )
