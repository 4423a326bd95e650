from __future__ import annotations

import logging
from pathlib import Path

from registry_migrator.apm.models import encode_version_state
from registry_migrator.core.utils import atomic_write_text, dump_json
from registry_migrator.migration.models import MigrationPlan, PackageToPublishData, PublishVersion
from registry_migrator.migration.policy import describe_flags

logger = logging.getLogger(__name__)


def _encode_version(version: PublishVersion) -> dict:
    return {
        "version": version.version,
        "versionChangeClass": version.version_change_class.value,
        "contentURIs": list(version.content_uris),
        "sourceApmVersion": encode_version_state(version.source_apm_version),
    }


def _encode_package(package: PackageToPublishData, flag_layout: str) -> dict:
    return {
        "repoName": package.repo_name,
        "flags": package.flags,
        "flagNames": describe_flags(package.flags, flag_layout),  # type: ignore[arg-type]
        "versions": [_encode_version(version) for version in package.versions],
    }


def plan_to_dict(plan: MigrationPlan) -> dict:
    return {
        "namespace": plan.namespace,
        "sourceRegistry": plan.source_registry,
        "targetRegistry": plan.target_registry,
        "flagLayout": plan.flag_layout,
        "packages": [_encode_package(package, plan.flag_layout) for package in plan.packages],
        "skipped": [
            {"name": skipped.name, "repoAddress": skipped.repo_address, "reason": skipped.reason}
            for skipped in plan.skipped
        ],
    }


def plan_to_json(plan: MigrationPlan) -> str:
    return dump_json(plan_to_dict(plan))


def write_plan(path: Path, plan: MigrationPlan) -> Path:
    atomic_write_text(path, plan_to_json(plan))
    logger.info("Migration plan written. namespace=%s path=%s packages=%d", plan.namespace, path, len(plan.packages))
    return path
