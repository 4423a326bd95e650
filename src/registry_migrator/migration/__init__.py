"""Planning of the re-publication of registry packages onto a new registry."""

from __future__ import annotations

from registry_migrator.migration.models import MigrationPlan, PackageToPublishData, PublishVersion, SkippedPackage
from registry_migrator.migration.planner import MigrationPlanner
from registry_migrator.migration.versioning import VersionChangeClass, compute_version_change

__all__ = [
    "MigrationPlan",
    "MigrationPlanner",
    "PackageToPublishData",
    "PublishVersion",
    "SkippedPackage",
    "VersionChangeClass",
    "compute_version_change",
]
