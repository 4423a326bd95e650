from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from registry_migrator.apm.models import ApmVersionState
from registry_migrator.migration.versioning import VersionChangeClass

SkipReason = Literal["duplicate", "no_versions"]


@dataclass(frozen=True, slots=True)
class PublishVersion:
    version: str
    version_change_class: VersionChangeClass
    content_uris: list[str]
    source_apm_version: ApmVersionState


@dataclass(frozen=True, slots=True)
class PackageToPublishData:
    repo_name: str
    flags: int
    # Oldest first: the first version creates the repo
    versions: list[PublishVersion]


@dataclass(frozen=True, slots=True)
class SkippedPackage:
    name: str
    repo_address: str
    reason: SkipReason


@dataclass(slots=True)
class MigrationPlan:
    namespace: str
    source_registry: str
    target_registry: str
    flag_layout: str
    packages: list[PackageToPublishData] = field(default_factory=list)
    skipped: list[SkippedPackage] = field(default_factory=list)
