"""Reads of Aragon Package Manager repos and their release manifests."""

from __future__ import annotations

from registry_migrator.apm.manifest import MANIFEST_FILENAME, ManifestResolver
from registry_migrator.apm.models import ApmVersionState, Manifest
from registry_migrator.apm.version_state import VersionStateReader

__all__ = [
    "ApmVersionState",
    "MANIFEST_FILENAME",
    "Manifest",
    "ManifestResolver",
    "VersionStateReader",
]
