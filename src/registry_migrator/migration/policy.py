from __future__ import annotations

from typing import Mapping

from registry_migrator.config.models import ContentUriTransform, FlagLayout, MigrationPolicy, VersionTransform
from registry_migrator.apm.models import Manifest
from registry_migrator.migration.versioning import normalize_version

LEGACY_CONTENT_PREFIX = "/ipfs/"
CANONICAL_CONTENT_PREFIX = "ipfs://"

# Bit position of each package status flag, by registry contract generation
FLAG_BITS: Mapping[FlagLayout, Mapping[str, int]] = {
    "visible_active_validated_banned": {"visible": 0, "active": 1, "validated": 2, "banned": 3},
    "active_validated_banned": {"active": 0, "validated": 1, "banned": 2},
}


def describe_flags(value: int, layout: FlagLayout) -> list[str]:
    return [name for name, bit in sorted(FLAG_BITS[layout].items(), key=lambda item: item[1]) if value & (1 << bit)]


def validate_flags(value: int, layout: FlagLayout) -> int:
    width = len(FLAG_BITS[layout])
    if value < 0 or value >= (1 << width):
        raise ValueError(f"Flags value {value:#b} does not fit the {width}-bit layout {layout}")
    return value


def resolve_flags(policy: MigrationPolicy, package_name: str) -> int:
    if package_name in policy.flag_overrides:
        flags = policy.flag_overrides[package_name]
    elif policy.default_flags is not None:
        flags = policy.default_flags
    else:
        raise ValueError(f"No flags defined for package {package_name!r} in namespace {policy.namespace!r}")
    return validate_flags(flags, policy.flag_layout)


def transform_version(version: str, manifest: Manifest | None, mode: VersionTransform) -> str:
    if mode == "keep":
        return version
    if mode == "upstream_version":
        if manifest is None:
            raise ValueError("The upstream_version transform needs a resolved manifest")
        if manifest.upstream_version:
            return normalize_version(manifest.upstream_version)
        return manifest.version
    raise ValueError(f"Unknown version transform: {mode}")


def transform_content_uri(content_uri: str, mode: ContentUriTransform) -> str:
    if mode == "keep":
        return content_uri
    if mode == "ipfs_scheme":
        if not content_uri.startswith(LEGACY_CONTENT_PREFIX):
            raise ValueError(f"Content URI does not start with {LEGACY_CONTENT_PREFIX}: {content_uri!r}")
        return CANONICAL_CONTENT_PREFIX + content_uri[len(LEGACY_CONTENT_PREFIX) :]
    raise ValueError(f"Unknown content URI transform: {mode}")
