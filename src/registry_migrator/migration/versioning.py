"""Semantic version parsing and classification of version changes."""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

# MAJOR.MINOR.PATCH[-prerelease][+build], see https://semver.org/
SEMVER_PATTERN = re.compile(
    r"^(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_LEADING_V_PATTERN = re.compile(r"^v(?=\d)")


class VersionChangeClass(str, Enum):
    BUMP_MAJOR = "BUMP_MAJOR"
    BUMP_MINOR = "BUMP_MINOR"
    BUMP_PATCH = "BUMP_PATCH"
    REGRESSION_MAJOR = "REGRESSION_MAJOR"
    REGRESSION_MINOR = "REGRESSION_MINOR"
    REGRESSION_PATCH = "REGRESSION_PATCH"
    SAME = "SAME"
    INVALID_NEXT = "INVALID_NEXT"


def parse_semver(value: str) -> Optional[tuple[int, int, int]]:
    """Return (major, minor, patch) or None when `value` is not a semantic version."""
    match = SEMVER_PATTERN.match(value.strip())
    if not match:
        return None
    return int(match["major"]), int(match["minor"]), int(match["patch"])


def normalize_version(value: str) -> str:
    """Strip a leading `v` when it precedes a digit: "v1.2.3" -> "1.2.3"."""
    return _LEADING_V_PATTERN.sub("", value.strip(), count=1)


def compute_version_change(prev_version: str, next_version: str) -> VersionChangeClass:
    prev_parts = parse_semver(prev_version)
    if prev_parts is None:
        raise ValueError(f"Invalid semantic version: {prev_version!r}")
    next_parts = parse_semver(next_version)
    if next_parts is None:
        return VersionChangeClass.INVALID_NEXT

    for level, (prev_part, next_part) in zip(("MAJOR", "MINOR", "PATCH"), zip(prev_parts, next_parts)):
        if next_part > prev_part:
            return VersionChangeClass[f"BUMP_{level}"]
        if next_part < prev_part:
            return VersionChangeClass[f"REGRESSION_{level}"]
    return VersionChangeClass.SAME
