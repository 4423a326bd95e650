from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True, slots=True)
class ApmVersionState:
    version: str
    content_uri: str


@dataclass(frozen=True, slots=True)
class Manifest:
    version: str
    upstream_version: Optional[str] = None
    dependencies: Optional[Dict[str, Any]] = None


def encode_version_state(state: ApmVersionState) -> dict:
    return {"version": state.version, "contentUri": state.content_uri}


def decode_version_state(payload: dict) -> ApmVersionState:
    return ApmVersionState(version=payload["version"], content_uri=payload["contentUri"])


def decode_manifest(payload: Any, *, pointer: str) -> Manifest:
    if not isinstance(payload, dict):
        raise ValueError(f"Manifest at {pointer} is not a JSON object")
    version = payload.get("version")
    if not isinstance(version, str) or not version.strip():
        raise ValueError(f"Manifest at {pointer} has no version")

    upstream_version = payload.get("upstreamVersion")
    if not isinstance(upstream_version, str) or not upstream_version.strip():
        upstream_version = None

    dependencies = payload.get("dependencies")
    if not isinstance(dependencies, dict):
        dependencies = None

    return Manifest(version=version, upstream_version=upstream_version, dependencies=dependencies)
