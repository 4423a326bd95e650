"""
Configuration loading.

A YAML document is the base layer. `APP__SECTION__KEY=value` variables, read
from an optional `.env` file and then from the process environment (which wins),
replace values that already exist in the document. Pydantic coerces and
validates the merged result.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional, Sequence

import yaml
from dotenv import dotenv_values

from registry_migrator.config.models import AppConfig, ConfigLoadRequest

logger = logging.getLogger(__name__)


def _read_yaml_document(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path} (see examples/config.yaml)")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level YAML must be a mapping, got: {type(data).__name__}")
    return data


def collect_overrides(
    env_prefix: str,
    environ: Mapping[str, str],
    dotenv_path: Optional[Path] = None,
) -> dict[str, str]:
    """Prefixed variables from `.env` and `environ`; `environ` takes precedence."""
    merged: dict[str, str] = {}
    if dotenv_path is not None and dotenv_path.is_file():
        merged.update({name: value for name, value in dotenv_values(dotenv_path).items() if value is not None})
    merged.update(environ)
    return {name: value for name, value in merged.items() if name.startswith(env_prefix)}


def apply_override(config: MutableMapping[str, Any], segments: Sequence[str], value: str) -> None:
    """Set an existing key; unknown paths are a configuration error."""
    if not segments:
        raise ValueError("Empty configuration override path")
    dotted_path = ".".join(segments)

    node: Any = config
    for depth, segment in enumerate(segments):
        if not isinstance(node, MutableMapping):
            raise TypeError(f"Configuration key path does not point to a mapping: {'.'.join(segments[:depth])}")
        if segment not in node:
            raise KeyError(f"Unknown configuration key path: {dotted_path}")
        if depth == len(segments) - 1:
            node[segment] = value
        else:
            node = node[segment]


def override_path(env_var_name: str, env_prefix: str) -> list[str]:
    """`APP__CACHE__DIR` -> ["cache", "dir"]."""
    return [part.lower() for part in env_var_name[len(env_prefix) :].split("__") if part]


class YamlConfigLoader:
    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    async def load(self, request: ConfigLoadRequest) -> AppConfig:
        config = _read_yaml_document(Path(request.yaml_path))

        environ = os.environ if self._environ is None else self._environ
        dotenv_path = Path(request.dotenv_path) if request.dotenv_path else None
        overrides = collect_overrides(request.env_prefix, environ, dotenv_path)
        for name, value in sorted(overrides.items()):
            apply_override(config, override_path(name, request.env_prefix), value)
        if overrides:
            logger.debug("Applied configuration overrides. keys=%s", ",".join(sorted(overrides)))

        return AppConfig.model_validate(config)


def prepare_data_dirs(config: AppConfig) -> list[Path]:
    """Create the cache, snapshot and plan directories named by the config."""
    dirs = [Path(config.cache.dir), Path(config.snapshot.data_dir), Path(config.snapshot.plan_dir)]
    for path in dirs:
        path.mkdir(parents=True, exist_ok=True)
    return dirs
