from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

FlagLayout = Literal["visible_active_validated_banned", "active_validated_banned"]
VersionTransform = Literal["keep", "upstream_version"]
ContentUriTransform = Literal["keep", "ipfs_scheme"]


class AppSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Migration namespace selected for the `plan` command
    namespace: str
    dry_run: bool = True
    dev_address: str = ""


class FileRotationSettings(BaseModel):
    """Log files roll over at midnight; `backup_count` older files are kept."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    rotation: FileRotationSettings


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str
    file: FileLoggingSettings


class EthereumSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    rpc_url: str
    request_timeout_seconds: float = 60.0
    ens_registry_address: str = "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"


class IpfsSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    api_url: str
    timeout_seconds: float = 30.0


class CacheSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    dir: str = "data/cache"
    # Version counts change when a repo publishes, so they expire
    version_count_ttl_hours: float = Field(default=1.0, gt=0)


class RangeFetchSettings(BaseModel):
    """
    Step control of the adaptive log fetcher.

    Failures are slow to discover, so the step shrinks fast; successes are cheap,
    so the step grows slowly to avoid re-triggering the same failure.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_blocks_per_request: int = Field(default=100_000, ge=1)
    min_blocks_per_request: int = Field(default=5, ge=1)
    step_decrease_factor: int = Field(default=4, ge=2)
    step_increase_factor: int = Field(default=2, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "RangeFetchSettings":
        if self.min_blocks_per_request > self.max_blocks_per_request:
            raise ValueError("min_blocks_per_request must not exceed max_blocks_per_request")
        return self


class SnapshotSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    data_dir: str = "data/apm-mainnet-data"
    plan_dir: str = "data/plans"


class RegistrySourceSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    deploy_block: int = Field(ge=0)


class MigrationPolicy(BaseModel):
    """Per-namespace migration policy, passed to the planner as a plain value."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    namespace: str = ""
    source_registry: str
    target_registry: str
    drop_list: Sequence[str] = ()
    default_flags: Optional[int] = Field(default=None, ge=0)
    flag_overrides: Dict[str, int] = Field(default_factory=dict)
    flag_layout: FlagLayout = "visible_active_validated_banned"
    versions_to_migrate: int = Field(default=1, ge=1)
    version_transform: VersionTransform = "keep"
    content_uri_transform: ContentUriTransform = "keep"
    verify_manifest: bool = False

    @property
    def needs_manifest(self) -> bool:
        return self.verify_manifest or self.version_transform == "upstream_version"


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    app: AppSettings
    logging: LoggingSettings
    ethereum: EthereumSettings
    ipfs: IpfsSettings
    cache: CacheSettings = CacheSettings()
    range_fetch: RangeFetchSettings = RangeFetchSettings()
    snapshot: SnapshotSettings = SnapshotSettings()
    registries: Dict[str, RegistrySourceSettings]
    migrations: Dict[str, MigrationPolicy]

    @model_validator(mode="before")
    @classmethod
    def _name_migrations(cls, data):
        if isinstance(data, dict) and isinstance(data.get("migrations"), dict):
            migrations = {}
            for namespace, policy in data["migrations"].items():
                if isinstance(policy, dict):
                    policy = {**policy, "namespace": policy.get("namespace") or namespace}
                migrations[namespace] = policy
            data = {**data, "migrations": migrations}
        return data

    @model_validator(mode="after")
    def _check_references(self) -> "AppConfig":
        if self.app.namespace not in self.migrations:
            known = ", ".join(sorted(self.migrations)) or "<none>"
            raise ValueError(f"Unknown migration namespace: {self.app.namespace!r}. Configured: {known}")
        for namespace, policy in self.migrations.items():
            if policy.source_registry not in self.registries:
                raise ValueError(
                    f"Migration {namespace!r} reads unknown source registry: {policy.source_registry!r}"
                )
        return self

    @property
    def selected_policy(self) -> MigrationPolicy:
        return self.migrations[self.app.namespace]


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """Where a configuration is read from. The CLI owns the default paths."""

    yaml_path: str
    dotenv_path: Optional[str] = None
    env_prefix: str = "APP__"
