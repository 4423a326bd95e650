from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from registry_migrator.chain.models import RegistryEvent
from registry_migrator.core.utils import atomic_write_text, rfc3339_to_timestamp, timestamp_to_rfc3339

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegistryPackageRecord:
    name: str
    repo_address: str
    deploy_timestamp_sec: int


def records_from_events(events: Iterable[RegistryEvent]) -> list[RegistryPackageRecord]:
    return [
        RegistryPackageRecord(
            name=event.package_name,
            repo_address=event.repo_address,
            deploy_timestamp_sec=event.deploy_timestamp_sec,
        )
        for event in events
    ]


def format_record(record: RegistryPackageRecord) -> str:
    for value in (record.name, record.repo_address):
        if "," in value or "\n" in value or "\r" in value:
            raise ValueError(f"Registry record field can not be stored in the snapshot: {value!r}")
    # name, APM repo address, deploy date
    return ",".join([record.name, record.repo_address, timestamp_to_rfc3339(record.deploy_timestamp_sec)])


def parse_record(line: str, *, line_number: int = 0) -> RegistryPackageRecord:
    parts = line.split(",")
    if len(parts) != 3:
        raise ValueError(f"Malformed snapshot line {line_number}: expected 3 fields, got {len(parts)}")
    name, repo_address, deploy_date = parts
    try:
        deploy_timestamp_sec = rfc3339_to_timestamp(deploy_date)
    except ValueError as e:
        raise ValueError(f"Malformed snapshot line {line_number}: bad deploy date {deploy_date!r}") from e
    return RegistryPackageRecord(name=name, repo_address=repo_address, deploy_timestamp_sec=deploy_timestamp_sec)


class RegistrySnapshotStore:
    """Flat `<registry>.csv` tables of the packages found in each registry."""

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)

    def path_for(self, registry_name: str) -> Path:
        if "/" in registry_name or "\\" in registry_name or registry_name in {"", ".", ".."}:
            raise ValueError(f"Invalid registry name for a snapshot file: {registry_name!r}")
        return self._data_dir / f"{registry_name}.csv"

    def write(self, registry_name: str, records: Iterable[RegistryPackageRecord]) -> Path:
        path = self.path_for(registry_name)
        lines = [format_record(record) for record in records]
        atomic_write_text(path, "\n".join(lines))
        logger.info("Registry snapshot written. registry=%s path=%s records=%d", registry_name, path, len(lines))
        return path

    def read(self, registry_name: str) -> list[RegistryPackageRecord]:
        path = self.path_for(registry_name)
        content = path.read_text(encoding="utf-8")
        records: list[RegistryPackageRecord] = []
        for line_number, line in enumerate(content.split("\n"), start=1):
            line = line.removesuffix("\r")
            if not line:
                continue
            records.append(parse_record(line, line_number=line_number))
        return records
