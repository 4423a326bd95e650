from __future__ import annotations

from registry_migrator.snapshot.store import RegistryPackageRecord, RegistrySnapshotStore, records_from_events

__all__ = ["RegistryPackageRecord", "RegistrySnapshotStore", "records_from_events"]
