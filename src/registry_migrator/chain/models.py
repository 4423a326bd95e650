from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class RawLog:
    address: str
    topics: tuple[str, ...]
    data: bytes
    block_number: Optional[int]
    transaction_hash: Optional[str]
    log_index: Optional[int] = None


@dataclass(frozen=True, slots=True)
class Block:
    number: int
    timestamp: int


@dataclass(frozen=True, slots=True)
class RegistryEvent:
    package_name: str
    repo_address: str
    transaction_hash: str
    deploy_timestamp_sec: int
    fully_qualified_name: str
