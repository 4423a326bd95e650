"""ABI fragments of the APM registry, APM repo and ENS contracts used by the migrator."""

from __future__ import annotations

from typing import Any, Sequence

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from registry_migrator.chain.models import RawLog

NEW_REPO_EVENT_SIGNATURE = "NewRepo(bytes32,string,address)"
NEW_REPO_EVENT_TOPIC = "0x" + keccak(text=NEW_REPO_EVENT_SIGNATURE).hex()

GET_VERSIONS_COUNT_SIGNATURE = "getVersionsCount()"
GET_BY_VERSION_ID_SIGNATURE = "getByVersionId(uint256)"
ENS_RESOLVER_SIGNATURE = "resolver(bytes32)"
ENS_ADDR_SIGNATURE = "addr(bytes32)"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def encode_call(signature: str, arg_types: Sequence[str] = (), args: Sequence[Any] = ()) -> bytes:
    selector = function_signature_to_4byte_selector(signature)
    if not arg_types:
        return selector
    return selector + encode(list(arg_types), list(args))


def decode_new_repo(log: RawLog) -> tuple[str, str]:
    """Return (name, repo_address) of a NewRepo log."""
    if not log.topics or log.topics[0].lower() != NEW_REPO_EVENT_TOPIC:
        raise ValueError(f"Log at block {log.block_number} is not a NewRepo event")
    _repo_id, name, repo = decode(["bytes32", "string", "address"], log.data)
    return name, to_checksum_address(repo)


def decode_versions_count(data: bytes) -> int:
    (count,) = decode(["uint256"], data)
    return int(count)


def decode_version(data: bytes) -> tuple[list[int], str, bytes]:
    semantic_version, contract_address, content_uri = decode(["uint16[3]", "address", "bytes"], data)
    return [int(part) for part in semantic_version], to_checksum_address(contract_address), bytes(content_uri)


def decode_address(data: bytes) -> str:
    (address,) = decode(["address"], data)
    return to_checksum_address(address)


def namehash(name: str) -> bytes:
    node = b"\x00" * 32
    if not name:
        return node
    for label in reversed(name.split(".")):
        node = keccak(node + keccak(text=label))
    return node
