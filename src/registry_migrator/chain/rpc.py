from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Optional, Sequence

import aiohttp
from eth_utils import is_hex_address, to_checksum_address

from registry_migrator.chain.abi import (
    ENS_ADDR_SIGNATURE,
    ENS_RESOLVER_SIGNATURE,
    GET_BY_VERSION_ID_SIGNATURE,
    GET_VERSIONS_COUNT_SIGNATURE,
    ZERO_ADDRESS,
    decode_address,
    decode_version,
    decode_versions_count,
    encode_call,
    namehash,
)
from registry_migrator.chain.models import Block, RawLog
from registry_migrator.config.models import EthereumSettings

logger = logging.getLogger(__name__)


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    return int(value, 16)


def _to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def parse_rpc_log(payload: dict) -> RawLog:
    return RawLog(
        address=payload.get("address", ""),
        topics=tuple(topic.lower() for topic in payload.get("topics", [])),
        data=_to_bytes(payload.get("data", "0x")),
        block_number=_to_int(payload.get("blockNumber")),
        transaction_hash=payload.get("transactionHash"),
        log_index=_to_int(payload.get("logIndex")),
    )


class EthereumRpcClient:
    """
    Minimal Ethereum JSON-RPC client over aiohttp.

    Implements the LogSource and RepoContractSource protocols. Use as an async
    context manager so the HTTP session is closed.
    """

    def __init__(self, settings: EthereumSettings):
        self._settings = settings
        self._session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)

    async def __aenter__(self) -> EthereumRpcClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self) -> None:
        if self._session:
            return
        timeout = aiohttp.ClientTimeout(total=self._settings.request_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

    async def stop(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def request(self, method: str, params: Sequence[Any]) -> Any:
        if not self._session:
            await self.start()
        assert self._session is not None

        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        try:
            async with self._session.post(self._settings.rpc_url, json=payload) as resp:
                if resp.status != 200:
                    response_text = await resp.text()
                    raise RuntimeError(f"RPC {method} failed with HTTP {resp.status}: {response_text[:500]}")
                body = await resp.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise RuntimeError(f"RPC {method} timed out after {self._settings.request_timeout_seconds}s") from e

        if not isinstance(body, dict):
            raise RuntimeError(f"RPC {method} returned a non-object response")
        error = body.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise RuntimeError(f"RPC {method} error: {message}")
        return body.get("result")

    async def get_block_number(self) -> int:
        result = await self.request("eth_blockNumber", [])
        return int(result, 16)

    async def get_logs(
        self,
        address: str,
        from_block: int,
        to_block: int,
        topics: Sequence[str],
    ) -> list[RawLog]:
        result = await self.request(
            "eth_getLogs",
            [
                {
                    "address": address,
                    "fromBlock": hex(from_block),
                    "toBlock": hex(to_block),
                    "topics": list(topics),
                }
            ],
        )
        return [parse_rpc_log(item) for item in result or []]

    async def get_block(self, block_number: int) -> Block:
        result = await self.request("eth_getBlockByNumber", [hex(block_number), False])
        if not result:
            raise RuntimeError(f"Block {block_number} not found")
        return Block(number=int(result["number"], 16), timestamp=int(result["timestamp"], 16))

    async def call(self, to: str, data: bytes) -> bytes:
        result = await self.request("eth_call", [{"to": to, "data": "0x" + data.hex()}, "latest"])
        return _to_bytes(result or "0x")

    async def resolve_name(self, name: str) -> Optional[str]:
        """Resolve an ENS name to an address; addresses are returned as-is."""
        if is_hex_address(name):
            return to_checksum_address(name)

        node = namehash(name)
        resolver_data = await self.call(
            self._settings.ens_registry_address,
            encode_call(ENS_RESOLVER_SIGNATURE, ["bytes32"], [node]),
        )
        resolver = decode_address(resolver_data)
        if resolver == ZERO_ADDRESS:
            return None

        addr_data = await self.call(resolver, encode_call(ENS_ADDR_SIGNATURE, ["bytes32"], [node]))
        address = decode_address(addr_data)
        if address == ZERO_ADDRESS:
            return None
        logger.debug("ens.resolved name=%s address=%s", name, address)
        return address

    async def get_versions_count(self, repo_address: str) -> int:
        data = await self.call(repo_address, encode_call(GET_VERSIONS_COUNT_SIGNATURE))
        return decode_versions_count(data)

    async def get_by_version_id(self, repo_address: str, version_id: int) -> tuple[list[int], str, bytes]:
        data = await self.call(repo_address, encode_call(GET_BY_VERSION_ID_SIGNATURE, ["uint256"], [version_id]))
        return decode_version(data)
