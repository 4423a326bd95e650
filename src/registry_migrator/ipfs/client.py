from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import aiohttp

from registry_migrator.config.models import IpfsSettings

logger = logging.getLogger(__name__)


class IpfsClient(Protocol):
    async def cat(self, pointer: str) -> bytes:
        ...


class IpfsHttpClient:
    """Reads content through the IPFS HTTP RPC API (`/api/v0/cat`)."""

    def __init__(self, settings: IpfsSettings):
        self._settings = settings
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> IpfsHttpClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self) -> None:
        if self._session:
            return
        timeout = aiohttp.ClientTimeout(total=self._settings.timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

    async def stop(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def cat(self, pointer: str) -> bytes:
        if not self._session:
            await self.start()
        assert self._session is not None

        url = f"{self._settings.api_url.rstrip('/')}/api/v0/cat"
        logger.debug("ipfs.cat_start pointer=%s", pointer)
        try:
            async with self._session.post(url, params={"arg": pointer}) as resp:
                if resp.status != 200:
                    response_text = await resp.text()
                    raise RuntimeError(f"IPFS cat {pointer} failed with HTTP {resp.status}: {response_text[:500]}")
                content = await resp.read()
        except asyncio.TimeoutError as e:
            raise RuntimeError(f"IPFS cat {pointer} timed out after {self._settings.timeout_seconds}s") from e
        logger.debug("ipfs.cat_success pointer=%s size=%d", pointer, len(content))
        return content
