from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

from registry_migrator.apm.models import Manifest, decode_manifest
from registry_migrator.cache import INFINITE_TTL_MS, CacheStore, memoize
from registry_migrator.ipfs.client import IpfsClient

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "dappnode_package.json"


class ManifestResolver:
    """
    Resolves a package manifest from a content pointer.

    A release pointer is either the manifest file itself or a directory holding
    `dappnode_package.json`. Content-addressed data never changes, so results are
    cached forever.
    """

    def __init__(
        self,
        ipfs: IpfsClient,
        store: CacheStore,
        *,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._ipfs = ipfs
        self._resolve = memoize(
            self._fetch_manifest,
            to_id=lambda pointer: f"manifest-{pointer}",
            ttl_ms=INFINITE_TTL_MS,
            store=store,
            clock=clock,
        )

    async def resolve_manifest(self, content_pointer: str) -> Manifest:
        payload = await self._resolve(content_pointer)
        return decode_manifest(payload, pointer=content_pointer)

    async def _fetch_manifest(self, content_pointer: str) -> dict:
        try:
            payload = await self._cat_json(content_pointer)
        except Exception as e:
            logger.debug("Manifest is not a direct document, trying directory. pointer=%s error=%s", content_pointer, e)
            dir_pointer = f"{content_pointer.rstrip('/')}/{MANIFEST_FILENAME}"
            try:
                payload = await self._cat_json(dir_pointer)
            except Exception as dir_error:
                raise RuntimeError(f"Unable to resolve manifest at {content_pointer}: {dir_error}") from dir_error

        # Validate before the payload is cached
        decode_manifest(payload, pointer=content_pointer)
        return payload

    async def _cat_json(self, pointer: str) -> dict[str, Any]:
        content = await self._ipfs.cat(pointer)
        payload = json.loads(content.decode("utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Content at {pointer} is not a JSON object")
        return payload
