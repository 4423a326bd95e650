from __future__ import annotations

from registry_migrator.ipfs.client import IpfsClient, IpfsHttpClient

__all__ = ["IpfsClient", "IpfsHttpClient"]
