import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from registry_migrator.config.models import IpfsSettings
from registry_migrator.ipfs import IpfsHttpClient


class IpfsHttpClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.documents = {"/ipfs/QmManifest": b'{"version": "0.2.1"}'}
        app = web.Application()
        app.router.add_post("/api/v0/cat", self._cat)
        self.server = TestServer(app)
        await self.server.start_server()
        self.client = IpfsHttpClient(IpfsSettings(api_url=str(self.server.make_url("/")), timeout_seconds=5))

    async def asyncTearDown(self) -> None:
        await self.client.stop()
        await self.server.close()

    async def _cat(self, request: web.Request) -> web.Response:
        pointer = request.query.get("arg", "")
        if pointer not in self.documents:
            return web.Response(status=500, text=f"no link named {pointer}")
        return web.Response(body=self.documents[pointer])

    async def test_cat_returns_raw_content(self) -> None:
        async with self.client as client:
            self.assertEqual(await client.cat("/ipfs/QmManifest"), b'{"version": "0.2.1"}')

    async def test_missing_content_raises(self) -> None:
        with self.assertRaises(RuntimeError) as ctx:
            await self.client.cat("/ipfs/QmMissing")

        self.assertIn("HTTP 500", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
