import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer
from eth_abi import encode

from registry_migrator.chain.abi import (
    GET_BY_VERSION_ID_SIGNATURE,
    NEW_REPO_EVENT_TOPIC,
    decode_new_repo,
    encode_call,
    namehash,
)
from registry_migrator.chain.models import RawLog
from registry_migrator.chain.rpc import EthereumRpcClient, parse_rpc_log
from registry_migrator.config.models import EthereumSettings

REPO = "0x1111111111111111111111111111111111111111"


class AbiTests(unittest.TestCase):
    def test_namehash_matches_ens_vectors(self) -> None:
        self.assertEqual(namehash(""), b"\x00" * 32)
        self.assertEqual(
            namehash("eth").hex(),
            "93cdeb708b7545dc668eb9280176169d1c33cfd8ed6f04690a0bcc88a93fc4ae",
        )

    def test_decode_new_repo(self) -> None:
        log = RawLog(
            address=REPO,
            topics=(NEW_REPO_EVENT_TOPIC,),
            data=encode(["bytes32", "string", "address"], [b"\x00" * 32, "geth", REPO]),
            block_number=1,
            transaction_hash="0xtx",
        )

        self.assertEqual(decode_new_repo(log), ("geth", REPO))

    def test_decode_rejects_other_events(self) -> None:
        log = RawLog(address=REPO, topics=("0x" + "00" * 32,), data=b"", block_number=1, transaction_hash="0xtx")

        with self.assertRaises(ValueError):
            decode_new_repo(log)

    def test_parse_rpc_log(self) -> None:
        log = parse_rpc_log(
            {
                "address": REPO,
                "topics": [NEW_REPO_EVENT_TOPIC.upper().replace("0X", "0x")],
                "data": "0x0102",
                "blockNumber": "0x10",
                "transactionHash": "0xabc",
                "logIndex": "0x2",
            }
        )

        self.assertEqual(log.block_number, 16)
        self.assertEqual(log.log_index, 2)
        self.assertEqual(log.data, b"\x01\x02")
        self.assertEqual(log.topics, (NEW_REPO_EVENT_TOPIC,))

    def test_pending_log_has_no_block_number(self) -> None:
        log = parse_rpc_log({"address": REPO, "topics": [], "data": "0x", "blockNumber": None, "transactionHash": None})

        self.assertIsNone(log.block_number)
        self.assertIsNone(log.transaction_hash)


class EthereumRpcClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.requests: list[dict] = []
        app = web.Application()
        app.router.add_post("/", self._handle)
        self.server = TestServer(app)
        await self.server.start_server()
        settings = EthereumSettings(rpc_url=str(self.server.make_url("/")), request_timeout_seconds=5)
        self.client = EthereumRpcClient(settings)

    async def asyncTearDown(self) -> None:
        await self.client.stop()
        await self.server.close()

    async def _handle(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.requests.append(body)
        method = body["method"]
        if method == "eth_getLogs":
            if int(body["params"][0]["toBlock"], 16) - int(body["params"][0]["fromBlock"], 16) > 1000:
                return web.json_response({"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32005, "message": "query timeout exceeded"}})
            result = [
                {
                    "address": REPO,
                    "topics": [NEW_REPO_EVENT_TOPIC],
                    "data": "0x",
                    "blockNumber": "0x5",
                    "transactionHash": "0xabc",
                    "logIndex": "0x0",
                }
            ]
        elif method == "eth_getBlockByNumber":
            result = {"number": body["params"][0], "timestamp": "0x5ac7232c"}
        elif method == "eth_blockNumber":
            result = "0x100"
        elif method == "eth_call":
            data = body["params"][0]["data"]
            if data.startswith("0x" + encode_call(GET_BY_VERSION_ID_SIGNATURE, ["uint256"], [1])[:4].hex()):
                result = "0x" + encode(["uint16[3]", "address", "bytes"], [[0, 2, 1], REPO, b"/ipfs/QmX"]).hex()
            else:
                result = "0x" + encode(["uint256"], [3]).hex()
        else:
            return web.Response(status=500, text="unsupported")
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": result})

    async def test_get_logs_sends_inclusive_hex_range(self) -> None:
        logs = await self.client.get_logs(REPO, 0, 99, [NEW_REPO_EVENT_TOPIC])

        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0].block_number, 5)
        params = self.requests[0]["params"][0]
        self.assertEqual((params["fromBlock"], params["toBlock"]), ("0x0", "0x63"))

    async def test_rpc_error_raises(self) -> None:
        with self.assertRaises(RuntimeError) as ctx:
            await self.client.get_logs(REPO, 0, 5000, [NEW_REPO_EVENT_TOPIC])

        self.assertIn("query timeout exceeded", str(ctx.exception))

    async def test_block_and_block_number(self) -> None:
        block = await self.client.get_block(5)

        self.assertEqual(block.number, 5)
        self.assertEqual(block.timestamp, 0x5AC7232C)
        self.assertEqual(await self.client.get_block_number(), 256)

    async def test_repo_version_reads(self) -> None:
        self.assertEqual(await self.client.get_versions_count(REPO), 3)
        semantic_version, contract_address, content_uri = await self.client.get_by_version_id(REPO, 1)

        self.assertEqual(semantic_version, [0, 2, 1])
        self.assertEqual(contract_address, REPO)
        self.assertEqual(content_uri, b"/ipfs/QmX")

    async def test_hex_address_resolves_to_itself(self) -> None:
        self.assertEqual(await self.client.resolve_name(REPO), REPO)
        self.assertEqual(self.requests, [])


if __name__ == "__main__":
    unittest.main()
