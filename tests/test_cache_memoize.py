import json
import tempfile
import threading
import unittest
from pathlib import Path

from registry_migrator.cache import (
    INFINITE_TTL_MS,
    FileSystemCacheStore,
    InMemoryCacheStore,
    escape_cache_key,
    memoize,
)


class FakeClock:
    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


class CountingFetch:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def __call__(self, key: str) -> dict:
        self.calls.append(key)
        return {"key": key, "call": len(self.calls)}


class MemoizeTests(unittest.IsolatedAsyncioTestCase):
    async def test_second_call_within_ttl_is_served_from_cache(self) -> None:
        fetch = CountingFetch()
        clock = FakeClock()
        cached = memoize(fetch, to_id=lambda key: f"item-{key}", ttl_ms=1000, store=InMemoryCacheStore(), clock=clock)

        first = await cached("a")
        clock.now_ms += 999
        second = await cached("a")

        self.assertEqual(first, second)
        self.assertEqual(fetch.calls, ["a"])

    async def test_expired_entry_is_fetched_again(self) -> None:
        fetch = CountingFetch()
        clock = FakeClock()
        cached = memoize(fetch, to_id=lambda key: f"item-{key}", ttl_ms=1000, store=InMemoryCacheStore(), clock=clock)

        await cached("a")
        await cached("a")
        clock.now_ms += 1000
        third = await cached("a")

        self.assertEqual(fetch.calls, ["a", "a"])
        self.assertEqual(third["call"], 2)

    async def test_infinite_ttl_never_expires(self) -> None:
        fetch = CountingFetch()
        clock = FakeClock()
        cached = memoize(
            fetch, to_id=lambda key: f"item-{key}", ttl_ms=INFINITE_TTL_MS, store=InMemoryCacheStore(), clock=clock
        )

        await cached("a")
        clock.now_ms += 10**12
        await cached("a")

        self.assertEqual(fetch.calls, ["a"])

    async def test_failures_are_not_cached(self) -> None:
        attempts = []

        async def flaky(key: str) -> str:
            attempts.append(key)
            if len(attempts) == 1:
                raise RuntimeError("boom")
            return "ok"

        store = InMemoryCacheStore()
        cached = memoize(flaky, to_id=lambda key: key, ttl_ms=1000, store=store)

        with self.assertRaises(RuntimeError):
            await cached("a")
        self.assertEqual(len(store), 0)

        self.assertEqual(await cached("a"), "ok")
        self.assertEqual(len(attempts), 2)

    async def test_distinct_ids_are_cached_separately(self) -> None:
        fetch = CountingFetch()
        cached = memoize(fetch, to_id=lambda key: key, ttl_ms=1000, store=InMemoryCacheStore())

        await cached("a")
        await cached("b")
        await cached("a")

        self.assertEqual(fetch.calls, ["a", "b"])

    def test_non_positive_ttl_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            memoize(CountingFetch(), to_id=lambda key: key, ttl_ms=0, store=InMemoryCacheStore())


class CacheKeyTests(unittest.TestCase):
    def test_path_separators_are_escaped(self) -> None:
        key = escape_cache_key("manifest-/ipfs/QmHash/dappnode_package.json")
        self.assertNotIn("/", key)
        self.assertNotIn("\\", escape_cache_key("a\\b"))

    def test_escaping_does_not_collide_with_substitute_characters(self) -> None:
        self.assertNotEqual(escape_cache_key("a/b"), escape_cache_key("a:b"))
        self.assertNotEqual(escape_cache_key("a/b"), escape_cache_key("a%2Fb"))

    def test_dot_segments_can_not_be_produced(self) -> None:
        self.assertNotIn(escape_cache_key("."), {".", ".."})
        self.assertNotIn(escape_cache_key(".."), {".", ".."})
        self.assertFalse(escape_cache_key("../../etc/passwd").startswith("."))

    def test_empty_id_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            escape_cache_key("")


class FileSystemCacheStoreTests(unittest.IsolatedAsyncioTestCase):
    async def test_entries_stay_inside_the_cache_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp) / "cache"
            store = FileSystemCacheStore(root)

            async def fetch(pointer: str) -> dict:
                return {"pointer": pointer}

            cached = memoize(fetch, to_id=lambda pointer: f"manifest-{pointer}", ttl_ms=INFINITE_TTL_MS, store=store)
            await cached("/ipfs/QmA/../../escape")
            await cached("..")

            written = [path for path in Path(tmp).rglob("*") if path.is_file()]
            self.assertEqual(len(written), 2)
            for path in written:
                self.assertEqual(path.parent, root)

    async def test_entry_is_pretty_json_and_survives_a_new_store(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            calls = []

            async def fetch(repo: str) -> int:
                calls.append(repo)
                return 7

            first = memoize(fetch, to_id=lambda repo: f"version-count-{repo}", ttl_ms=60_000, store=FileSystemCacheStore(tmp))
            self.assertEqual(await first("0xB"), 7)

            path = FileSystemCacheStore(tmp).path_for(escape_cache_key("version-count-0xB"))
            self.assertEqual(json.loads(path.read_text(encoding="utf-8")), 7)

            second = memoize(fetch, to_id=lambda repo: f"version-count-{repo}", ttl_ms=60_000, store=FileSystemCacheStore(tmp))
            self.assertEqual(await second("0xB"), 7)
            self.assertEqual(calls, ["0xB"])

    async def test_file_mtime_is_the_freshness_clock(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = FileSystemCacheStore(tmp)
            store.write("k", {"a": 1}, written_at_ms=1_000_000)

            entry = store.read("k")

            self.assertIsNotNone(entry)
            self.assertEqual(entry.payload, {"a": 1})
            self.assertEqual(entry.written_at_ms, 1_000_000)

    async def test_corrupt_entry_is_a_miss(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = FileSystemCacheStore(tmp)
            store.path_for("k").write_text("{not json", encoding="utf-8")

            self.assertIsNone(store.read("k"))

            async def fetch(key: str) -> str:
                return "fresh"

            cached = memoize(fetch, to_id=lambda key: key, ttl_ms=INFINITE_TTL_MS, store=store)
            self.assertEqual(await cached("k"), "fresh")
            self.assertEqual(store.read("k").payload, "fresh")

    async def test_undecodable_entry_is_a_miss(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = FileSystemCacheStore(tmp)
            store.path_for("k").write_bytes(b"\xff\xfe{garbage")

            self.assertIsNone(store.read("k"))

            async def fetch(key: str) -> str:
                return "fresh"

            cached = memoize(fetch, to_id=lambda key: key, ttl_ms=INFINITE_TTL_MS, store=store)
            self.assertEqual(await cached("k"), "fresh")

    def test_concurrent_writers_of_one_key_all_succeed(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            errors: list[BaseException] = []

            def writer(worker: int) -> None:
                store = FileSystemCacheStore(tmp)
                for i in range(200):
                    try:
                        store.write("k", {"worker": worker, "i": i}, written_at_ms=1_000_000)
                    except OSError as e:
                        errors.append(e)

            threads = [threading.Thread(target=writer, args=(worker,)) for worker in range(4)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            self.assertEqual(errors, [])
            entry = FileSystemCacheStore(tmp).read("k")
            self.assertIsNotNone(entry)
            self.assertEqual(entry.payload["i"], 199)
            self.assertEqual(entry.written_at_ms, 1_000_000)
            self.assertEqual([path.name for path in Path(tmp).iterdir()], ["k.json"])

    async def test_missing_entry_is_a_miss(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertIsNone(FileSystemCacheStore(Path(tmp) / "missing").read("k"))


if __name__ == "__main__":
    unittest.main()
