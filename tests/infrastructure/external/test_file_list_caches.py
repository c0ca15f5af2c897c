import asyncio
import fnmatch
from typing import Dict

from sparks.infrastructure.external.cache.memory_file_list_cache import (
    MemoryFileListCache,
)
from sparks.infrastructure.external.cache.redis_file_list_cache import RedisFileListCache
from sparks.infrastructure.storage.redis import RedisClient, escape_glob


class FakeRedis:
    def __init__(self) -> None:
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.delete_calls = 0

    async def get(self, key: str):
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self.store[key] = value
        self.ttls[key] = ex

    async def scan_iter(self, match: str, count: int | None = None):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def delete(self, *keys: str) -> int:
        self.delete_calls += 1
        for key in keys:
            self.store.pop(key, None)
        return len(keys)


def test_memory_cache_invalidates_all_scopes_of_a_product(make_record) -> None:
    cache = MemoryFileListCache()

    async def run():
        await cache.set("P1", [make_record("a")])
        await cache.set("P1", [make_record("b")], step_id=1)
        await cache.set("P2", [make_record("c", product_id="P2")])
        await cache.invalidate_product("P1")
        return await cache.get("P1"), await cache.get("P1", 1), await cache.get("P2")

    p1, p1_step, p2 = asyncio.run(run())

    assert p1 is None
    assert p1_step is None
    assert [r.name for r in p2] == ["c"]


def test_redis_cache_round_trip_and_invalidate(make_record) -> None:
    redis_client = RedisClient(client=FakeRedis())
    cache = RedisFileListCache(redis_client, ttl_seconds=60)
    record = make_record("a.txt", step_id=2)

    async def run():
        await cache.set("P1", [record], step_id=2)
        await cache.set("P10", [make_record("b.txt", product_id="P10")])
        cached = await cache.get("P1", step_id=2)
        await cache.invalidate_product("P1")
        return cached, await cache.get("P1", step_id=2), await cache.get("P10")

    cached, after, other = asyncio.run(run())

    assert cached == [record]
    assert redis_client.client.ttls["files:P1:2:all"] == 60
    assert after is None
    assert other is not None


def test_redis_invalidate_treats_glob_characters_literally(make_record) -> None:
    redis_client = RedisClient(client=FakeRedis())
    cache = RedisFileListCache(redis_client)

    async def run():
        await cache.set("P1", [make_record("a.txt")])
        await cache.set("P[1]", [make_record("b.txt", product_id="P[1]")])
        await cache.set("P*", [make_record("c.txt", product_id="P*")], step_id=3)
        await cache.invalidate_product("P*")
        await cache.invalidate_product("P?")
        return await cache.get("P1"), await cache.get("P[1]"), await cache.get("P*", 3)

    p1, bracketed, starred = asyncio.run(run())

    assert [r.name for r in p1] == ["a.txt"]
    assert [r.name for r in bracketed] == ["b.txt"]
    assert starred is None


def test_escape_glob_matches_only_itself() -> None:
    for value in ("P*", "P?", "P[1]", "a\\b"):
        pattern = escape_glob(value)
        assert fnmatch.fnmatchcase(value, pattern)
    assert not fnmatch.fnmatchcase("P1", escape_glob("P*"))
    assert escape_glob("plain-id_42") == "plain-id_42"


def test_delete_matching_deletes_in_batches() -> None:
    fake = FakeRedis()
    fake.store = {f"files:P1:{i}:all": "[]" for i in range(5)}
    fake.store["files:P2:all:all"] = "[]"
    redis_client = RedisClient(client=fake)

    deleted = asyncio.run(redis_client.delete_matching("files:P1:*", batch_size=2))

    assert deleted == 5
    assert fake.delete_calls == 3
    assert list(fake.store) == ["files:P2:all:all"]
