import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from ghdash.core.cache import CacheEntry
from ghdash.core.cache import MemoryStore
from ghdash.core.cache import RequestCache
from ghdash.core.cache import SqlStore
from ghdash.core.cache import cache_key
from ghdash.core.errors import CacheFault
from ghdash.db import Base
from ghdash.db import build_session_factory


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class BrokenStore:
    def get(self, key):
        raise CacheFault("storage unavailable")

    def set(self, key, entry):
        raise CacheFault("storage unavailable")

    def delete(self, key):
        raise CacheFault("storage unavailable")


def counting_fetcher(payload):
    calls = []

    async def fetch():
        calls.append(1)
        return payload

    return fetch, calls


def test_cached_fetch_calls_fetcher_once_within_ttl() -> None:
    clock = FakeClock()
    cache = RequestCache(MemoryStore(), clock=clock)
    fetch, calls = counting_fetcher({"hello": "world"})

    first = asyncio.run(cache.cached_fetch("graphql", {"query": "{ hello }"}, 60, fetch))
    clock.now += 59_999
    second = asyncio.run(cache.cached_fetch("graphql", {"query": "{ hello }"}, 60, fetch))

    assert first == second == {"hello": "world"}
    assert len(calls) == 1


def test_cached_fetch_refetches_once_ttl_elapsed() -> None:
    clock = FakeClock()
    cache = RequestCache(MemoryStore(), clock=clock)
    fetch, calls = counting_fetcher([1, 2, 3])

    asyncio.run(cache.cached_fetch("rest", "/user/repos", 60, fetch))
    clock.now += 60_000
    asyncio.run(cache.cached_fetch("rest", "/user/repos", 60, fetch))

    assert len(calls) == 2


def test_cache_key_separates_namespaces_and_ignores_key_order() -> None:
    assert cache_key("rest", "/user") != cache_key("graphql", "/user")
    assert cache_key("graphql", {"a": 1, "b": 2}) == cache_key("graphql", {"b": 2, "a": 1})


def test_store_failures_degrade_to_cache_miss() -> None:
    cache = RequestCache(BrokenStore())
    fetch, calls = counting_fetcher("fresh")

    first = asyncio.run(cache.cached_fetch("rest", "/user", 60, fetch))
    second = asyncio.run(cache.cached_fetch("rest", "/user", 60, fetch))

    assert first == second == "fresh"
    assert len(calls) == 2


def test_corrupted_entry_is_treated_as_miss() -> None:
    store = MemoryStore()
    key = cache_key("rest", "/user")
    store._entries[key] = {"timestamp": "not-a-number"}
    cache = RequestCache(store)
    fetch, calls = counting_fetcher("fresh")

    result = asyncio.run(cache.cached_fetch("rest", "/user", 60, fetch))

    assert result == "fresh"
    assert len(calls) == 1
    assert isinstance(store.get(key), CacheEntry)


def test_fetcher_errors_propagate_and_nothing_is_stored() -> None:
    store = MemoryStore()
    cache = RequestCache(store)

    async def failing():
        raise RuntimeError("upstream down")

    with pytest.raises(RuntimeError):
        asyncio.run(cache.cached_fetch("rest", "/user", 60, failing))

    assert len(store) == 0


def test_sql_store_round_trips_and_replaces_entries() -> None:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    store = SqlStore(build_session_factory(engine))

    store.set("k", CacheEntry(key="k", timestamp=1, payload={"a": [1, 2]}))
    store.set("k", CacheEntry(key="k", timestamp=2, payload={"a": [3]}))

    assert store.get("k") == CacheEntry(key="k", timestamp=2, payload={"a": [3]})
    assert store.get("missing") is None

    store.delete("k")
    assert store.get("k") is None


def test_sql_store_without_table_raises_cache_fault() -> None:
    engine = create_engine("sqlite+pysqlite:///:memory:")
    store = SqlStore(build_session_factory(engine))

    with pytest.raises(CacheFault):
        store.get("k")
