import asyncio
import json

import pytest

from cryptoflow.domain.models.common import CacheKey
from cryptoflow.infrastructure.cache.caching_service import PersistentCache

KEY = CacheKey("analysis_v3_BTC")
TTL = 7200


def test_get_after_set_returns_value(cache: PersistentCache):
    payload = {"trend": "up", "risk_level": "Low"}
    asyncio.run(cache.set(KEY, payload))
    assert asyncio.run(cache.get(KEY)) == payload


def test_get_missing_key_returns_none(cache: PersistentCache):
    assert asyncio.run(cache.get(CacheKey("nothing_here"))) is None


def test_entry_valid_at_exact_ttl(cache: PersistentCache, clock):
    asyncio.run(cache.set(KEY, "value"))
    clock.advance(TTL)
    assert asyncio.run(cache.get(KEY)) == "value"


def test_expired_entry_is_removed(cache: PersistentCache, clock):
    asyncio.run(cache.set(KEY, "value"))
    filepath = cache._get_filepath(KEY)
    assert filepath.exists()

    clock.advance(TTL + 1)

    assert asyncio.run(cache.get(KEY)) is None
    assert not filepath.exists()


def test_repeated_get_is_idempotent(cache: PersistentCache, clock):
    asyncio.run(cache.set(KEY, [1, 2, 3]))
    clock.advance(60)
    first = asyncio.run(cache.get(KEY))
    second = asyncio.run(cache.get(KEY))
    assert first == second == [1, 2, 3]
    assert cache._get_filepath(KEY).exists()


def test_set_overwrites_and_restarts_ttl(cache: PersistentCache, clock):
    asyncio.run(cache.set(KEY, "old"))
    clock.advance(TTL - 10)
    asyncio.run(cache.set(KEY, "new"))
    clock.advance(100)
    assert asyncio.run(cache.get(KEY)) == "new"


def test_entries_survive_a_new_instance(tmp_path, clock):
    first = PersistentCache(cache_dir=tmp_path / "store", clock=clock)
    asyncio.run(first.set(KEY, {"price_jpy": "¥1"}))

    second = PersistentCache(cache_dir=tmp_path / "store", clock=clock)
    assert asyncio.run(second.get(KEY)) == {"price_jpy": "¥1"}


@pytest.mark.parametrize("contents", [
    "not json at all",
    json.dumps(["a", "list"]),
    json.dumps({"payload": "x"}),  # no stored_at
    json.dumps({"payload": "x", "stored_at": "yesterday"}),
])
def test_malformed_entry_is_treated_as_absent(cache: PersistentCache, contents):
    filepath = cache._get_filepath(KEY)
    filepath.write_text(contents, encoding="utf-8")

    assert asyncio.run(cache.get(KEY)) is None
    assert not filepath.exists()


def test_unserializable_value_is_not_stored(cache: PersistentCache):
    asyncio.run(cache.set(KEY, object()))
    assert asyncio.run(cache.get(KEY)) is None
    assert not list(cache.cache_dir.glob("*.tmp"))


def test_delete_and_clear(cache: PersistentCache):
    other = CacheKey("price_v3_ETH")
    asyncio.run(cache.set(KEY, 1))
    asyncio.run(cache.set(other, 2))

    asyncio.run(cache.delete(KEY))
    assert asyncio.run(cache.get(KEY)) is None
    assert asyncio.run(cache.get(other)) == 2

    asyncio.run(cache.clear())
    assert asyncio.run(cache.get(other)) is None
    assert cache.cache_dir.exists()
