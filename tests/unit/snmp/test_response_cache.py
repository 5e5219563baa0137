"""Unit tests for ResponseCache (TTL + LRU) and cache key derivation."""
from __future__ import annotations

import hashlib
import threading
from dataclasses import replace

import pytest

from app.core.enums import SnmpVersion
from app.snmp.response_cache import ResponseCache, device_key_prefix, make_cache_key
from tests.conftest import FakeClock, make_device


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(max_entries=3, default_ttl=30.0, clock=clock)


# ── Keys ─────────────────────────────────────────────────────────────


def test_key_is_deterministic_and_param_order_independent():
    device = make_device()
    a = make_cache_key(device, "get", {"oids": ["1.3.6.1"], "x": 1})
    b = make_cache_key(device, "get", {"x": 1, "oids": ["1.3.6.1"]})
    assert a == b


def test_key_never_contains_secrets():
    device = make_device(version=SnmpVersion.V3)
    key = make_cache_key(device, "get", {"oids": ["1.3.6.1.2.1.1.1.0"]})
    assert "auth-secret" not in key
    assert "priv-secret" not in key

    v2 = make_device(community="very-secret-community")
    assert "very-secret-community" not in make_cache_key(v2, "get")


def test_fingerprint_is_not_a_plain_digest_of_the_community():
    creds = make_device(community="public").credentials
    guessed = hashlib.sha256("\x1f".join(["v2c", "public", "", "", "", "", "", "", ""]).encode())

    assert creds.fingerprint() == make_device(community="public").credentials.fingerprint()
    assert creds.fingerprint() != guessed.hexdigest()[:16]


def test_key_differs_per_credential_set():
    a = make_device(community="public")
    b = make_device(community="private")
    assert make_cache_key(a, "get") != make_cache_key(b, "get")


def test_key_differs_per_operation_and_params():
    device = make_device()
    assert make_cache_key(device, "get") != make_cache_key(device, "walk")
    assert (
        make_cache_key(device, "walk", {"oid": "1.3.6.1.2.1.2"})
        != make_cache_key(device, "walk", {"oid": "1.3.6.1.2.1.31"})
    )


def test_device_prefix_shared_by_all_keys():
    device = make_device()
    assert make_cache_key(device, "get", {"oids": ["1.3"]}).startswith(device_key_prefix(device))


# ── TTL ──────────────────────────────────────────────────────────────


def test_get_miss_returns_none(cache):
    assert cache.get("missing") is None


def test_entry_expires_after_ttl(cache, clock):
    cache.set("k", "v", ttl=10)
    clock.advance(9)
    assert cache.get("k") == "v"
    clock.advance(1)
    assert cache.get("k") is None
    assert cache.get_cache_stats()["expirations"] == 1


def test_default_ttl_used(cache, clock):
    cache.set("k", "v")
    clock.advance(29)
    assert cache.get("k") == "v"
    clock.advance(1)
    assert cache.get("k") is None


def test_zero_ttl_is_not_cached(cache):
    cache.set("k", "v", ttl=0)
    assert len(cache) == 0


def test_none_value_is_not_cached(cache):
    cache.set("k", None)
    assert len(cache) == 0


def test_purge_expired(cache, clock):
    cache.set("short", 1, ttl=1)
    cache.set("long", 2, ttl=100)
    clock.advance(5)
    assert cache.purge_expired() == 1
    assert len(cache) == 1


# ── LRU ──────────────────────────────────────────────────────────────


def test_lru_eviction_drops_least_recently_used(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    cache.get("a")          # a is now most recent
    cache.set("d", 4)       # evicts b

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert cache.get("d") == 4
    assert len(cache) == 3
    assert cache.get_cache_stats()["evictions"] == 1


def test_max_entries_must_be_positive():
    with pytest.raises(ValueError):
        ResponseCache(max_entries=0)


# ── Invalidation / stats ─────────────────────────────────────────────


def test_invalidate_device_only_touches_that_device(clock):
    cache = ResponseCache(max_entries=10, clock=clock)
    a = make_device(hostname="10.0.0.1")
    b = make_device(hostname="10.0.0.2")
    cache.set(make_cache_key(a, "get"), 1)
    cache.set(make_cache_key(a, "walk"), 2)
    cache.set(make_cache_key(b, "get"), 3)

    assert cache.invalidate_device(a) == 2
    assert cache.get(make_cache_key(b, "get")) == 3


def test_invalidate_device_scoped_to_port():
    cache = ResponseCache(max_entries=10)
    a = make_device()
    other_port = replace(a, port=1161)
    cache.set(make_cache_key(other_port, "get"), 1)
    assert cache.invalidate_device(a) == 0


def test_stats_and_clear(cache):
    cache.set("a", 1)
    cache.get("a")
    cache.get("a")
    cache.get("zzz")

    stats = cache.get_cache_stats()
    assert stats["size"] == 1
    assert stats["hits"] == 2
    assert stats["misses"] == 1
    assert stats["hitRate"] == pytest.approx(0.6667)
    assert stats["maxEntries"] == 3
    assert stats["defaultTtl"] == 30.0

    cache.clear()
    stats = cache.get_cache_stats()
    assert stats["size"] == 0
    assert stats["hits"] == 0
    assert stats["hitRate"] == 0.0


def test_concurrent_writers_respect_size_cap():
    cache = ResponseCache(max_entries=50)

    def writer(prefix: str) -> None:
        for i in range(200):
            cache.set(f"{prefix}-{i}", i)
            cache.get(f"{prefix}-{i // 2}")

    threads = [threading.Thread(target=writer, args=(f"t{n}",)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 50
    assert cache.get_cache_stats()["size"] == 50
