"""
SNMP Response Cache.

TTL + LRU 的記憶體快取，擋掉重複的設備查詢。

- key = 設備 identity（不含密碼）+ credential fingerprint + operation + params
- 每筆 entry 有自己的 TTL（呼叫端依 operation 類別決定）
- 超過 max_entries 時淘汰最久未使用的 entry
- 只存成功的回應；失敗永遠不進快取

快取實例掛在 SnmpClient 上（client 是 singleton），服務重啟後快取清空。
All public methods take an internal lock, so one instance can be shared by
concurrent polls of unrelated devices.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from app.snmp.types import SnmpDevice

logger = logging.getLogger(__name__)


def device_key_prefix(device: SnmpDevice) -> str:
    """Key prefix shared by every entry of one device + credential set."""
    return f"{device.identity()}|{device.credential_fingerprint()}|"


def make_cache_key(device: SnmpDevice, operation: str, params: dict[str, Any] | None = None) -> str:
    """
    Deterministic cache key.

    Secrets never appear in the key; the credential fingerprint is a
    truncated SHA-256 so two credential sets for one host do not collide.
    """
    canonical = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode()).hexdigest()[:16]
    return f"{device_key_prefix(device)}{operation}|{digest}"


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class ResponseCache:
    """
    Bounded TTL cache with LRU eviction.

    get() returns None on miss; callers never cache None themselves.
    """

    def __init__(
        self,
        max_entries: int = 5000,
        default_ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._default_ttl = default_ttl
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expired(self._clock()):
                del self._store[key]
                self._expirations += 1
                self._misses += 1
                return None
            self._store.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store *value*; ttl <= 0 means "do not cache"."""
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0 or value is None:
            return
        with self._lock:
            self._store[key] = CacheEntry(value=value, created_at=self._clock(), ttl=ttl)
            self._store.move_to_end(key)
            while len(self._store) > self._max_entries:
                self._store.popitem(last=False)
                self._evictions += 1

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with *prefix*; returns count removed."""
        with self._lock:
            doomed = [k for k in self._store if k.startswith(prefix)]
            for k in doomed:
                del self._store[k]
        if doomed:
            logger.debug("Invalidated %d cache entries", len(doomed))
        return len(doomed)

    def invalidate_device(self, device: SnmpDevice) -> int:
        return self.invalidate_prefix(device_key_prefix(device))

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            doomed = [k for k, e in self._store.items() if e.expired(now)]
            for k in doomed:
                del self._store[k]
            self._expirations += len(doomed)
        return len(doomed)

    def clear(self) -> None:
        """Remove all entries and reset statistics."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0
        logger.info("SNMP response cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get_cache_stats(self) -> dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._store),
                "maxEntries": self._max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hitRate": round(self._hits / total, 4) if total else 0.0,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "defaultTtl": self._default_ttl,
            }
