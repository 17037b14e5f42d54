"""
TTL Cache.

Small in-process cache with least-recently-used eviction and per-entry
expiry. The clock is injectable so expiry can be tested without sleeping.

Usage:
    from crm.backend.core.cache import TTLCache

    cache: TTLCache[int, dict] = TTLCache(maxsize=64, ttl=300)
    cache.set(tenant_id, settings)
    settings = cache.get(tenant_id)
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """
    Bounded mapping whose entries expire ``ttl`` seconds after being set.

    Reads refresh recency but not expiry. When full, the least recently
    used entry is evicted.
    """

    def __init__(
        self,
        maxsize: int,
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._data: OrderedDict[K, tuple[float, V]] = OrderedDict()

    def get(self, key: K, default: V | None = None) -> V | None:
        entry = self._data.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return default
        self._data.move_to_end(key)
        return value

    def set(self, key: K, value: V) -> None:
        if key in self._data:
            del self._data[key]
        elif len(self._data) >= self.maxsize:
            self._purge_expired()
            if len(self._data) >= self.maxsize:
                self._data.popitem(last=False)
        self._data[key] = (self._clock() + self.ttl, value)

    def pop(self, key: K, default: V | None = None) -> V | None:
        entry = self._data.pop(key, None)
        if entry is None:
            return default
        return entry[1]

    def clear(self) -> None:
        self._data.clear()

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (expires_at, _) in self._data.items() if now >= expires_at]:
            del self._data[key]

    def __contains__(self, key: object) -> bool:
        entry = self._data.get(key)  # type: ignore[arg-type]
        return entry is not None and self._clock() < entry[0]

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._data)
