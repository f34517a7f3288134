# tokenproxy/cache.py
# Purpose: In-memory TTL cache for upstream payloads, with a stale read for fallbacks.
# Why: Reduce calls to CoinGecko and keep serving data while it rate-limits us.
# Pitfalls: Not persistent; every process (and region) owns its own cache.

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

# Cache durations in milliseconds
CACHE_DURATIONS: dict[str, int] = {
    "PRICES": 5 * 60 * 1000,
    "MARKETS": 5 * 60 * 1000,
    "CHARTS": 30 * 60 * 1000,
    "METADATA": 24 * 60 * 60 * 1000,
    "SPARKLINE": 60 * 60 * 1000,
}


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: str
    stored_at: float  # epoch seconds


class CacheStore:
    """Key -> serialized payload, with TTL-aware and stale reads.

    The TTL is supplied per read, not per write, so the same entry can be
    fresh for one caller and expired for another.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str, ttl_ms: int) -> str | None:
        """Return the payload if younger than ttl_ms; evict it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        age_ms = (self._clock() - entry.stored_at) * 1000
        if age_ms < ttl_ms:
            return entry.payload
        # expired
        self._entries.pop(key, None)
        return None

    def get_stale(self, key: str) -> str | None:
        """Return the payload regardless of age."""
        entry = self._entries.get(key)
        return entry.payload if entry else None

    def set(self, key: str, payload: str) -> None:
        self._entries[key] = CacheEntry(key=key, payload=payload, stored_at=self._clock())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


def cache_control(ttl_ms: int) -> tuple[int, int]:
    """(s-maxage, stale-while-revalidate) in seconds for a TTL in milliseconds."""
    s_maxage = ttl_ms // 1000
    return s_maxage, s_maxage // 2


def cache_control_header(ttl_ms: int) -> str:
    s_maxage, swr = cache_control(ttl_ms)
    return f"s-maxage={s_maxage}, stale-while-revalidate={swr}"
