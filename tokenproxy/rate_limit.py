# tokenproxy/rate_limit.py
# Purpose: Per-client fixed-window request limiter.
# Pitfalls: Windows are per-client wall-clock buckets, not sliding. A client can
#   burst up to 2x max_requests across a window boundary.

from __future__ import annotations

import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

FALLBACK_CLIENT_KEY = "default"


@dataclass(frozen=True)
class RatePolicy:
    max_requests: int = 100
    window_ms: int = 60_000


@dataclass
class RateWindow:
    client_key: str
    count: int
    window_reset_at: float  # epoch seconds


class RateLimiter:
    def __init__(
        self, policy: RatePolicy | None = None, clock: Callable[[], float] = time.time
    ) -> None:
        self.policy = policy or RatePolicy()
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._next_prune = 0.0

    def check_and_increment(self, client_key: str) -> bool:
        """Count one request for client_key; False means the caller must back off."""
        now = self._clock()
        window = self._windows.get(client_key)

        if window is None or now > window.window_reset_at:
            self._prune(now)
            self._windows[client_key] = RateWindow(
                client_key=client_key,
                count=1,
                window_reset_at=now + self.policy.window_ms / 1000,
            )
            return True

        if window.count >= self.policy.max_requests:
            return False

        window.count += 1
        return True

    def _prune(self, now: float) -> None:
        """Drop expired windows, at most once per window length."""
        if now < self._next_prune:
            return
        self._windows = {k: w for k, w in self._windows.items() if now <= w.window_reset_at}
        self._next_prune = now + self.policy.window_ms / 1000

    def window(self, client_key: str) -> RateWindow | None:
        return self._windows.get(client_key)

    def __len__(self) -> int:
        return len(self._windows)

    def retry_after(self, client_key: str) -> int:
        """Whole seconds until the client's current window resets."""
        window = self._windows.get(client_key)
        if window is None:
            return 0
        return max(0, math.ceil(window.window_reset_at - self._clock()))


def client_key_from_headers(headers: Mapping[str, str]) -> str:
    """Derive a rate-limit key from proxy headers (x-forwarded-for, then x-real-ip)."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return FALLBACK_CLIENT_KEY
