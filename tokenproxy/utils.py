import time
from collections.abc import Callable
from contextlib import contextmanager
from datetime import UTC, datetime


def utc_now_iso(clock: Callable[[], float] = time.time) -> str:
    return datetime.fromtimestamp(clock(), tz=UTC).isoformat()


def ms_to_s(ms: int) -> int:
    """CoinGecko timestamps are epoch milliseconds; charts plot whole seconds."""
    return ms // 1000


@contextmanager
def timer_ms():
    start = time.perf_counter()
    yield lambda: int((time.perf_counter() - start) * 1000)
