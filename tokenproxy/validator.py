from __future__ import annotations

import logging
import math
from typing import Any

from tokenproxy.schemas import Candle
from tokenproxy.utils import ms_to_s

logger = logging.getLogger(__name__)


def _to_ms(ts: Any) -> int | None:
    """Epoch milliseconds from an int/float/numeric string, else None."""
    if ts is None or isinstance(ts, bool):
        return None
    try:
        ms = int(float(ts))
    except (TypeError, ValueError):
        return None
    return ms if ms > 0 else None


def validate_candle(candle: dict[str, Any], ticker: str) -> Candle | None:
    """Check a single OHLC candle and return a Candle or None if invalid."""
    required = ("open", "high", "low", "close")
    for k in required:
        if candle.get(k) is None:
            return None

    ts_ms = _to_ms(candle.get("timestamp"))
    if ts_ms is None:
        return None

    try:
        o, h, low, c = map(float, (candle["open"], candle["high"], candle["low"], candle["close"]))
    except (TypeError, ValueError):
        return None
    if any(math.isnan(v) or math.isinf(v) for v in (o, h, low, c)):
        return None
    if not (low <= o <= h and low <= c <= h):
        logger.debug("dropping inconsistent candle for %s at %s", ticker.upper(), ts_ms)
        return None

    return Candle(time=ms_to_s(ts_ms), timestamp=ts_ms, open=o, high=h, low=low, close=c)
