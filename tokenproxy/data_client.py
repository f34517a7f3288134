"""
CoinGecko Pro client.

Every failure is raised as one of our own exceptions so the orchestrator can
classify it without knowing about httpx:

  429                     -> UpstreamRateLimited
  other non-2xx           -> UpstreamError (status_code set)
  transport failure       -> NetworkError
  body is not JSON        -> UpstreamError
  no API key configured   -> MissingCredential (before any request is made)

Notes / Pitfalls:
- The range endpoint picks granularity itself (daily for ranges > 90 days).
- The OHLC endpoint only accepts day counts from dates.DAY_BUCKETS.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any

import httpx

from tokenproxy.config import DEFAULT_BASE_URL, Settings
from tokenproxy.dates import DateRange
from tokenproxy.errors import MissingCredential, NetworkError, UpstreamError, UpstreamRateLimited
from tokenproxy.schemas import Candle, MarketCapPoint, PricePoint, VolumePoint
from tokenproxy.utils import ms_to_s
from tokenproxy.validator import validate_candle

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-cg-pro-api-key"

# Flags that strip the heavy sub-objects from /coins/{id}
_COIN_LOOKUP_PARAMS = {
    "localization": "false",
    "tickers": "false",
    "community_data": "false",
    "developer_data": "false",
}


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict | list):
        return json.dumps(body)
    return resp.text or resp.reason_phrase or "Unknown error"


class CoinGeckoClient:
    def __init__(
        self,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> CoinGeckoClient:
        return cls(
            api_key=settings.api_key,
            base_url=settings.upstream_base_url,
            timeout_s=settings.upstream_timeout_s,
            transport=transport,
        )

    async def get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        if not self.api_key:
            raise MissingCredential()

        url = f"{self.base_url}{path}"
        headers = {API_KEY_HEADER: self.api_key, "accept": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                r = await client.get(url, params=params, headers=headers)
        except httpx.RequestError as e:
            raise NetworkError(str(e) or type(e).__name__) from e

        if r.status_code == 429:
            raise UpstreamRateLimited()
        # 3xx included: redirects are not followed
        if not r.is_success:
            raise UpstreamError(
                f"CoinGecko Pro API returned {r.status_code}: {_error_detail(r)}",
                status_code=r.status_code,
            )

        try:
            return r.json()
        except ValueError as e:
            raise UpstreamError(f"CoinGecko Pro API returned a malformed body: {e}") from e

    async def fetch_coin(self, coin_id: str) -> dict[str, Any]:
        data = await self.get_json(f"/coins/{coin_id}", dict(_COIN_LOOKUP_PARAMS))
        if not isinstance(data, dict):
            raise UpstreamError(f"Unexpected /coins/{coin_id} payload: {type(data).__name__}")
        return data

    async def fetch_market_chart_range(
        self, coin_id: str, date_range: DateRange, vs_currency: str = "usd"
    ) -> dict[str, Any]:
        try:
            data = await self.get_json(
                f"/coins/{coin_id}/market_chart/range",
                {
                    "vs_currency": vs_currency,
                    "from": str(date_range.from_epoch),
                    "to": str(date_range.to_epoch),
                },
            )
        except UpstreamError as e:
            if e.status_code == 404:
                raise UpstreamError(
                    f'The coin ID "{coin_id}" may not exist on CoinGecko yet', status_code=404
                ) from e
            raise
        if not isinstance(data, dict):
            raise UpstreamError(f"Unexpected market_chart payload: {type(data).__name__}")
        return data

    async def fetch_ohlc(self, coin_id: str, days: int, vs_currency: str = "usd") -> list[Any]:
        data = await self.get_json(
            f"/coins/{coin_id}/ohlc", {"vs_currency": vs_currency, "days": str(days)}
        )
        if not isinstance(data, list):
            raise UpstreamError(f"Unexpected ohlc payload: {type(data).__name__}")
        return data


# --------------------------------------------------------------------------------------
# Parsing
# --------------------------------------------------------------------------------------
def _pairs(rows: Any) -> list[tuple[int, float]]:
    """[[timestamp_ms, value], ...] -> clean (ms, value) tuples; bad rows dropped."""
    out: list[tuple[int, float]] = []
    for row in rows or []:
        if not isinstance(row, list | tuple) or len(row) < 2:
            continue
        ts, val = row[0], row[1]
        if ts is None or val is None:
            continue
        try:
            ts_ms, value = int(ts), float(val)
        except (TypeError, ValueError):
            continue
        if math.isnan(value) or math.isinf(value):
            continue
        out.append((ts_ms, value))
    return out


def normalize_market_chart(
    resp: dict[str, Any],
) -> tuple[list[PricePoint], list[MarketCapPoint], list[VolumePoint]]:
    """
    Convert a market_chart/range response into typed points.
    CoinGecko returns:
      {prices: [[ms, price]], market_caps: [[ms, cap]], total_volumes: [[ms, vol]]}
    """
    prices = [
        PricePoint(time=ms_to_s(ms), timestamp=ms, price=v) for ms, v in _pairs(resp.get("prices"))
    ]
    caps = [
        MarketCapPoint(time=ms_to_s(ms), timestamp=ms, market_cap=v)
        for ms, v in _pairs(resp.get("market_caps"))
    ]
    volumes = [
        VolumePoint(time=ms_to_s(ms), timestamp=ms, volume=v)
        for ms, v in _pairs(resp.get("total_volumes"))
    ]
    return prices, caps, volumes


def normalize_ohlc(rows: list[Any], ticker: str) -> list[Candle]:
    """[[ms, open, high, low, close], ...] -> validated candles."""
    candles: list[Candle] = []
    for row in rows:
        if not isinstance(row, list | tuple) or len(row) < 5:
            continue
        candidate = {
            "timestamp": row[0],
            "open": row[1],
            "high": row[2],
            "low": row[3],
            "close": row[4],
        }
        good = validate_candle(candidate, ticker)
        if good:
            candles.append(good)
    return candles
