"""
Shared fixtures: a controllable clock and a fake CoinGecko behind httpx.MockTransport.
"""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from tokenproxy.cache import CacheStore
from tokenproxy.config import Settings
from tokenproxy.data_client import CoinGeckoClient
from tokenproxy.main import create_app

# 2025-10-01T12:00:00Z
NOW = 1_759_320_000.0
BASE_URL = "https://cg.test/api/v3"


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCoinGecko:
    """Canned responses per upstream path, plus a log of every request made."""

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.calls: list[httpx.Request] = []

    def respond(
        self, path: str, json: Any = None, status: int = 200, exc: Exception | None = None
    ) -> None:
        self.routes[path] = (status, json, exc)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.calls if r.url.path.endswith(path)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path.removeprefix("/api/v3")
        if path not in self.routes:
            return httpx.Response(404, json={"error": "coin not found"})
        status, body, exc = self.routes[path]
        if exc is not None:
            raise exc
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def coin_payload(
    coin_id: str,
    name: str,
    price: float = 1.0,
    market_cap: float = 1_000_000.0,
    volume: float = 50_000.0,
) -> dict[str, Any]:
    return {
        "id": coin_id,
        "symbol": coin_id[:3],
        "name": name,
        "image": {"small": f"https://img.test/{coin_id}-small.png", "large": ""},
        "market_cap_rank": 42,
        "market_data": {
            "current_price": {"usd": price},
            "price_change_24h": 0.05,
            "price_change_percentage_24h": 2.5,
            "price_change_percentage_7d": -1.0,
            "price_change_percentage_30d": 12.0,
            "total_volume": {"usd": volume},
            "market_cap": {"usd": market_cap},
            "high_24h": {"usd": price * 1.1},
            "low_24h": {"usd": price * 0.9},
            "ath": {"usd": price * 4},
            "ath_date": {"usd": "2025-01-26T00:00:00.000Z"},
            "atl": {"usd": price / 2},
            "atl_date": {"usd": None},
        },
    }


# 2025-03-21, 2025-06-15 (approx), 2025-10-01 in milliseconds
CHART_PAYLOAD = {
    "prices": [[1742515200000, 10.0], [1750000000000, 8.0], [1759276800000, 12.0]],
    "market_caps": [[1742515200000, 100.0], [1750000000000, None], [1759276800000, 120.0]],
    "total_volumes": [[1742515200000, 5.0], [1750000000000, 6.0], [1759276800000, 7.0]],
}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheStore:
    return CacheStore(clock=clock)


@pytest.fixture
def upstream() -> FakeCoinGecko:
    return FakeCoinGecko()


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="test-key", upstream_base_url=BASE_URL)


@pytest.fixture
def coingecko(settings: Settings, upstream: FakeCoinGecko) -> CoinGeckoClient:
    return CoinGeckoClient.from_settings(settings, transport=upstream.transport())


@pytest.fixture
def app(settings, clock, coingecko):
    return create_app(settings, client=coingecko, clock=clock)


@pytest.fixture
def api(app) -> TestClient:
    return TestClient(app)
