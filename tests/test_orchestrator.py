from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel

from tokenproxy.errors import MissingCredential, NetworkError, UpstreamError, UpstreamRateLimited
from tokenproxy.orchestrator import (
    DEFAULT_LADDER,
    ResilientFetchOrchestrator,
    call_upstream,
    degraded_empty,
    fresh_cache,
)
from tokenproxy.schemas import CacheSource, ErrorCode

TTL_MS = 60_000


class Quote(BaseModel):
    ticker: str
    price: float = 0
    error: ErrorCode | None = None
    message: str | None = None


def empty_quote(code: ErrorCode, message: str) -> Quote:
    return Quote(ticker="APT", error=code, message=message)


class FakeUpstream:
    """Coroutine function returning (or raising) the queued results in order."""

    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def orchestrator(cache) -> ResilientFetchOrchestrator:
    return ResilientFetchOrchestrator(cache)


async def fetch(orchestrator, upstream, **kwargs):
    return await orchestrator.fetch(
        "token_price_aptos",
        TTL_MS,
        upstream,
        model=Quote,
        degraded=empty_quote,
        **kwargs,
    )


def test_default_ladder_order():
    assert [step.__name__ for step in DEFAULT_LADDER] == [
        "fresh_cache",
        "call_upstream",
        "stale_cache",
        "degraded_empty",
    ]


@pytest.mark.asyncio
async def test_cold_cache_then_hit(orchestrator, cache):
    upstream = FakeUpstream({"ticker": "APT", "price": 5.25})

    first = await fetch(orchestrator, upstream)
    assert first.source is CacheSource.CACHE_MISS
    assert first.payload == Quote(ticker="APT", price=5.25)
    assert "token_price_aptos" in cache

    second = await fetch(orchestrator, upstream)
    assert second.source is CacheSource.CACHE_HIT
    assert second.payload == first.payload
    assert upstream.calls == 1


@pytest.mark.asyncio
async def test_upstream_rate_limited_serves_stale_regardless_of_age(orchestrator, clock):
    upstream = FakeUpstream({"ticker": "APT", "price": 5.25}, UpstreamRateLimited())
    await fetch(orchestrator, upstream)
    clock.advance(30 * 24 * 3600)

    result = await fetch(orchestrator, upstream)

    assert result.source is CacheSource.STALE
    assert result.reason is ErrorCode.RATE_LIMITED
    assert result.payload == Quote(ticker="APT", price=5.25)
    assert upstream.calls == 2


@pytest.mark.asyncio
async def test_upstream_rate_limited_without_cache_degrades(orchestrator, cache):
    result = await fetch(orchestrator, FakeUpstream(UpstreamRateLimited()))

    assert result.source is CacheSource.DEGRADED
    assert result.reason is ErrorCode.RATE_LIMITED
    assert result.payload.price == 0
    assert result.payload.error is ErrorCode.RATE_LIMITED
    assert "rate limit" in result.payload.message
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_force_refresh_always_calls_upstream(orchestrator, cache):
    upstream = FakeUpstream({"ticker": "APT", "price": 1.0}, {"ticker": "APT", "price": 2.0})
    await fetch(orchestrator, upstream)

    result = await fetch(orchestrator, upstream, force_refresh=True)

    assert upstream.calls == 2
    assert result.source is CacheSource.CACHE_MISS
    assert result.payload.price == 2.0
    assert Quote.model_validate_json(cache.get_stale("token_price_aptos")).price == 2.0


@pytest.mark.asyncio
async def test_force_refresh_failure_still_falls_back_to_cache(orchestrator):
    upstream = FakeUpstream({"ticker": "APT", "price": 1.0}, UpstreamError("boom", 500))
    await fetch(orchestrator, upstream)

    result = await fetch(orchestrator, upstream, force_refresh=True)

    assert result.source is CacheSource.STALE
    assert result.reason is ErrorCode.UPSTREAM_ERROR
    assert result.detail == "boom"


@pytest.mark.parametrize(
    "exc, code",
    [
        (UpstreamError("CoinGecko Pro API returned 500: oops", 500), ErrorCode.UPSTREAM_ERROR),
        (NetworkError("connection refused"), ErrorCode.UPSTREAM_ERROR),
        (MissingCredential(), ErrorCode.MISSING_CREDENTIAL),
        (UpstreamRateLimited(), ErrorCode.RATE_LIMITED),
    ],
)
@pytest.mark.asyncio
async def test_failures_are_classified(orchestrator, exc, code):
    result = await fetch(orchestrator, FakeUpstream(exc))
    assert result.source is CacheSource.DEGRADED
    assert result.payload.error is code
    assert result.payload.message == exc.message


@pytest.mark.asyncio
async def test_malformed_body_is_upstream_error(orchestrator, cache):
    def transform(raw: dict) -> Quote:
        return Quote(ticker=raw["symbol"], price=raw["market_data"]["current_price"])

    result = await fetch(orchestrator, FakeUpstream({"unexpected": True}), transform=transform)

    assert result.source is CacheSource.DEGRADED
    assert result.reason is ErrorCode.UPSTREAM_ERROR
    assert result.detail.startswith("Malformed upstream response")
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_uncacheable_payload_is_served_but_not_stored(orchestrator, cache):
    upstream = FakeUpstream({"ticker": "APT", "price": 0})

    result = await fetch(orchestrator, upstream, cacheable=lambda q: q.price > 0)
    assert result.source is CacheSource.CACHE_MISS
    assert len(cache) == 0

    again = await fetch(orchestrator, upstream, cacheable=lambda q: q.price > 0)
    assert again.source is CacheSource.CACHE_MISS
    assert upstream.calls == 2


@pytest.mark.asyncio
async def test_unreadable_cache_entry_counts_as_miss(orchestrator, cache):
    cache.set("token_price_aptos", "not json")
    result = await fetch(orchestrator, FakeUpstream({"ticker": "APT", "price": 3.0}))
    assert result.source is CacheSource.CACHE_MISS
    assert result.payload.price == 3.0


@pytest.mark.asyncio
async def test_custom_ladder_without_stale_step(cache):
    orchestrator = ResilientFetchOrchestrator(cache, ladder=(fresh_cache, call_upstream, degraded_empty))
    upstream = FakeUpstream({"ticker": "APT", "price": 1.0}, UpstreamRateLimited())
    await fetch(orchestrator, upstream, force_refresh=True)

    result = await fetch(orchestrator, upstream, force_refresh=True)
    assert result.source is CacheSource.DEGRADED


@pytest.mark.asyncio
async def test_ladder_must_terminate(cache):
    orchestrator = ResilientFetchOrchestrator(cache, ladder=(fresh_cache,))
    with pytest.raises(RuntimeError, match="ended without a result"):
        await fetch(orchestrator, FakeUpstream({"ticker": "APT"}))
