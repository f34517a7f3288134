"""
Per-endpoint logic: asset lookup, cache keys, upstream calls and payload shaping.

Routes stay thin; every data route maps onto one TokenService method, which
returns a FetchResult from the orchestrator so the route can render cache
headers.
"""

from __future__ import annotations

import asyncio
import math
import re
import time
from collections.abc import Callable
from typing import Any

from tokenproxy.cache import CACHE_DURATIONS
from tokenproxy.data_client import CoinGeckoClient, normalize_market_chart, normalize_ohlc
from tokenproxy.dates import DateRange, DateRangeResolver, day_start
from tokenproxy.orchestrator import FetchResult, ResilientFetchOrchestrator
from tokenproxy.registry import AssetDescriptor, AssetRegistry
from tokenproxy.schemas import (
    CacheSource,
    CategoryStats,
    Envelope,
    ErrorCode,
    OhlcPayload,
    SparklinePayload,
    SparkPoint,
    StatsResponse,
    StatsSummary,
    StatsToken,
    TokenDetail,
    TokenInfo,
    TokenListResponse,
    TokenPrice,
    TokenVolume,
)

DetailEnvelope = Envelope[TokenDetail]
PriceEnvelope = Envelope[TokenPrice]
VolumeEnvelope = Envelope[TokenVolume]

NO_HISTORY_MESSAGE = "No historical data available - token may not have trading history yet"
NO_OHLC_MESSAGE = "No OHLC data available for this range"


# --------------------------------------------------------------------------------------
# /coins/{id} field access
# --------------------------------------------------------------------------------------
def _market(data: dict[str, Any], field: str, currency: str) -> Any:
    """market_data.<field>[.<currency>], with CoinGecko's nulls mapped to 0."""
    value = (data.get("market_data") or {}).get(field)
    if isinstance(value, dict):
        value = value.get(currency)
    return value or 0


def _image(data: dict[str, Any]) -> str:
    image = data.get("image") or {}
    return image.get("small") or image.get("large") or ""


def build_detail(data: dict[str, Any], asset: AssetDescriptor, currency: str) -> DetailEnvelope:
    return DetailEnvelope(
        data=TokenDetail(
            id=data.get("id") or asset.canonical_id,
            symbol=(data.get("symbol") or asset.ticker).upper(),
            name=data.get("name") or asset.name,
            image=_image(data),
            start_date=asset.launch_date_text,
            has_token=asset.has_token,
            current_price=_market(data, "current_price", currency),
            price_change_24h=_market(data, "price_change_24h", currency),
            price_change_percentage_24h=_market(data, "price_change_percentage_24h", currency),
            price_change_percentage_7d=_market(data, "price_change_percentage_7d", currency),
            price_change_percentage_30d=_market(data, "price_change_percentage_30d", currency),
            total_volume=_market(data, "total_volume", currency),
            market_cap=_market(data, "market_cap", currency),
            market_cap_rank=data.get("market_cap_rank") or 0,
            high_24h=_market(data, "high_24h", currency),
            low_24h=_market(data, "low_24h", currency),
            ath=_market(data, "ath", currency),
            ath_date=_market(data, "ath_date", currency) or None,
            atl=_market(data, "atl", currency),
            atl_date=_market(data, "atl_date", currency) or None,
        )
    )


def build_price(data: dict[str, Any], asset: AssetDescriptor, currency: str) -> PriceEnvelope:
    return PriceEnvelope(
        data=TokenPrice(
            ticker=asset.ticker,
            name=data.get("name") or asset.name,
            start_date=asset.launch_date_text,
            current_price=_market(data, "current_price", currency),
            image=_image(data),
        )
    )


def build_volume(data: dict[str, Any], asset: AssetDescriptor, currency: str) -> VolumeEnvelope:
    return VolumeEnvelope(
        data=TokenVolume(
            ticker=asset.ticker,
            name=data.get("name") or asset.name,
            start_date=asset.launch_date_text,
            total_volume=_market(data, "total_volume", currency),
            market_cap=_market(data, "market_cap", currency),
            market_cap_rank=data.get("market_cap_rank") or 0,
        )
    )


# --------------------------------------------------------------------------------------
# Time series
# --------------------------------------------------------------------------------------
def empty_sparkline(
    ticker: str,
    date_range: DateRange,
    asset: AssetDescriptor | None = None,
    error: ErrorCode | None = None,
    message: str | None = None,
) -> SparklinePayload:
    return SparklinePayload(
        ticker=ticker,
        name=asset.name if asset else "",
        start_date=asset.launch_date_text if asset else "",
        coin_id=asset.canonical_id if asset else "",
        from_epoch=date_range.from_epoch,
        to_epoch=date_range.to_epoch,
        error=error,
        message=message,
    )


def build_sparkline(
    resp: dict[str, Any], asset: AssetDescriptor, date_range: DateRange
) -> SparklinePayload:
    prices, caps, volumes = normalize_market_chart(resp)
    if not prices:
        # still success=True so the dashboard shows the endpoint as online
        return empty_sparkline(asset.ticker, date_range, asset, message=NO_HISTORY_MESSAGE)

    price_array = [p.price for p in prices]
    start_price = prices[0].price
    end_price = prices[-1].price
    change_pct = ((end_price - start_price) / start_price) * 100 if start_price > 0 else 0

    return SparklinePayload(
        ticker=asset.ticker,
        name=asset.name,
        start_date=asset.launch_date_text,
        coin_id=asset.canonical_id,
        from_epoch=date_range.from_epoch,
        to_epoch=date_range.to_epoch,
        days=date_range.days,
        points=[SparkPoint(time=p.time, price=p.price) for p in prices],
        prices=prices,
        market_caps=caps,
        volumes=volumes,
        price_array=price_array,
        time_array=[p.time for p in prices],
        timestamp_array=[p.timestamp for p in prices],
        market_cap_array=[m.market_cap for m in caps],
        volume_array=[v.volume for v in volumes],
        current_price=end_price,
        start_price=start_price,
        price_change=end_price - start_price,
        price_change_percent=change_pct,
        min_price=min(price_array),
        max_price=max(price_array),
        data_points=len(prices),
    )


# --------------------------------------------------------------------------------------
# Stats
# --------------------------------------------------------------------------------------
def category_slug(category: str) -> str:
    return re.sub(r"\s+", "_", category.strip().lower())


def build_stats(rows: list[tuple[AssetDescriptor, FetchResult[DetailEnvelope]]]) -> StatsResponse:
    tokens: list[StatsToken] = []
    groups: dict[str, CategoryStats] = {}
    ok_count = 0
    total_cap = 0.0
    total_volume = 0.0

    for asset, result in rows:
        ok = result.source is not CacheSource.DEGRADED and result.payload.data is not None
        detail = result.payload.data if ok else None
        category = asset.category or "Uncategorized"
        token = StatsToken(
            ticker=asset.ticker,
            name=asset.name,
            category=category,
            market_cap=detail.market_cap if detail else 0,
            volume_24h=detail.total_volume if detail else 0,
            price=detail.current_price if detail else 0,
            price_change_24h=detail.price_change_percentage_24h if detail else 0,
        )
        tokens.append(token)

        group = groups.setdefault(category, CategoryStats(category=category))
        group.token_count += 1
        group.total_market_cap += token.market_cap
        group.total_volume_24h += token.volume_24h
        group.tokens.append(token)
        if ok:
            ok_count += 1
            group.successful_tokens += 1
        else:
            group.failed_tokens += 1

        total_cap += token.market_cap
        total_volume += token.volume_24h

    for group in groups.values():
        group.tokens.sort(key=lambda t: t.market_cap, reverse=True)
    by_category = sorted(groups.values(), key=lambda g: g.total_market_cap, reverse=True)

    return StatsResponse(
        summary=StatsSummary(
            total_tokens=len(rows),
            successful_tokens=ok_count,
            failed_tokens=len(rows) - ok_count,
            total_market_cap=total_cap,
            total_volume_24h=total_volume,
            average_market_cap=total_cap / ok_count if ok_count else 0,
            average_volume_24h=total_volume / ok_count if ok_count else 0,
        ),
        by_category=by_category,
        tokens=tokens,
    )


# --------------------------------------------------------------------------------------
# Service
# --------------------------------------------------------------------------------------
class TokenService:
    def __init__(
        self,
        orchestrator: ResilientFetchOrchestrator,
        client: CoinGeckoClient,
        registry: AssetRegistry,
        resolver: DateRangeResolver,
        vs_currency: str = "usd",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.orchestrator = orchestrator
        self.client = client
        self.registry = registry
        self.resolver = resolver
        self.vs_currency = vs_currency
        self._clock = clock

    # ---- simple lookups (raise UnknownAsset) ----
    async def token_list(self, force_refresh: bool = False) -> FetchResult[TokenListResponse]:
        async def listing() -> TokenListResponse:
            data = [
                TokenInfo(
                    name=a.name,
                    ticker=a.ticker,
                    start_date=a.launch_date_text,
                    has_token=a.has_token,
                    category=a.category,
                )
                for a in self.registry
            ]
            return TokenListResponse(count=len(data), data=data)

        return await self.orchestrator.fetch(
            "tokens_list",
            CACHE_DURATIONS["METADATA"],
            listing,
            model=TokenListResponse,
            degraded=lambda code, msg: TokenListResponse(success=False, count=0, data=[]),
            force_refresh=force_refresh,
        )

    async def _detail_for(
        self, asset: AssetDescriptor, force_refresh: bool
    ) -> FetchResult[DetailEnvelope]:
        coin_id = asset.canonical_id
        return await self.orchestrator.fetch(
            f"token_{coin_id}",
            CACHE_DURATIONS["PRICES"],
            lambda: self.client.fetch_coin(coin_id),
            model=DetailEnvelope,
            transform=lambda data: build_detail(data, asset, self.vs_currency),
            degraded=lambda code, msg: DetailEnvelope(
                success=False,
                data=TokenDetail(
                    id=coin_id,
                    symbol=asset.ticker,
                    name=asset.name,
                    start_date=asset.launch_date_text,
                    has_token=asset.has_token,
                ),
                error=code,
                message=msg,
            ),
            force_refresh=force_refresh,
        )

    async def token_detail(
        self, ticker: str, force_refresh: bool = False
    ) -> FetchResult[DetailEnvelope]:
        return await self._detail_for(self.registry.require(ticker), force_refresh)

    async def token_price(
        self, ticker: str, force_refresh: bool = False
    ) -> FetchResult[PriceEnvelope]:
        asset = self.registry.require(ticker)
        coin_id = asset.canonical_id
        return await self.orchestrator.fetch(
            f"token_price_{coin_id}",
            CACHE_DURATIONS["PRICES"],
            lambda: self.client.fetch_coin(coin_id),
            model=PriceEnvelope,
            transform=lambda data: build_price(data, asset, self.vs_currency),
            degraded=lambda code, msg: PriceEnvelope(
                success=False,
                data=TokenPrice(
                    ticker=asset.ticker, name=asset.name, start_date=asset.launch_date_text
                ),
                error=code,
                message=msg,
            ),
            force_refresh=force_refresh,
        )

    async def token_volume(
        self, ticker: str, force_refresh: bool = False
    ) -> FetchResult[VolumeEnvelope]:
        asset = self.registry.require(ticker)
        coin_id = asset.canonical_id
        return await self.orchestrator.fetch(
            f"token_volume_{coin_id}",
            CACHE_DURATIONS["MARKETS"],
            lambda: self.client.fetch_coin(coin_id),
            model=VolumeEnvelope,
            transform=lambda data: build_volume(data, asset, self.vs_currency),
            degraded=lambda code, msg: VolumeEnvelope(
                success=False,
                data=TokenVolume(
                    ticker=asset.ticker, name=asset.name, start_date=asset.launch_date_text
                ),
                error=code,
                message=msg,
            ),
            force_refresh=force_refresh,
        )

    async def stats(
        self, category: str | None = None, force_refresh: bool = False
    ) -> FetchResult[StatsResponse]:
        key = f"tokens_stats_category_{category_slug(category)}" if category else "tokens_stats_all"
        assets = self.registry.by_category(category)

        async def collect() -> list[tuple[AssetDescriptor, FetchResult[DetailEnvelope]]]:
            results = await asyncio.gather(*(self._detail_for(a, force_refresh) for a in assets))
            return list(zip(assets, results, strict=True))

        return await self.orchestrator.fetch(
            key,
            CACHE_DURATIONS["MARKETS"],
            collect,
            model=StatsResponse,
            transform=build_stats,
            degraded=lambda code, msg: build_stats([]).model_copy(
                update={"success": False, "error": code, "message": msg}
            ),
            force_refresh=force_refresh,
        )

    # ---- time series (never raise; unknown assets degrade) ----
    async def sparkline(
        self, ticker: str, force_refresh: bool = False
    ) -> FetchResult[SparklinePayload]:
        ticker = (ticker or "").upper()
        asset = self.registry.get(ticker)
        if asset is None:
            now = math.floor(self._clock())
            message = f"Token {ticker} not found in token list"
            payload = empty_sparkline(
                ticker, DateRange(0, now), error=ErrorCode.UNKNOWN_ASSET, message=message
            )
            return FetchResult(
                payload=payload,
                source=CacheSource.DEGRADED,
                reason=ErrorCode.UNKNOWN_ASSET,
                detail=message,
            )

        coin_id = asset.canonical_id
        date_range = self.resolver.resolve(asset.launch_date_text)
        # day-rounded so one asset occupies at most one key per calendar day
        key = (
            f"token_sparkline_{coin_id}_"
            f"{day_start(date_range.from_epoch)}_{day_start(date_range.to_epoch)}"
        )
        return await self.orchestrator.fetch(
            key,
            CACHE_DURATIONS["SPARKLINE"],
            lambda: self.client.fetch_market_chart_range(coin_id, date_range, self.vs_currency),
            model=SparklinePayload,
            transform=lambda resp: build_sparkline(resp, asset, date_range),
            degraded=lambda code, msg: empty_sparkline(
                asset.ticker, date_range, asset, error=code, message=msg
            ),
            force_refresh=force_refresh,
            cacheable=lambda p: p.data_points > 0,
        )

    async def ohlc(self, ticker: str, force_refresh: bool = False) -> FetchResult[OhlcPayload]:
        ticker = (ticker or "").upper()
        asset = self.registry.get(ticker)
        if asset is None:
            message = f"Token {ticker} not found in token list"
            return FetchResult(
                payload=OhlcPayload(ticker=ticker, error=ErrorCode.UNKNOWN_ASSET, message=message),
                source=CacheSource.DEGRADED,
                reason=ErrorCode.UNKNOWN_ASSET,
                detail=message,
            )

        coin_id = asset.canonical_id
        days = self.resolver.days_bucket(asset.launch_date_text)
        today = day_start(math.floor(self._clock()))

        def shape(rows: list[Any]) -> OhlcPayload:
            candles = normalize_ohlc(rows, asset.ticker)
            return OhlcPayload(
                ticker=asset.ticker,
                name=asset.name,
                coin_id=coin_id,
                days=days,
                candles=candles,
                data_points=len(candles),
                message=None if candles else NO_OHLC_MESSAGE,
            )

        return await self.orchestrator.fetch(
            f"token_ohlc_{coin_id}_{days}_{today}",
            CACHE_DURATIONS["CHARTS"],
            lambda: self.client.fetch_ohlc(coin_id, days, self.vs_currency),
            model=OhlcPayload,
            transform=shape,
            degraded=lambda code, msg: OhlcPayload(
                ticker=asset.ticker,
                name=asset.name,
                coin_id=coin_id,
                days=days,
                error=code,
                message=msg,
            ),
            force_refresh=force_refresh,
            cacheable=lambda p: p.data_points > 0,
        )
