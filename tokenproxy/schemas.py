from __future__ import annotations

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


def camel(name: str) -> str:
    """snake_case -> camelCase, leaving digit runs alone (volume_24h -> volume24h)."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


class CamelModel(BaseModel):
    """Dashboard payloads use camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=camel, populate_by_name=True)


# --- Error taxonomy ---
class ErrorCode(str, Enum):
    RATE_LIMIT_EXCEEDED = "rate-limit-exceeded"  # our own limiter rejected the caller
    RATE_LIMITED = "rate-limited"  # upstream rejected us
    UPSTREAM_ERROR = "upstream-error"
    MISSING_CREDENTIAL = "missing-credential"
    UNKNOWN_ASSET = "unknown-asset"
    BAD_REQUEST = "bad-request"
    INTERNAL_ERROR = "internal-error"


class CacheSource(str, Enum):
    CACHE_HIT = "cache-hit"
    CACHE_MISS = "cache-miss"
    STALE = "stale"
    DEGRADED = "degraded"


class ErrorResponse(CamelModel):
    success: bool = False
    error: ErrorCode
    message: str


# --- Simple lookup envelopes ---
class Envelope(CamelModel, Generic[T]):
    success: bool = True
    data: T | None = None
    error: ErrorCode | None = None
    message: str | None = None


class TokenInfo(CamelModel):
    name: str
    ticker: str
    start_date: str
    has_token: bool
    category: str


class TokenListResponse(CamelModel):
    success: bool = True
    count: int
    data: list[TokenInfo]


class TokenDetail(CamelModel):
    id: str
    symbol: str
    name: str
    image: str = ""
    start_date: str
    has_token: bool = True
    current_price: float = 0
    price_change_24h: float = 0
    price_change_percentage_24h: float = 0
    price_change_percentage_7d: float = 0
    price_change_percentage_30d: float = 0
    total_volume: float = 0
    market_cap: float = 0
    market_cap_rank: int = 0
    high_24h: float = 0
    low_24h: float = 0
    ath: float = 0
    ath_date: str | None = None
    atl: float = 0
    atl_date: str | None = None


class TokenPrice(CamelModel):
    ticker: str
    name: str
    start_date: str
    current_price: float = 0
    image: str = ""


class TokenVolume(CamelModel):
    ticker: str
    name: str
    start_date: str
    total_volume: float = 0
    market_cap: float = 0
    market_cap_rank: int = 0


# --- Time series ---
class SparkPoint(CamelModel):
    time: int  # unix seconds
    price: float


class PricePoint(CamelModel):
    time: int
    timestamp: int  # unix milliseconds, as sent by CoinGecko
    price: float


class MarketCapPoint(CamelModel):
    time: int
    timestamp: int
    market_cap: float


class VolumePoint(CamelModel):
    time: int
    timestamp: int
    volume: float


class SparklinePayload(CamelModel):
    """Range chart for a token since launch. Always success=True, see `error`."""

    success: bool = True
    ticker: str
    name: str = ""
    start_date: str = ""
    coin_id: str = ""
    from_epoch: int = Field(0, alias="from")
    to_epoch: int = Field(0, alias="to")
    days: int = 0
    points: list[SparkPoint] = Field(default_factory=list)
    prices: list[PricePoint] = Field(default_factory=list)
    market_caps: list[MarketCapPoint] = Field(default_factory=list)
    volumes: list[VolumePoint] = Field(default_factory=list)
    price_array: list[float] = Field(default_factory=list)
    time_array: list[int] = Field(default_factory=list)
    timestamp_array: list[int] = Field(default_factory=list)
    market_cap_array: list[float] = Field(default_factory=list)
    volume_array: list[float] = Field(default_factory=list)
    current_price: float = 0
    start_price: float = 0
    price_change: float = 0
    price_change_percent: float = 0
    min_price: float = 0
    max_price: float = 0
    data_points: int = 0
    error: ErrorCode | None = None
    message: str | None = None


class Candle(CamelModel):
    time: int
    timestamp: int
    open: float
    high: float
    low: float
    close: float


class OhlcPayload(CamelModel):
    success: bool = True
    ticker: str
    name: str = ""
    coin_id: str = ""
    days: int = 0
    candles: list[Candle] = Field(default_factory=list)
    data_points: int = 0
    error: ErrorCode | None = None
    message: str | None = None


# --- Stats ---
class StatsToken(CamelModel):
    ticker: str
    name: str
    category: str
    market_cap: float = 0
    volume_24h: float = 0
    price: float = 0
    price_change_24h: float = 0


class CategoryStats(CamelModel):
    category: str
    token_count: int = 0
    total_market_cap: float = 0
    total_volume_24h: float = 0
    successful_tokens: int = 0
    failed_tokens: int = 0
    tokens: list[StatsToken] = Field(default_factory=list)


class StatsSummary(CamelModel):
    total_tokens: int
    successful_tokens: int
    failed_tokens: int
    total_market_cap: float
    total_volume_24h: float
    average_market_cap: float
    average_volume_24h: float


class StatsResponse(CamelModel):
    success: bool = True
    summary: StatsSummary
    by_category: list[CategoryStats]
    tokens: list[StatsToken]
    error: ErrorCode | None = None
    message: str | None = None


# --- Health / version ---
class HealthResponse(CamelModel):
    success: bool = True
    message: str
    tokens_loaded: int
    timestamp: str


class VersionResponse(CamelModel):
    service: str
    service_version: str
