# tokenproxy/routers/tokens.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from tokenproxy.cache import CACHE_DURATIONS, cache_control_header
from tokenproxy.errors import RateLimitExceeded
from tokenproxy.orchestrator import FetchResult
from tokenproxy.rate_limit import RateLimiter, client_key_from_headers
from tokenproxy.schemas import CacheSource, ErrorCode
from tokenproxy.services import TokenService


async def enforce_rate_limit(request: Request) -> None:
    limiter: RateLimiter = request.app.state.limiter
    client_key = client_key_from_headers(request.headers)
    if not limiter.check_and_increment(client_key):
        raise RateLimitExceeded(client_key, retry_after=limiter.retry_after(client_key))


async def get_service(request: Request) -> TokenService:
    return request.app.state.service


router = APIRouter(prefix="/api", tags=["tokens"], dependencies=[Depends(enforce_rate_limit)])


def _bool_param(v: str | int | bool | None, default: bool = False) -> bool:
    """
    Normalize truthy params from query strings (e.g., "1", "true", 1, True).
    Returns default if None.
    """
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "y", "on"}


_X_CACHE = {
    CacheSource.CACHE_HIT: "HIT",
    CacheSource.CACHE_MISS: "MISS",
    CacheSource.STALE: "STALE",
}


def render(result: FetchResult, ttl_ms: int) -> JSONResponse:
    """JSON body plus Cache-Control / X-Cache headers for a fetch result."""
    headers = {"Cache-Control": cache_control_header(ttl_ms)}
    x_cache = _X_CACHE.get(result.source)
    if x_cache:
        headers["X-Cache"] = x_cache
    if result.source is CacheSource.STALE and result.reason is not None:
        if result.reason is ErrorCode.RATE_LIMITED:
            headers["X-Rate-Limited"] = "true"
        else:
            headers["X-Error"] = result.reason.value
    body = result.payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    return JSONResponse(content=body, headers=headers)


# --------- routes ---------


@router.get("/tokens")
async def list_tokens(
    refresh: str | None = Query(None, description="true to bypass the cache"),
    service: TokenService = Depends(get_service),
) -> JSONResponse:
    result = await service.token_list(force_refresh=_bool_param(refresh))
    return render(result, CACHE_DURATIONS["METADATA"])


@router.get("/tokens/stats")
async def token_stats(
    category: str | None = Query(None, description="Optional category filter, e.g. DeFi"),
    refresh: str | None = Query(None),
    service: TokenService = Depends(get_service),
) -> JSONResponse:
    result = await service.stats(category=category, force_refresh=_bool_param(refresh))
    return render(result, CACHE_DURATIONS["MARKETS"])


@router.get("/token/{ticker}")
async def token_detail(
    ticker: str,
    refresh: str | None = Query(None),
    service: TokenService = Depends(get_service),
) -> JSONResponse:
    result = await service.token_detail(ticker, force_refresh=_bool_param(refresh))
    return render(result, CACHE_DURATIONS["PRICES"])


@router.get("/token/{ticker}/price")
async def token_price(
    ticker: str,
    refresh: str | None = Query(None),
    service: TokenService = Depends(get_service),
) -> JSONResponse:
    result = await service.token_price(ticker, force_refresh=_bool_param(refresh))
    return render(result, CACHE_DURATIONS["PRICES"])


@router.get("/token/{ticker}/volume")
async def token_volume(
    ticker: str,
    refresh: str | None = Query(None),
    service: TokenService = Depends(get_service),
) -> JSONResponse:
    result = await service.token_volume(ticker, force_refresh=_bool_param(refresh))
    return render(result, CACHE_DURATIONS["MARKETS"])


@router.get("/token/{ticker}/sparkline")
async def token_sparkline(
    ticker: str,
    refresh: str | None = Query(None),
    service: TokenService = Depends(get_service),
) -> JSONResponse:
    """Price history since launch. Always 200; failures are reported in `error`."""
    result = await service.sparkline(ticker, force_refresh=_bool_param(refresh))
    return render(result, CACHE_DURATIONS["SPARKLINE"])


@router.get("/token/{ticker}/ohlc")
async def token_ohlc(
    ticker: str,
    refresh: str | None = Query(None),
    service: TokenService = Depends(get_service),
) -> JSONResponse:
    result = await service.ohlc(ticker, force_refresh=_bool_param(refresh))
    return render(result, CACHE_DURATIONS["CHARTS"])
