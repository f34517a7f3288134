# tokenproxy/main.py
from __future__ import annotations

import time
from collections.abc import Callable

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tokenproxy.cache import CacheStore
from tokenproxy.config import Settings
from tokenproxy.data_client import CoinGeckoClient
from tokenproxy.dates import DateRangeResolver
from tokenproxy.errors import (
    ProxyError,
    RateLimitExceeded,
    envelope_from_http_exception,
    envelope_from_proxy_error,
)
from tokenproxy.logging_conf import setup_logging

# --- Observability ---
from tokenproxy.observability import metrics_endpoint, timing_middleware
from tokenproxy.orchestrator import ResilientFetchOrchestrator
from tokenproxy.rate_limit import RateLimiter, RatePolicy
from tokenproxy.registry import AssetRegistry

# --- Routers ---
from tokenproxy.routers import tokens
from tokenproxy.schemas import HealthResponse, VersionResponse
from tokenproxy.services import TokenService
from tokenproxy.utils import utc_now_iso
from tokenproxy.version import SERVICE_NAME, SERVICE_VERSION, version_payload

# --- Utility endpoints (not rate limited) ---
meta_router = APIRouter(tags=["meta"])


@meta_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    return HealthResponse(
        message="CoinGecko Proxy API is running",
        tokens_loaded=len(request.app.state.registry),
        timestamp=utc_now_iso(request.app.state.clock),
    )


@meta_router.get("/version", response_model=VersionResponse)
async def version():
    return VersionResponse(**version_payload())


@meta_router.get("/metrics")
async def metrics():
    return metrics_endpoint()


# --- Error envelopes ---
async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimitExceeded):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=exc.http_status,
        content=envelope_from_proxy_error(exc).model_dump(mode="json"),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope_from_http_exception(exc).model_dump(mode="json"),
        headers=exc.headers,
    )


# --- App ---
def create_app(
    settings: Settings | None = None,
    *,
    cache: CacheStore | None = None,
    limiter: RateLimiter | None = None,
    client: CoinGeckoClient | None = None,
    registry: AssetRegistry | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """
    Build the app and its process-wide state.

    The cache and rate limiter live on app.state for the life of the process;
    tests pass their own instances (and a fake clock) to stay isolated.
    """
    settings = settings or Settings.from_env()
    if cache is None:
        cache = CacheStore(clock=clock)
    if limiter is None:
        policy = RatePolicy(
            max_requests=settings.rate_limit_max, window_ms=settings.rate_limit_window_ms
        )
        limiter = RateLimiter(policy, clock=clock)
    if client is None:
        client = CoinGeckoClient.from_settings(settings)
    if registry is None:
        registry = AssetRegistry()

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION)
    app.state.settings = settings
    app.state.cache = cache
    app.state.limiter = limiter
    app.state.registry = registry
    app.state.clock = clock
    app.state.service = TokenService(
        orchestrator=ResilientFetchOrchestrator(cache),
        client=client,
        registry=registry,
        resolver=DateRangeResolver(clock=clock),
        vs_currency=settings.vs_currency,
        clock=clock,
    )

    # --- Include routers ---
    app.include_router(meta_router)
    app.include_router(tokens.router)

    # --- Middleware ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.middleware("http")(timing_middleware)

    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    return app


setup_logging()
app = create_app()
