# tokenproxy/observability.py
from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from tokenproxy.schemas import CacheSource, ErrorCode

request_log = logging.getLogger("request")

# ---- Prometheus metrics (low-cardinality labels) ----
REQUEST_COUNT = Counter(
    "tp_http_requests_total",
    "Proxy HTTP requests by route template and status",
    ["method", "path", "status"],
)

# upstream calls dominate, so the buckets reach well past the 10s client timeout
REQUEST_LATENCY = Histogram(
    "tp_http_request_duration_seconds",
    "Proxy request latency (seconds)",
    ["path"],
    buckets=(0.005, 0.025, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0),
)

CACHE_OUTCOMES = Counter(
    "tp_cache_outcomes_total",
    "Fetch results by where the payload came from",
    ["source"],
)

UPSTREAM_FAILURES = Counter(
    "tp_upstream_failures_total",
    "Failed CoinGecko calls by classified reason",
    ["reason"],
)


def record_cache_outcome(source: CacheSource) -> None:
    CACHE_OUTCOMES.labels(source=source.value).inc()


def record_upstream_failure(reason: ErrorCode) -> None:
    UPSTREAM_FAILURES.labels(reason=reason.value).inc()


def metrics_endpoint():
    """Return Prometheus exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def _route_template(request: Request) -> str:
    # /api/token/{ticker} rather than one series per ticker
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


# ---- Per-request timing + JSON request log ----
async def timing_middleware(request: Request, call_next: Callable):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start

    path = _route_template(request)
    status = str(response.status_code)
    REQUEST_COUNT.labels(method=request.method, path=path, status=status).inc()
    REQUEST_LATENCY.labels(path=path).observe(elapsed)

    request_log.info(
        json.dumps(
            {
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_s": round(elapsed, 6),
                "cache": response.headers.get("x-cache"),
                "client": request.client.host if request.client else None,
            }
        )
    )
    return response
