"""
Resilient fetch: cache -> upstream -> stale cache -> degraded-empty.

The ladder is a tuple of step coroutines. Each step gets the shared
FetchContext and either returns a FetchResult (stop) or None (try the next
step). The last step always returns, so a fetch never raises for upstream
trouble; callers only ever see a payload tagged with where it came from.

Payloads are pydantic models. The cache stores their JSON text; this module
owns (de)serialization.

Concurrent misses for the same key each call upstream; there is no
single-flight coalescing.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from tokenproxy.cache import CacheStore
from tokenproxy.errors import ProxyError
from tokenproxy.observability import record_cache_outcome, record_upstream_failure
from tokenproxy.schemas import CacheSource, ErrorCode
from tokenproxy.utils import timer_ms

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class FetchResult(Generic[T]):
    payload: T
    source: CacheSource
    reason: ErrorCode | None = None  # why we fell back (stale / degraded only)
    detail: str | None = None


@dataclass
class FetchContext(Generic[T]):
    cache: CacheStore
    key: str
    ttl_ms: int
    upstream: Callable[[], Awaitable[Any]]
    transform: Callable[[Any], T]
    model: type[T]
    degraded: Callable[[ErrorCode, str], T]
    force_refresh: bool = False
    cacheable: Callable[[T], bool] | None = None

    # filled in while walking the ladder
    stale_snapshot: str | None = None
    reason: ErrorCode | None = None
    detail: str | None = None

    def load(self, raw: str) -> T | None:
        try:
            return self.model.model_validate_json(raw)
        except ValidationError:
            logger.warning("discarding unreadable cache entry %s", self.key)
            return None


Step = Callable[[FetchContext[Any]], Awaitable[FetchResult[Any] | None]]


# --------------------------------------------------------------------------------------
# Ladder steps
# --------------------------------------------------------------------------------------
async def fresh_cache(ctx: FetchContext[T]) -> FetchResult[T] | None:
    if ctx.force_refresh:
        return None
    # get() evicts expired entries, so keep what was there for the stale step
    ctx.stale_snapshot = ctx.cache.get_stale(ctx.key)
    raw = ctx.cache.get(ctx.key, ctx.ttl_ms)
    if raw is None:
        return None
    payload = ctx.load(raw)
    if payload is None:
        return None
    return FetchResult(payload=payload, source=CacheSource.CACHE_HIT)


async def call_upstream(ctx: FetchContext[T]) -> FetchResult[T] | None:
    with timer_ms() as elapsed:
        try:
            raw = await ctx.upstream()
            payload = ctx.transform(raw)
        except ProxyError as e:
            ctx.reason, ctx.detail = e.code, e.message
        except Exception as e:
            # anything the transform chokes on is a malformed upstream body
            logger.exception("could not normalize upstream response for %s", ctx.key)
            ctx.reason = ErrorCode.UPSTREAM_ERROR
            ctx.detail = f"Malformed upstream response: {e}"
        else:
            if ctx.cacheable is None or ctx.cacheable(payload):
                ctx.cache.set(ctx.key, payload.model_dump_json(by_alias=True))
            logger.debug("upstream ok for %s in %sms", ctx.key, elapsed())
            return FetchResult(payload=payload, source=CacheSource.CACHE_MISS)

    record_upstream_failure(ctx.reason)
    logger.warning(
        "upstream failed for %s after %sms: %s (%s)",
        ctx.key,
        elapsed(),
        ctx.reason.value,
        ctx.detail,
        extra={"cache_key": ctx.key},
    )
    return None


async def stale_cache(ctx: FetchContext[T]) -> FetchResult[T] | None:
    raw = ctx.cache.get_stale(ctx.key) or ctx.stale_snapshot
    if raw is None:
        return None
    payload = ctx.load(raw)
    if payload is None:
        return None
    logger.info(
        "serving stale %s (%s)",
        ctx.key,
        ctx.reason.value if ctx.reason else "-",
        extra={"cache_key": ctx.key},
    )
    return FetchResult(
        payload=payload, source=CacheSource.STALE, reason=ctx.reason, detail=ctx.detail
    )


async def degraded_empty(ctx: FetchContext[T]) -> FetchResult[T]:
    code = ctx.reason or ErrorCode.UPSTREAM_ERROR
    message = ctx.detail or "No data available"
    logger.info(
        "serving degraded-empty %s (%s)", ctx.key, code.value, extra={"cache_key": ctx.key}
    )
    return FetchResult(
        payload=ctx.degraded(code, message),
        source=CacheSource.DEGRADED,
        reason=code,
        detail=message,
    )


DEFAULT_LADDER: tuple[Step, ...] = (fresh_cache, call_upstream, stale_cache, degraded_empty)


class ResilientFetchOrchestrator:
    def __init__(self, cache: CacheStore, ladder: Sequence[Step] = DEFAULT_LADDER) -> None:
        self.cache = cache
        self.ladder = tuple(ladder)

    async def fetch(
        self,
        key: str,
        ttl_ms: int,
        upstream: Callable[[], Awaitable[Any]],
        *,
        model: type[T],
        degraded: Callable[[ErrorCode, str], T],
        transform: Callable[[Any], T] | None = None,
        force_refresh: bool = False,
        cacheable: Callable[[T], bool] | None = None,
    ) -> FetchResult[T]:
        """
        Walk the ladder for one request.

        upstream:  zero-arg coroutine function performing the upstream call
        transform: raw upstream response -> payload (defaults to model validation)
        degraded:  (error code, message) -> zeroed payload of the same shape
        cacheable: return False to serve a fresh payload without caching it
        """
        ctx = FetchContext(
            cache=self.cache,
            key=key,
            ttl_ms=ttl_ms,
            upstream=upstream,
            transform=transform or model.model_validate,
            model=model,
            degraded=degraded,
            force_refresh=force_refresh,
            cacheable=cacheable,
        )
        for step in self.ladder:
            result = await step(ctx)
            if result is not None:
                record_cache_outcome(result.source)
                return result
        raise RuntimeError(f"fallback ladder for {key} ended without a result")
