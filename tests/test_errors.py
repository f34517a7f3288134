from starlette.exceptions import HTTPException

from tokenproxy.errors import (
    NetworkError,
    RateLimitExceeded,
    envelope_from_http_exception,
    envelope_from_proxy_error,
)
from tokenproxy.schemas import ErrorCode


def test_proxy_error_envelope():
    body = envelope_from_proxy_error(NetworkError("timed out"))
    assert body.success is False
    assert body.error is ErrorCode.UPSTREAM_ERROR
    assert body.message == "Failed to fetch data from CoinGecko Pro API: timed out"


def test_rate_limit_rejection_is_429():
    exc = RateLimitExceeded("203.0.113.7", retry_after=12)
    assert exc.http_status == 429
    assert exc.retry_after == 12
    assert envelope_from_proxy_error(exc).error is ErrorCode.RATE_LIMIT_EXCEEDED


def test_client_side_http_exception():
    body = envelope_from_http_exception(HTTPException(status_code=405, detail="Method Not Allowed"))
    assert body.error is ErrorCode.BAD_REQUEST
    assert body.message == "Method Not Allowed"


def test_server_side_http_exception():
    body = envelope_from_http_exception(HTTPException(status_code=503))
    assert body.error is ErrorCode.INTERNAL_ERROR


def test_envelope_shaped_detail_passes_through():
    detail = {"success": False, "error": "unknown-asset", "message": "Token X not found in token list"}
    body = envelope_from_http_exception(HTTPException(status_code=404, detail=detail))
    assert body.error is ErrorCode.UNKNOWN_ASSET
    assert body.message == detail["message"]
