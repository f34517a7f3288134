from __future__ import annotations

from fastapi import status
from starlette.exceptions import HTTPException

from tokenproxy.schemas import ErrorCode, ErrorResponse


class ProxyError(Exception):
    """Base for every condition the proxy classifies."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RateLimitExceeded(ProxyError):
    code = ErrorCode.RATE_LIMIT_EXCEEDED
    http_status = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, client_key: str, retry_after: int = 0) -> None:
        super().__init__("Rate limit exceeded")
        self.client_key = client_key
        self.retry_after = retry_after


class UnknownAsset(ProxyError):
    code = ErrorCode.UNKNOWN_ASSET
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, ticker: str) -> None:
        super().__init__(f"Token {ticker} not found in token list")
        self.ticker = ticker


class MissingCredential(ProxyError):
    code = ErrorCode.MISSING_CREDENTIAL

    def __init__(self, env_var: str = "COINGECKO_API_KEY") -> None:
        super().__init__(f"Missing {env_var} environment variable")


class UpstreamRateLimited(ProxyError):
    code = ErrorCode.RATE_LIMITED
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(
        self,
        message: str = (
            "CoinGecko Pro API rate limit exceeded. "
            "Cached data will be served when available."
        ),
    ) -> None:
        super().__init__(message)


class UpstreamError(ProxyError):
    code = ErrorCode.UPSTREAM_ERROR
    http_status = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(UpstreamError):
    """Transport failure before any HTTP status was received."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Failed to fetch data from CoinGecko Pro API: {message}")


def envelope_from_http_exception(exc: HTTPException) -> ErrorResponse:
    d = exc.detail
    if isinstance(d, dict) and "error" in d and "message" in d:
        return ErrorResponse.model_validate(d)  # already our shape
    # Fallback: client errors vs everything else
    code = ErrorCode.BAD_REQUEST if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR
    return ErrorResponse(error=code, message=str(d))


def envelope_from_proxy_error(exc: ProxyError) -> ErrorResponse:
    return ErrorResponse(error=exc.code, message=exc.message)
