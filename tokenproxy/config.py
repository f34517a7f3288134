# tokenproxy/config.py
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://pro-api.coingecko.com/api/v3"


@dataclass(frozen=True)
class Settings:
    api_key: str | None = None
    upstream_base_url: str = DEFAULT_BASE_URL
    upstream_timeout_s: float = 10.0
    rate_limit_max: int = 100
    rate_limit_window_ms: int = 60_000
    vs_currency: str = "usd"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """Read settings from the environment (os.environ unless given)."""
        env = os.environ if env is None else env
        return cls(
            # empty string counts as unset
            api_key=env.get("COINGECKO_API_KEY") or None,
            upstream_base_url=env.get("TP_UPSTREAM_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            upstream_timeout_s=float(env.get("TP_UPSTREAM_TIMEOUT_S", "10")),
            rate_limit_max=int(env.get("TP_RATE_LIMIT_MAX", "100")),
            rate_limit_window_ms=int(env.get("TP_RATE_LIMIT_WINDOW_MS", "60000")),
            vs_currency=env.get("TP_VS_CURRENCY", "usd").lower(),
        )
