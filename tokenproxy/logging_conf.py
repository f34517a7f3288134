# tokenproxy/logging_conf.py
from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from logging.config import dictConfig
from typing import Any

REDACTED = "***"


class JsonFormatter(logging.Formatter):
    """One JSON object per line on stdout."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # passed via logger.x(..., extra={"cache_key": ...})
        for extra_key in ("cache_key", "coin_id", "module", "funcName"):
            val = getattr(record, extra_key, None)
            if val:
                payload[extra_key] = val
        return json.dumps(payload, ensure_ascii=False)


class RedactSecretsFilter(logging.Filter):
    """Masks configured secrets (the CoinGecko key) anywhere in a rendered message."""

    def __init__(self, secrets: Iterable[str | None] = ()) -> None:
        super().__init__()
        self.secrets = [s for s in secrets if s]

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self.secrets:
            redacted = redacted.replace(secret, REDACTED)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


# name -> level override (None means LOG_LEVEL)
_LOGGERS: dict[str, str | None] = {
    "uvicorn": None,
    "uvicorn.error": None,
    # the timing middleware writes its own request line under "request"
    "uvicorn.access": "WARNING",
    "fastapi": None,
    "starlette": None,
    # modules log via logging.getLogger(__name__) -> "tokenproxy.<module>"
    "tokenproxy": None,
    "request": None,
    # httpx logs every upstream request at INFO with the full URL
    "httpx": "WARNING",
}


def build_config(log_level: str, secrets: Iterable[str | None] = ()) -> dict[str, Any]:
    console = {"level": log_level, "handlers": ["console"], "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"redact": {"()": RedactSecretsFilter, "secrets": list(secrets)}},
        "formatters": {"json": {"()": JsonFormatter}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "filters": ["redact"],
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
        "loggers": {
            name: {**console, "level": level or log_level} for name, level in _LOGGERS.items()
        },
    }


def setup_logging() -> None:
    """JSON logging for tokenproxy and uvicorn, with the upstream key redacted."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    dictConfig(build_config(log_level, secrets=[os.getenv("COINGECKO_API_KEY")]))
