import json
import logging

from tokenproxy.logging_conf import REDACTED, JsonFormatter, RedactSecretsFilter, build_config


def make_record(msg: str, *args, **extra) -> logging.LogRecord:
    record = logging.LogRecord("tokenproxy.test", logging.WARNING, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_cache_key():
    record = make_record("upstream failed for %s", "token_aptos", cache_key="token_aptos")
    line = json.loads(JsonFormatter().format(record))
    assert line["level"] == "WARNING"
    assert line["logger"] == "tokenproxy.test"
    assert line["message"] == "upstream failed for token_aptos"
    assert line["cache_key"] == "token_aptos"


def test_secret_is_redacted():
    record = make_record("GET %s?key=%s", "/coins/aptos", "cg-secret")
    assert RedactSecretsFilter(["cg-secret", None]).filter(record) is True
    assert record.getMessage() == f"GET /coins/aptos?key={REDACTED}"


def test_nothing_to_redact_leaves_record_alone():
    record = make_record("GET %s", "/coins/aptos")
    RedactSecretsFilter([None, ""]).filter(record)
    assert record.args == ("/coins/aptos",)


def test_config_levels():
    config = build_config("DEBUG", secrets=["k"])
    assert config["loggers"]["tokenproxy"]["level"] == "DEBUG"
    assert config["loggers"]["httpx"]["level"] == "WARNING"
    assert config["loggers"]["uvicorn.access"]["level"] == "WARNING"
    assert config["filters"]["redact"]["secrets"] == ["k"]
