from tokenproxy.config import DEFAULT_BASE_URL, Settings


def test_defaults():
    settings = Settings.from_env({})
    assert settings.api_key is None
    assert settings.upstream_base_url == DEFAULT_BASE_URL
    assert settings.upstream_timeout_s == 10.0
    assert settings.rate_limit_max == 100
    assert settings.rate_limit_window_ms == 60_000
    assert settings.vs_currency == "usd"


def test_overrides():
    settings = Settings.from_env(
        {
            "COINGECKO_API_KEY": "cg-key",
            "TP_UPSTREAM_BASE_URL": "http://localhost:9000/api/v3/",
            "TP_RATE_LIMIT_MAX": "5",
            "TP_VS_CURRENCY": "EUR",
        }
    )
    assert settings.api_key == "cg-key"
    assert settings.upstream_base_url == "http://localhost:9000/api/v3"
    assert settings.rate_limit_max == 5
    assert settings.vs_currency == "eur"


def test_blank_key_is_unset():
    assert Settings.from_env({"COINGECKO_API_KEY": ""}).api_key is None
