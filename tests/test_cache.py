from tokenproxy.cache import CACHE_DURATIONS, CacheStore, cache_control, cache_control_header


class TestCacheStore:
    def test_get_right_after_set_returns_payload(self, cache: CacheStore):
        cache.set("token_aptos", '{"a": 1}')
        assert cache.get("token_aptos", 1) == '{"a": 1}'
        assert cache.get("token_aptos", CACHE_DURATIONS["PRICES"]) == '{"a": 1}'

    def test_missing_key(self, cache: CacheStore):
        assert cache.get("nope", 1000) is None
        assert cache.get_stale("nope") is None

    def test_expired_get_is_absent_while_stale_read_still_sees_it(self, cache, clock):
        cache.set("k", "v")
        clock.advance(5 + 0.001)

        assert cache.get_stale("k") == "v"
        assert cache.get("k", 5_000) is None

    def test_expired_get_evicts(self, cache, clock):
        cache.set("k", "v")
        clock.advance(10)

        assert cache.get("k", 5_000) is None
        assert "k" not in cache
        assert len(cache) == 0
        assert cache.get_stale("k") is None

    def test_age_equal_to_ttl_is_expired(self, cache, clock):
        cache.set("k", "v")
        clock.advance(5)
        assert cache.get("k", 5_000) is None

    def test_stale_read_ignores_age_and_never_evicts(self, cache, clock):
        cache.set("k", "v")
        clock.advance(365 * 24 * 3600)
        assert cache.get_stale("k") == "v"
        assert cache.get_stale("k") == "v"
        assert len(cache) == 1

    def test_ttl_is_chosen_per_read(self, cache, clock):
        cache.set("k", "v")
        clock.advance(60)
        assert cache.get("k", 120_000) == "v"
        assert cache.get("k", 30_000) is None

    def test_last_write_wins_and_restamps(self, cache, clock):
        cache.set("k", "old")
        clock.advance(4)
        cache.set("k", "new")
        clock.advance(4)

        assert len(cache) == 1
        assert cache.get("k", 5_000) == "new"

    def test_instances_are_isolated(self, clock):
        a, b = CacheStore(clock=clock), CacheStore(clock=clock)
        a.set("k", "v")
        assert b.get_stale("k") is None


class TestCacheControl:
    def test_prices_ttl(self):
        assert cache_control(CACHE_DURATIONS["PRICES"]) == (300, 150)
        assert cache_control_header(CACHE_DURATIONS["PRICES"]) == (
            "s-maxage=300, stale-while-revalidate=150"
        )

    def test_floors_both_values(self):
        assert cache_control(1_999) == (1, 0)
        assert cache_control(7_500) == (7, 3)

    def test_metadata_ttl(self):
        assert cache_control(CACHE_DURATIONS["METADATA"]) == (86_400, 43_200)
