import pytest

from tokenproxy.errors import UnknownAsset
from tokenproxy.registry import TRACKED_ASSETS, AssetRegistry


@pytest.fixture
def registry() -> AssetRegistry:
    return AssetRegistry()


class TestAssetRegistry:
    def test_tracks_every_listed_token(self, registry):
        assert len(registry) == 45
        assert len(TRACKED_ASSETS) == 45
        assert len({a.ticker for a in registry}) == 45

    def test_lookup_is_case_insensitive(self, registry):
        asset = registry.get("apt")
        assert asset is not None
        assert asset.canonical_id == "aptos"
        assert registry.get(" Pyth ").canonical_id == "pyth-network"

    def test_unknown_ticker(self, registry):
        assert registry.get("NOPE") is None
        with pytest.raises(UnknownAsset) as info:
            registry.require("nope")
        assert info.value.message == "Token NOPE not found in token list"

    def test_by_category(self, registry):
        tickers = [a.ticker for a in registry.by_category("defi")]
        assert tickers == ["FF", "FRAX", "HUMA", "ORDER", "PYTH"]
        assert registry.by_category(None) == list(registry)
        assert registry.by_category("nothing here") == []
