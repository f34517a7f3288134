# tokenproxy/registry.py
# Purpose: Static table of tracked tokens and their CoinGecko ids.

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from tokenproxy.errors import UnknownAsset


@dataclass(frozen=True)
class AssetDescriptor:
    ticker: str
    canonical_id: str  # CoinGecko coin id
    name: str
    launch_date_text: str
    category: str
    has_token: bool = True


# (name, ticker, launch date, category, coingecko id)
_TOKEN_TABLE: tuple[tuple[str, str, str, str, str], ...] = (
    ("Aptos", "APT", "March 21, 2025", "L0/L1", "aptos"),
    ("Berachain", "BERA", "December 2024", "L0/L1", "berachain"),
    ("Injective", "INJ", "June 3, 2025", "L0/L1", "injective-protocol"),
    ("Kaia", "KAIA", "April 8, 2025", "L0/L1", "kaia"),
    ("MANTRA", "OM", "April 8, 2025", "L0/L1", "mantra-dao"),
    ("Movement", "MOVE", "January 6, 2025", "L0/L1", "movement"),
    ("Near", "NEAR", "May 27, 2025", "L0/L1", "near"),
    ("PEAQ", "PEAQ", "June 18, 2025", "L0/L1", "peaq"),
    ("Polkadot", "DOT", "February 13, 2025", "L0/L1", "polkadot"),
    ("Sei", "SEI", "January 8, 2025", "L0/L1", "sei-network"),
    ("Sonic", "S", "June 27, 2025", "L0/L1", "sonic"),
    ("Story", "STORY", "January 7, 2025", "L0/L1", "story"),
    ("XION", "XION", "November 28, 2025", "L0/L1", "xion"),
    ("CreatorBid", "BID", "June 13, 2025", "AI Agents", "creatorbid"),
    ("Newton", "NEWT", "May 17, 2025", "AI Agents", "newton"),
    ("Virtuals Protocol", "VIRTUAL", "May 13, 2025", "AI Agents", "virtuals-protocol"),
    ("Warden Protocol", "WARD", "June 18, 2025", "AI Agents", "warden"),
    ("Wayfinder", "PROMPT", "April 4, 2025", "AI Agents", "wayfinder"),
    ("ANIME", "ANIME", "January 9, 2025", "Culture", "anime"),
    ("Boop", "BOOP", "May 1, 2025", "Culture", "boop"),
    ("PENGU", "PENGU", "May 5, 2025", "Culture", "pengu"),
    ("Corn", "CORN", "December 2024", "BTCFi", "corn"),
    ("GOAT Network", "GOATED", "June 17, 2025", "BTCFi", "goat-network"),
    ("Arbitrum", "ARB", "May 27, 2025", "L2", "arbitrum"),
    ("Katana", "KAT", "June 10, 2025", "L2", "katana-inu"),
    ("Mantle", "MNT", "May 18, 2025", "L2", "mantle"),
    ("Polygon", "MATIC", "July 29, 2025", "L2", "matic-network"),
    ("SOON", "SOON", "May 12, 2025", "L2", "soon"),
    ("Falcon Finance", "FF", "August 5, 2025", "DeFi", "falcon-finance"),
    ("Frax", "FRAX", "Early 2025", "DeFi", "frax"),
    ("Huma", "HUMA", "May 19, 2025", "DeFi", "huma-finance"),
    ("Orderly", "ORDER", "June 24, 2025", "DeFi", "orderly-network"),
    ("Pyth", "PYTH", "March 11, 2025", "DeFi", "pyth-network"),
    ("Starknet", "STRK", "Early 2025", "ZK", "starknet"),
    ("Zcash", "ZEC", "June 6, 2025", "ZK", "zcash"),
    ("Humanity Protocol", "H", "May 28, 2025", "Others", "humanity-protocol"),
    ("dYdX", "DYDX", "May 14, 2025", "Exchange", "dydx"),
    ("Kaito", "KAITO", "December 2024", "AI", "kaito"),
    ("IQ", "IQ", "April 9, 2025", "AI", "everipedia"),
    ("UXLINK", "UXLINK", "June 12, 2025", "AI", "uxlink"),
    ("Defi App", "DEFI", "March 4, 2025", "Consumer", "defi-app"),
    ("MapleStory Universe", "NXPC", "May 13, 2025", "Consumer", "maplestory-universe"),
    ("Sophon", "SOPH", "March 31, 2025", "Consumer", "sophon"),
    ("Initia", "INIT", "March 27, 2025", "Interop", "initia"),
    ("Skate", "SKATE", "February 25, 2025", "Interop", "skate"),
)

TRACKED_ASSETS: tuple[AssetDescriptor, ...] = tuple(
    AssetDescriptor(
        ticker=ticker,
        canonical_id=coin_id,
        name=name,
        launch_date_text=launch,
        category=category,
    )
    for name, ticker, launch, category, coin_id in _TOKEN_TABLE
)


class AssetRegistry:
    def __init__(self, assets: Iterable[AssetDescriptor] = TRACKED_ASSETS) -> None:
        self._assets = tuple(assets)
        self._by_ticker = {a.ticker.upper(): a for a in self._assets}

    def get(self, ticker: str) -> AssetDescriptor | None:
        return self._by_ticker.get((ticker or "").strip().upper())

    def require(self, ticker: str) -> AssetDescriptor:
        asset = self.get(ticker)
        if asset is None:
            raise UnknownAsset((ticker or "").upper())
        return asset

    def by_category(self, category: str | None) -> list[AssetDescriptor]:
        if not category:
            return list(self._assets)
        wanted = category.strip().lower()
        return [a for a in self._assets if (a.category or "").lower() == wanted]

    def __iter__(self) -> Iterator[AssetDescriptor]:
        return iter(self._assets)

    def __len__(self) -> int:
        return len(self._assets)
