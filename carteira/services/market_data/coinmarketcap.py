# carteira/services/market_data/coinmarketcap.py
"""
CoinMarketCap provider: crypto prices scraped from currency pages.

initialize() loads the Pro API ID map (symbol -> id/name/slug) once; the
slug is what the public page URL needs:

    https://coinmarketcap.com/currencies/{slug}/

The map is also the search index (symbol prefix or name substring).
Without an API key, or if the map cannot be loaded, the provider stays
registered but resolves nothing; the orchestrator falls through to the
next crypto provider. Prices are in USD.
"""

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal

from bs4 import BeautifulSoup

from carteira.config import settings
from carteira.models import AssetType
from carteira.services.constants import (
    COINMARKETCAP_MAP_URL,
    COINMARKETCAP_CURRENCY_URL,
    SEARCH_LIMIT,
)
from carteira.services.http import json_body
from carteira.services.market_data.base import (
    MarketDataProvider,
    AssetToFetch,
    AssetSearchResult,
    ITEM_ERRORS,
)
from carteira.services.yahoo_web import parse_price_text

logger = logging.getLogger(__name__)

# Tried in order; the page markup changes now and then
PRICE_SELECTORS = (
    '[data-test="text-cdp-price-display"]',
    ".sc-d1307656-0.jsJtkO > span",
)


@dataclass(frozen=True)
class CoinInfo:
    id: int
    name: str
    symbol: str
    slug: str


class CoinMarketCapProvider(MarketDataProvider):
    """Scrapes CoinMarketCap for crypto prices (current only)."""

    SUPPORTED_TYPES = frozenset({AssetType.CRYPTO})
    SUPPORTS_SEARCH = True

    def __init__(self, *args, api_key: str | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._api_key = api_key if api_key is not None else settings.coinmarketcap_api_key
        self._coins: dict[str, CoinInfo] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "coinmarketcap"

    @property
    def coin_count(self) -> int:
        return len(self._coins)

    def get_coin(self, symbol: str) -> CoinInfo | None:
        return self._coins.get(symbol.upper())

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def initialize(self) -> None:
        """Load the symbol -> slug map. Failures are logged, never raised."""
        if not self._api_key:
            logger.warning(f"{self.name}: no API key configured; ID map not loaded")
            return

        try:
            response = self._execute_with_retry(
                self._get,
                COINMARKETCAP_MAP_URL,
                headers={"X-CMC_PRO_API_KEY": self._api_key, "Accept": "application/json"},
            )
            entries = json_body(response)["data"]
            if not isinstance(entries, list):
                raise ValueError(f"expected a list of coins, got {type(entries).__name__}")
        except ITEM_ERRORS as e:
            logger.critical(f"{self.name}: failed to load cryptocurrency map: {e}")
            return

        loaded = 0
        with self._lock:
            for entry in entries:
                try:
                    coin = CoinInfo(
                        id=int(entry["id"]),
                        name=entry["name"],
                        symbol=entry["symbol"].upper(),
                        slug=entry["slug"],
                    )
                except (KeyError, TypeError, ValueError):
                    continue
                # First entry wins: the map is ordered by rank
                if coin.symbol not in self._coins:
                    self._coins[coin.symbol] = coin
                    loaded += 1
        logger.info(f"{self.name}: loaded {loaded} coins")

    # =========================================================================
    # CURRENT PRICE
    # =========================================================================

    def _fetch_price(self, asset: AssetToFetch) -> Decimal | None:
        coin = self.get_coin(asset.ticker)
        if coin is None:
            logger.warning(f"{self.name}: no slug mapped for {asset.ticker}, skipping")
            return None

        response = self._get(COINMARKETCAP_CURRENCY_URL.format(slug=coin.slug), asset=asset)
        return self._parse_price(response.text)

    @staticmethod
    def _parse_price(html: str) -> Decimal:
        soup = BeautifulSoup(html, "html.parser")
        for selector in PRICE_SELECTORS:
            element = soup.select_one(selector)
            if element is not None:
                return parse_price_text(element.get_text(strip=True).replace("$", ""))
        raise ValueError("price element not found on currency page")

    # =========================================================================
    # SEARCH
    # =========================================================================

    def _search(self, term: str) -> list[AssetSearchResult]:
        upper = term.upper()
        lower = term.lower()
        results = []
        for coin in list(self._coins.values()):
            if coin.symbol.startswith(upper) or lower in coin.name.lower():
                results.append(AssetSearchResult(
                    ticker=coin.symbol,
                    name=coin.name,
                    asset_type=AssetType.CRYPTO,
                ))
                if len(results) >= SEARCH_LIMIT:
                    break
        return results
