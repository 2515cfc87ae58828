# carteira/services/market_data/coingecko.py
"""
CoinGecko API provider for crypto prices.

CoinGecko addresses coins by id ("bitcoin"), not by ticker. The
ticker -> id map is built once in initialize():

1. A fixed priority map for the large caps, so "BTC" can never resolve
   to one of the many small tokens that reuse popular symbols
2. The full /coins/list, added only for symbols not already mapped

Unmapped tickers are logged and skipped. Current prices for a batch are
fetched in one /simple/price call. Prices are in USD.
"""

import logging
import threading
from datetime import date
from decimal import Decimal

from carteira.config import settings
from carteira.models import AssetType
from carteira.services.constants import COINGECKO_BASE_URL
from carteira.services.http import json_body
from carteira.services.market_data.base import (
    MarketDataProvider,
    AssetToFetch,
    PriceData,
    ITEM_ERRORS,
)

logger = logging.getLogger(__name__)


class CoinGeckoProvider(MarketDataProvider):
    """CoinGecko /simple/price (current) and /coins/{id}/history (historical)."""

    SUPPORTED_TYPES = frozenset({AssetType.CRYPTO})
    SUPPORTS_HISTORY = True

    PRIORITY_MAP: dict[str, str] = {
        "BTC": "bitcoin",
        "ETH": "ethereum",
        "USDT": "tether",
        "BNB": "binancecoin",
        "SOL": "solana",
        "USDC": "usd-coin",
        "XRP": "ripple",
        "ADA": "cardano",
    }

    def __init__(self, *args, vs_currency: str | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._vs_currency = (vs_currency or settings.foreign_currency).lower()
        self._ids: dict[str, str] = dict(self.PRIORITY_MAP)
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "coingecko"

    def coin_id(self, ticker: str) -> str | None:
        return self._ids.get(ticker.upper())

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def initialize(self) -> None:
        """Extend the priority map with /coins/list. Failures are logged only."""
        try:
            response = self._execute_with_retry(self._get, f"{COINGECKO_BASE_URL}/coins/list")
            coins = json_body(response, list)
        except ITEM_ERRORS as e:
            logger.critical(f"{self.name}: failed to load coin list, using priority map only: {e}")
            return

        added = 0
        with self._lock:
            for coin in coins:
                if not isinstance(coin, dict):
                    continue
                symbol = str(coin.get("symbol") or "").upper()
                coin_id = coin.get("id")
                if symbol and coin_id and symbol not in self._ids:
                    self._ids[symbol] = coin_id
                    added += 1
        logger.info(f"{self.name}: {len(self._ids)} tickers mapped ({added} from coin list)")

    # =========================================================================
    # CURRENT PRICES
    # =========================================================================

    def fetch_prices(self, assets: list[AssetToFetch]) -> list[PriceData]:
        """One request for the whole batch; unmapped or missing coins are omitted."""
        ids_by_ticker: dict[str, str] = {}
        for asset in assets:
            if not self.supports(asset.asset_type):
                continue
            coin_id = self.coin_id(asset.ticker)
            if coin_id is None:
                logger.warning(f"{self.name}: no coin id mapped for {asset.ticker}, skipping")
                continue
            ids_by_ticker[asset.ticker] = coin_id

        if not ids_by_ticker:
            return []

        try:
            quotes = self._execute_with_retry(self._simple_price, sorted(set(ids_by_ticker.values())))
        except ITEM_ERRORS as e:
            logger.error(f"{self.name}: price batch failed: {e}")
            return []

        prices = []
        for ticker, coin_id in ids_by_ticker.items():
            try:
                value = quotes[coin_id][self._vs_currency]
                price = Decimal(str(value))
            except ITEM_ERRORS:
                logger.warning(f"{self.name}: no {self._vs_currency} quote for {ticker} ({coin_id})")
                continue
            if price > 0:
                prices.append(PriceData(ticker=ticker, price=price))
        return prices

    def _fetch_price(self, asset: AssetToFetch) -> Decimal | None:
        prices = self.fetch_prices([asset])
        return prices[0].price if prices else None

    def _simple_price(self, coin_ids: list[str]) -> dict:
        response = self._get(
            f"{COINGECKO_BASE_URL}/simple/price",
            params={"ids": ",".join(coin_ids), "vs_currencies": self._vs_currency},
        )
        return json_body(response)

    # =========================================================================
    # HISTORICAL PRICE
    # =========================================================================

    def _fetch_historical_price(self, asset: AssetToFetch, on_date: date) -> Decimal | None:
        coin_id = self.coin_id(asset.ticker)
        if coin_id is None:
            return None
        response = self._get(
            f"{COINGECKO_BASE_URL}/coins/{coin_id}/history",
            params={"date": on_date.strftime("%d-%m-%Y"), "localization": "false"},
            asset=asset,
        )
        market_data = json_body(response).get("market_data")
        if not market_data:
            return None
        value = market_data["current_price"].get(self._vs_currency)
        return Decimal(str(value)) if value is not None else None
