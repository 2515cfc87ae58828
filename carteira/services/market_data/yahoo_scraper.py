# carteira/services/market_data/yahoo_scraper.py
"""
Yahoo Finance web provider (quote page scraping + public JSON endpoints).

- Current price: scraped from https://finance.yahoo.com/quote/{symbol}/
- Historical price: 5-year daily chart from query1.finance.yahoo.com
- Search: query1.finance.yahoo.com/v1/finance/search

Symbol rules:
- B3 stocks/ETFs get the ".SA" suffix (PETR4 -> PETR4.SA) unless the
  ticker already carries a suffix
- US stocks/ETFs are used as-is
- Crypto is resolved through search (BTC -> BTC-USD) and cached

Prices come back in the listing currency: BRL for B3, USD for US and crypto.
"""

import logging
import threading
from datetime import date
from decimal import Decimal
from typing import Any

from carteira.config import settings
from carteira.models import AssetType, Market
from carteira.services.constants import (
    YAHOO_QUOTE_URL,
    YAHOO_CHART_URL,
    YAHOO_SEARCH_URL,
    YAHOO_HISTORY_RANGE,
    B3_YAHOO_SUFFIX,
    SEARCH_LIMIT,
)
from carteira.services.exceptions import TickerNotFoundError
from carteira.services.http import json_body
from carteira.services.market_data.base import (
    MarketDataProvider,
    AssetToFetch,
    AssetSearchResult,
    ITEM_ERRORS,
)
from carteira.services.yahoo_web import (
    parse_quote_page_price,
    parse_chart_closes,
    close_on_or_before,
)

logger = logging.getLogger(__name__)


class YahooScraperProvider(MarketDataProvider):
    """
    Scrapes Yahoo quote pages for stocks, ETFs and crypto.

    Example:
        provider = YahooScraperProvider(client=build_http_client(), executor=pool)
        provider.fetch_prices([AssetToFetch("PETR4", AssetType.STOCK, Market.B3)])
    """

    SUPPORTED_TYPES = frozenset({AssetType.STOCK, AssetType.ETF, AssetType.CRYPTO})
    SUPPORTS_HISTORY = True
    SUPPORTS_SEARCH = True

    # Yahoo quoteType -> our asset type
    QUOTE_TYPE_MAPPING: dict[str, AssetType] = {
        "EQUITY": AssetType.STOCK,
        "ETF": AssetType.ETF,
        "CRYPTOCURRENCY": AssetType.CRYPTO,
    }

    # Yahoo exchange code -> our market
    EXCHANGE_MAPPING: dict[str, Market] = {
        "SAO": Market.B3,
        "NMS": Market.US,
        "NGM": Market.US,
        "NCM": Market.US,
        "NYQ": Market.US,
        "ASE": Market.US,
        "PCX": Market.US,
        "BTS": Market.US,
    }

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._crypto_symbols: dict[str, str] = {}
        self._symbols_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "yahoo_scraper"

    # =========================================================================
    # CURRENT PRICE
    # =========================================================================

    def _fetch_price(self, asset: AssetToFetch) -> Decimal | None:
        symbol = self.canonical_symbol(asset)
        try:
            return self._scrape_quote(symbol, asset)
        except TickerNotFoundError:
            # The page 404s for renamed symbols; try what search resolves to
            resolved = self._resolve_via_search(asset)
            if resolved is None or resolved == symbol:
                raise
            logger.info(f"{self.name}: {symbol} not found, retrying as {resolved}")
            return self._scrape_quote(resolved, asset)

    def _scrape_quote(self, symbol: str, asset: AssetToFetch) -> Decimal:
        response = self._get(YAHOO_QUOTE_URL.format(symbol=symbol), asset=asset)
        price = parse_quote_page_price(response.text)
        logger.debug(f"{self.name}: {symbol} = {price}")
        return price

    # =========================================================================
    # HISTORICAL PRICE
    # =========================================================================

    def _fetch_historical_price(self, asset: AssetToFetch, on_date: date) -> Decimal | None:
        symbol = self.canonical_symbol(asset)
        response = self._get(
            YAHOO_CHART_URL.format(symbol=symbol),
            params={"range": YAHOO_HISTORY_RANGE, "interval": "1d"},
            asset=asset,
        )
        samples = parse_chart_closes(json_body(response))
        return close_on_or_before(samples, on_date)

    # =========================================================================
    # SEARCH
    # =========================================================================

    def _search(self, term: str) -> list[AssetSearchResult]:
        results = []
        for quote in self._search_quotes(term):
            result = self._map_quote(quote)
            if result is not None:
                results.append(result)
            if len(results) >= SEARCH_LIMIT:
                break
        return results

    def _search_quotes(self, term: str) -> list[dict[str, Any]]:
        response = self._get(
            YAHOO_SEARCH_URL,
            params={"q": term, "quotesCount": SEARCH_LIMIT, "newsCount": 0},
        )
        quotes = json_body(response).get("quotes") or []
        return [quote for quote in quotes if isinstance(quote, dict)]

    def _map_quote(self, quote: dict[str, Any]) -> AssetSearchResult | None:
        asset_type = self.QUOTE_TYPE_MAPPING.get(quote.get("quoteType", ""))
        symbol = quote.get("symbol")
        if asset_type is None or not symbol:
            return None

        name = quote.get("longname") or quote.get("shortname") or symbol
        if asset_type == AssetType.CRYPTO:
            return AssetSearchResult(
                ticker=symbol.split("-")[0].upper(),
                name=name,
                asset_type=asset_type,
                market=None,
            )

        market = self.EXCHANGE_MAPPING.get(quote.get("exchange", ""))
        if market is None:
            return None
        ticker = symbol.upper()
        if market == Market.B3 and ticker.endswith(B3_YAHOO_SUFFIX):
            ticker = ticker[:-len(B3_YAHOO_SUFFIX)]
        return AssetSearchResult(ticker=ticker, name=name, asset_type=asset_type, market=market)

    # =========================================================================
    # SYMBOLS
    # =========================================================================

    def canonical_symbol(self, asset: AssetToFetch) -> str:
        """Yahoo symbol for an asset (PETR4 -> PETR4.SA, BTC -> BTC-USD)."""
        if asset.asset_type == AssetType.CRYPTO:
            return self._crypto_symbol(asset.ticker)
        if asset.market == Market.B3 and "." not in asset.ticker:
            return f"{asset.ticker}{B3_YAHOO_SUFFIX}"
        return asset.ticker

    def _crypto_symbol(self, ticker: str) -> str:
        with self._symbols_lock:
            cached = self._crypto_symbols.get(ticker)
        if cached:
            return cached

        symbol = f"{ticker}-{settings.foreign_currency}"
        try:
            candidates = [
                (quote.get("symbol") or "").upper()
                for quote in self._execute_with_retry(self._search_quotes, ticker)
                if quote.get("quoteType") == "CRYPTOCURRENCY"
            ]
            candidates = [c for c in candidates if c.startswith(f"{ticker}-")]
            if candidates and symbol not in candidates:
                symbol = candidates[0]
        except ITEM_ERRORS as e:
            logger.warning(f"{self.name}: crypto symbol lookup failed for {ticker}, using {symbol}: {e}")
            return symbol

        with self._symbols_lock:
            self._crypto_symbols[ticker] = symbol
        return symbol

    def _resolve_via_search(self, asset: AssetToFetch) -> str | None:
        if asset.asset_type == AssetType.CRYPTO:
            return None
        for quote in self._search_quotes(asset.ticker):
            result = self._map_quote(quote)
            if result is not None and result.asset_type == asset.asset_type and result.market == asset.market:
                return quote["symbol"].upper()
        return None
