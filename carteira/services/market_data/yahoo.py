# carteira/services/market_data/yahoo.py
"""
Yahoo Finance API provider implemented with the yfinance library.

Complements the page scraper: same data source, but through yfinance's
chart endpoints, which keep working when the quote page markup changes.

- Stocks and ETFs only (crypto is covered by the crypto providers)
- Current price: last daily close of the most recent 5 trading days
- Historical price: last close on or before the requested date, looking
  back up to HISTORY_LOOKBACK_DAYS calendar days (weekends, holidays)

Prices are in the listing currency (BRL for B3, USD for US).
"""

import logging
import math
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import yfinance as yf

from carteira.models import AssetType, Market
from carteira.services.constants import B3_YAHOO_SUFFIX
from carteira.services.exceptions import (
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
)
from carteira.services.market_data.base import MarketDataProvider, AssetToFetch

logger = logging.getLogger(__name__)


class YahooFinanceProvider(MarketDataProvider):
    """
    yfinance implementation of MarketDataProvider.

    Retry Behavior (inherited from MarketDataProvider):
        - Retries on ProviderUnavailableError and RateLimitError
        - Does NOT retry on TickerNotFoundError (permanent failure)

    Example:
        provider = YahooFinanceProvider()
        provider.fetch_prices([AssetToFetch("AAPL", AssetType.STOCK, Market.US)])
    """

    SUPPORTED_TYPES = frozenset({AssetType.STOCK, AssetType.ETF})
    SUPPORTS_HISTORY = True

    HISTORY_LOOKBACK_DAYS: int = 10

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # PRICE HOOKS
    # =========================================================================

    def _fetch_price(self, asset: AssetToFetch) -> Decimal | None:
        symbol = self._build_yahoo_symbol(asset)
        df = self._history(asset, symbol, period="5d", interval="1d", auto_adjust=False)
        return self._last_close(df)

    def _fetch_historical_price(self, asset: AssetToFetch, on_date: date) -> Decimal | None:
        symbol = self._build_yahoo_symbol(asset)
        start = on_date - timedelta(days=self.HISTORY_LOOKBACK_DAYS)
        # Yahoo Finance end date is exclusive
        end = on_date + timedelta(days=1)
        df = self._history(
            asset,
            symbol,
            start=start.isoformat(),
            end=end.isoformat(),
            interval="1d",
            auto_adjust=False,
        )
        if df.empty:
            return None
        on_or_before = df[[self._index_date(idx) <= on_date for idx in df.index]]
        return self._last_close(on_or_before)

    # =========================================================================
    # YFINANCE ACCESS
    # =========================================================================

    def _history(self, asset: AssetToFetch, symbol: str, **kwargs: Any):
        """Call Ticker.history and classify failures the way the base class expects."""
        logger.debug(f"Fetching history for {symbol}: {kwargs}")
        try:
            return yf.Ticker(symbol).history(**kwargs)
        except Exception as e:
            error_str = str(e).lower()
            market = asset.market.value if asset.market else None
            if "not found" in error_str or "delisted" in error_str or "no data" in error_str:
                raise TickerNotFoundError(ticker=asset.ticker, market=market, provider=self.name)
            if "rate limit" in error_str or "too many requests" in error_str:
                raise RateLimitError(provider=self.name)
            raise ProviderUnavailableError(provider=self.name, reason=str(e))

    def _last_close(self, df) -> Decimal | None:
        if df is None or df.empty or "Close" not in df:
            return None
        for value in reversed(df["Close"].tolist()):
            price = self._to_decimal(value)
            if price is not None:
                return price
        return None

    @staticmethod
    def _index_date(idx: Any) -> date:
        return idx.date() if hasattr(idx, "date") else idx

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a value to Decimal, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value)).quantize(Decimal("0.00000001"))
        except (TypeError, ValueError):
            return None

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _build_yahoo_symbol(self, asset: AssetToFetch) -> str:
        """PETR4 on B3 -> PETR4.SA; US tickers unchanged."""
        if asset.market == Market.B3 and "." not in asset.ticker:
            return f"{asset.ticker}{B3_YAHOO_SUFFIX}"
        return asset.ticker
