# carteira/services/exchange_rate_service.py
"""
Foreign -> home currency exchange rates (USD -> BRL by default).

Current (spot) rate:
    Scraped from the Yahoo quote page for ``USDBRL=X``; if the page cannot
    be read, the chart API's ``regularMarketPrice`` is used instead.
    ``current_rate()`` falls back to the last rate fetched successfully
    in this process. It never defaults to 1: when nothing is known it
    returns None and the caller must treat the rate as unknown.

Historical rate:
    Looked up in the 5-year daily chart series, scanning from the most
    recent sample back to the first one on or before the requested date.
    Resolved rates are cached by the *requested* date (not the trading
    day they resolved to) for the process lifetime, since past rates do
    not change. The series itself is memoized per calendar day.

All public methods are thread-safe and never raise for upstream failures.
"""

import logging
import threading
from datetime import date
from decimal import Decimal, InvalidOperation

import httpx

from carteira.config import settings
from carteira.services.constants import (
    YAHOO_QUOTE_URL,
    YAHOO_CHART_URL,
    YAHOO_HISTORY_RANGE,
)
from carteira.services.exceptions import ExchangeRateProviderError
from carteira.services.http import build_http_client, json_body
from carteira.services.yahoo_web import (
    parse_quote_page_price,
    parse_chart_closes,
    chart_market_price,
    close_on_or_before,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "yahoo"

# Transport failures and malformed payloads from the rate source
_SOURCE_ERRORS = (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError, IndexError, InvalidOperation)


class ExchangeRateService:
    """
    Cached exchange rate lookups for one currency pair.

    Example:
        fx = ExchangeRateService()
        fx.current_rate()                          # Decimal("5.1234") or None
        fx.fetch_historical_rate(date(2024, 1, 6)) # Friday's close
    """

    def __init__(
            self,
            client: httpx.Client | None = None,
            base_currency: str | None = None,
            quote_currency: str | None = None,
    ) -> None:
        self._client = client or build_http_client()
        self.base_currency = (base_currency or settings.foreign_currency).upper()
        self.quote_currency = (quote_currency or settings.home_currency).upper()
        self._symbol = f"{self.base_currency}{self.quote_currency}=X"

        self._lock = threading.Lock()
        self._last_rate: Decimal | None = None
        self._historical_cache: dict[date, Decimal] = {}
        self._series: list[tuple[date, Decimal]] | None = None
        self._series_loaded_on: date | None = None

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def last_known_rate(self) -> Decimal | None:
        return self._last_rate

    def close(self) -> None:
        self._client.close()

    # =========================================================================
    # CURRENT RATE
    # =========================================================================

    def fetch_current_rate(self) -> Decimal | None:
        """
        Best-effort spot rate fetch.

        Returns:
            The fresh rate, or None if every source failed
        """
        try:
            rate = self._scrape_spot_rate()
        except ExchangeRateProviderError as e:
            logger.warning(f"Spot rate page unavailable for {self._symbol}: {e.reason}")
            try:
                rate = self._chart_spot_rate()
            except ExchangeRateProviderError as chart_error:
                logger.error(f"Could not fetch spot rate for {self._symbol}: {chart_error.reason}")
                return None

        if rate is None or rate <= 0:
            logger.error(f"Invalid spot rate for {self._symbol}: {rate}")
            return None

        with self._lock:
            self._last_rate = rate
        logger.debug(f"Spot rate {self._symbol} = {rate}")
        return rate

    def current_rate(self) -> Decimal | None:
        """Fresh spot rate, else the last known one, else None."""
        rate = self.fetch_current_rate()
        if rate is not None:
            return rate
        if self._last_rate is not None:
            logger.warning(f"Using last known rate for {self._symbol}: {self._last_rate}")
        return self._last_rate

    def _scrape_spot_rate(self) -> Decimal:
        try:
            response = self._client.get(YAHOO_QUOTE_URL.format(symbol=self._symbol))
            response.raise_for_status()
            return parse_quote_page_price(response.text)
        except _SOURCE_ERRORS as e:
            raise ExchangeRateProviderError(PROVIDER_NAME, str(e))

    def _chart_spot_rate(self) -> Decimal | None:
        try:
            return chart_market_price(self._fetch_chart(range_="1d"))
        except _SOURCE_ERRORS as e:
            raise ExchangeRateProviderError(PROVIDER_NAME, str(e))

    # =========================================================================
    # HISTORICAL RATE
    # =========================================================================

    def fetch_historical_rate(self, on_date: date) -> Decimal | None:
        """
        Rate of the latest trading day on or before on_date.

        Returns:
            The rate, or None when the series is unavailable or starts after on_date
        """
        with self._lock:
            cached = self._historical_cache.get(on_date)
        if cached is not None:
            logger.debug(f"Historical rate cache hit for {on_date}")
            return cached

        try:
            series = self._get_series()
        except ExchangeRateProviderError as e:
            logger.error(f"Could not fetch historical rates for {self._symbol}: {e.reason}")
            return None

        rate = close_on_or_before(series, on_date)
        if rate is None:
            logger.warning(f"No {self._symbol} sample on or before {on_date}")
            return None

        with self._lock:
            self._historical_cache[on_date] = rate
        return rate

    def clear_cache(self) -> None:
        with self._lock:
            self._historical_cache.clear()
            self._series = None
            self._series_loaded_on = None

    def _get_series(self) -> list[tuple[date, Decimal]]:
        today = date.today()
        with self._lock:
            if self._series is not None and self._series_loaded_on == today:
                return self._series

        try:
            series = parse_chart_closes(self._fetch_chart(range_=YAHOO_HISTORY_RANGE))
        except _SOURCE_ERRORS as e:
            raise ExchangeRateProviderError(PROVIDER_NAME, str(e))

        with self._lock:
            self._series = series
            self._series_loaded_on = today
        logger.info(f"Loaded {len(series)} daily samples for {self._symbol}")
        return series

    def _fetch_chart(self, range_: str) -> dict:
        response = self._client.get(
            YAHOO_CHART_URL.format(symbol=self._symbol),
            params={"range": range_, "interval": "1d"},
        )
        response.raise_for_status()
        return json_body(response)
