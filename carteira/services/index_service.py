# carteira/services/index_service.py
"""
Brazilian financial indexes from the Central Bank time series API (SGS).

- CDI (series 12): daily rate in percent per day, published on business days
- IPCA (series 433): monthly inflation in percent, dated the 1st of the month

Values are converted from percent to a fraction (divided by 100, scale 8,
half-up). Results are cached per (series, period) for the process lifetime;
a failed fetch returns an empty map and is not cached, so the next call
retries.

Usage:
    index_service = FinancialIndexService()
    rates = index_service.get_cdi_rates(date(2024, 1, 1), date(2024, 6, 30))
    rates[date(2024, 1, 2)]  # Decimal("0.00043739")
"""

import logging
import threading
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

import httpx

from carteira.services.constants import (
    BCB_SERIES_URL,
    CDI_SERIES_CODE,
    IPCA_SERIES_CODE,
    INDEX_RATE_QUANTUM,
    HUNDRED,
)
from carteira.services.http import build_http_client

logger = logging.getLogger(__name__)

_BCB_DATE_FORMAT = "%d/%m/%Y"


class FinancialIndexService:
    """Fetches and caches CDI and IPCA series."""

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client = client
        self._lock = threading.Lock()
        self._cache: dict[tuple[int, date, date], dict[date, Decimal]] = {}

    def get_cdi_rates(self, start_date: date, end_date: date) -> dict[date, Decimal]:
        """Daily CDI rates (fraction per day) keyed by business day."""
        return self._get_series(CDI_SERIES_CODE, start_date, end_date)

    def get_ipca_rates(self, start_date: date, end_date: date) -> dict[date, Decimal]:
        """Monthly IPCA (fraction per month) keyed by the 1st of each month."""
        return self._get_series(IPCA_SERIES_CODE, start_date, end_date)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _get_series(self, code: int, start_date: date, end_date: date) -> dict[date, Decimal]:
        if end_date < start_date:
            return {}

        key = (code, start_date, end_date)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Index cache hit: series {code} {start_date}..{end_date}")
            return cached

        try:
            rates = self._fetch_series(code, start_date, end_date)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, InvalidOperation) as e:
            logger.error(f"Failed to fetch BCB series {code} for {start_date}..{end_date}: {e}")
            return {}

        with self._lock:
            self._cache[key] = rates
        logger.info(f"Loaded {len(rates)} values for BCB series {code} ({start_date}..{end_date})")
        return rates

    def _fetch_series(self, code: int, start_date: date, end_date: date) -> dict[date, Decimal]:
        params = {
            "formato": "json",
            "dataInicial": start_date.strftime(_BCB_DATE_FORMAT),
            "dataFinal": end_date.strftime(_BCB_DATE_FORMAT),
        }
        client = self._client or build_http_client()
        try:
            response = client.get(BCB_SERIES_URL.format(code=code), params=params)
            response.raise_for_status()
            payload = response.json()
        finally:
            if self._client is None:
                client.close()

        rates: dict[date, Decimal] = {}
        for item in payload:
            sample_date = datetime.strptime(item["data"], _BCB_DATE_FORMAT).date()
            percent = Decimal(str(item["valor"]))
            rates[sample_date] = (percent / HUNDRED).quantize(INDEX_RATE_QUANTUM, rounding=ROUND_HALF_UP)
        return rates
