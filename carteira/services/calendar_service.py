# carteira/services/calendar_service.py
"""
Business day calendar for the Brazilian market.

A business day is a weekday that is not a national holiday. Holidays are
loaded once at startup from BrasilAPI for a fixed window of years and
kept in memory. Loading is best-effort: a year that fails to load is
logged and skipped, so business-day counts degrade to "weekdays only"
for that year instead of stopping the process.

Usage:
    calendar = BusinessDayService()
    calendar.load_holidays(range(2024, 2031))

    calendar.count_business_days(date(2024, 1, 1), date(2024, 2, 1))
"""

import logging
import threading
from collections.abc import Iterable
from datetime import date

import httpx

from carteira.services.constants import BRASILAPI_HOLIDAYS_URL
from carteira.services.http import build_http_client
from carteira.utils.date_utils import iter_days, is_weekend

logger = logging.getLogger(__name__)


class BusinessDayService:
    """
    Weekend + holiday calendar.

    Thread-safe: the holiday set is replaced under a lock and read
    without copying (set membership on a frozenset).
    """

    def __init__(
            self,
            client: httpx.Client | None = None,
            holidays: Iterable[date] | None = None,
    ) -> None:
        """
        Args:
            client: httpx client (default: shared settings-based client)
            holidays: Pre-seeded holiday dates (tests, offline use)
        """
        self._client = client
        self._lock = threading.Lock()
        self._holidays: frozenset[date] = frozenset(holidays or ())
        self._loaded_years: set[int] = set()

    @property
    def holidays(self) -> frozenset[date]:
        return self._holidays

    @property
    def loaded_years(self) -> set[int]:
        return set(self._loaded_years)

    # =========================================================================
    # LOADING
    # =========================================================================

    def load_holidays(self, years: Iterable[int]) -> int:
        """
        Fetch national holidays for each year and merge them into the set.

        Never raises for upstream failures.

        Returns:
            Number of years loaded successfully
        """
        client = self._client or build_http_client()
        loaded = 0
        fetched: set[date] = set()

        try:
            for year in years:
                try:
                    fetched.update(self._fetch_year(client, year))
                    self._loaded_years.add(year)
                    loaded += 1
                except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                    logger.critical(f"Could not load holidays for {year}: {e}")
        finally:
            if self._client is None:
                client.close()

        with self._lock:
            self._holidays = self._holidays | frozenset(fetched)

        if loaded:
            logger.info(f"Holiday calendar loaded: {len(self._holidays)} dates across {loaded} year(s)")
        else:
            logger.critical("Holiday calendar unavailable; business days will count weekdays only")
        return loaded

    def _fetch_year(self, client: httpx.Client, year: int) -> set[date]:
        response = client.get(BRASILAPI_HOLIDAYS_URL.format(year=year))
        response.raise_for_status()
        return {date.fromisoformat(item["date"]) for item in response.json()}

    # =========================================================================
    # QUERIES
    # =========================================================================

    def is_holiday(self, d: date) -> bool:
        return d in self._holidays

    def is_business_day(self, d: date) -> bool:
        """False for Saturday, Sunday and any loaded holiday."""
        return not is_weekend(d) and d not in self._holidays

    def count_business_days(self, start_date: date, end_date: date) -> int:
        """
        Count business days in [start_date, end_date).

        Returns 0 when end_date <= start_date.
        """
        if end_date <= start_date:
            return 0
        return sum(1 for d in iter_days(start_date, end_date) if self.is_business_day(d))
