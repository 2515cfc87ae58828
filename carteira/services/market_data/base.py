# carteira/services/market_data/base.py
"""
Abstract interface for market data providers.

Every provider implements the same four capabilities:

    supports(asset_type)            -> bool
    initialize()                    -> None   (one-time setup, e.g. ID maps)
    fetch_prices(assets)            -> list[PriceData]   (current, best-effort)
    fetch_historical_price(a, d)    -> Decimal | None
    search(term)                    -> list[AssetSearchResult]

Design Principles:
- A single asset's failure never aborts its siblings: each item is
  fetched in isolation, failures are logged and the item is omitted
- "No data" is a return value (empty list / None), never an exception
- Transient failures (timeouts, 5xx, 429) are retried with exponential
  backoff before the item is given up on
- Providers without a capability return empty results immediately
- Prices are returned in the asset's native quote currency

Subclasses implement the underscore hooks (_fetch_price,
_fetch_historical_price, _search) and let this class do the isolation,
retries and logging.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TypeVar, Callable, Any

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from carteira.models import AssetType, Market
from carteira.services.exceptions import (
    RETRYABLE_ERRORS,
    MarketDataError,
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Errors that mean "this item could not be read" rather than a bug
ITEM_ERRORS = (
    MarketDataError, ValueError, KeyError, TypeError, IndexError, AttributeError, InvalidOperation,
)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class AssetToFetch:
    """
    An asset a price is requested for.

    Attributes:
        ticker: Symbol, normalized to uppercase (e.g., "PETR4", "BTC")
        asset_type: STOCK, ETF or CRYPTO
        market: B3 or US; None for crypto
    """

    ticker: str
    asset_type: AssetType
    market: Market | None = None

    def __post_init__(self) -> None:
        if not self.ticker or not self.ticker.strip():
            raise ValueError("ticker is required")
        object.__setattr__(self, "ticker", self.ticker.strip().upper())


@dataclass(frozen=True)
class PriceData:
    """A current price for one ticker, in the asset's native currency."""

    ticker: str
    price: Decimal


@dataclass(frozen=True)
class AssetSearchResult:
    """One match returned by a provider search."""

    ticker: str
    name: str
    asset_type: AssetType
    market: Market | None = None


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class MarketDataProvider(ABC):
    """
    Abstract base class for market data providers.

    Retry Behavior:
        `_execute_with_retry` retries ProviderUnavailableError and
        RateLimitError with exponential backoff. Subclasses can tune:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 3)
        - RETRY_MIN_WAIT: Minimum wait in seconds (default: 1)
        - RETRY_MAX_WAIT: Maximum wait in seconds (default: 10)
        - RETRY_MULTIPLIER: Exponential multiplier (default: 1)

    Capabilities:
        - SUPPORTED_TYPES: asset types this provider prices
        - SUPPORTS_HISTORY: whether _fetch_historical_price is implemented
        - SUPPORTS_SEARCH: whether _search is implemented
    """

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    SUPPORTED_TYPES: frozenset[AssetType] = frozenset()
    SUPPORTS_HISTORY: bool = False
    SUPPORTS_SEARCH: bool = False

    def __init__(
            self,
            client: httpx.Client | None = None,
            executor: Executor | None = None,
    ) -> None:
        """
        Args:
            client: HTTP client for web/API providers
            executor: Bounded worker pool; when set, batch items are fetched
                      on it instead of sequentially on the caller's thread
        """
        self._client = client
        self._executor = executor

    # =========================================================================
    # ABSTRACT PROPERTIES AND HOOKS
    # =========================================================================

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier used in logs and errors (e.g., "yahoo_scraper")."""
        pass

    @abstractmethod
    def _fetch_price(self, asset: AssetToFetch) -> Decimal | None:
        """
        Fetch the current price of one asset.

        Returns None when the provider has no price for it. May raise
        MarketDataError subclasses or parse errors; the caller isolates them.
        """
        pass

    def _fetch_historical_price(self, asset: AssetToFetch, on_date: date) -> Decimal | None:
        return None

    def _search(self, term: str) -> list[AssetSearchResult]:
        return []

    # =========================================================================
    # PUBLIC CAPABILITIES
    # =========================================================================

    def supports(self, asset_type: AssetType) -> bool:
        return asset_type in self.SUPPORTED_TYPES

    def initialize(self) -> None:
        """One-time setup. Default: nothing to prepare."""
        return None

    def fetch_prices(self, assets: list[AssetToFetch]) -> list[PriceData]:
        """
        Fetch current prices, omitting assets that cannot be resolved.

        Unsupported asset types are skipped without a call.
        """
        candidates = [a for a in assets if self.supports(a.asset_type)]
        if not candidates:
            return []

        if self._executor is not None and len(candidates) > 1:
            results = list(self._executor.map(self._fetch_price_isolated, candidates))
        else:
            results = [self._fetch_price_isolated(a) for a in candidates]

        prices = [r for r in results if r is not None]
        logger.debug(f"{self.name}: {len(prices)}/{len(candidates)} prices resolved")
        return prices

    def fetch_historical_price(self, asset: AssetToFetch, on_date: date) -> Decimal | None:
        """Close on or before on_date, or None (also when history is unsupported)."""
        if not self.SUPPORTS_HISTORY or not self.supports(asset.asset_type):
            return None
        try:
            price = self._execute_with_retry(self._fetch_historical_price, asset, on_date)
        except ITEM_ERRORS as e:
            logger.error(f"{self.name}: historical price failed for {asset.ticker} on {on_date}: {e}")
            return None
        return price if price is not None and price > 0 else None

    def search(self, term: str) -> list[AssetSearchResult]:
        if not self.SUPPORTS_SEARCH or not term.strip():
            return []
        try:
            return self._execute_with_retry(self._search, term.strip())
        except ITEM_ERRORS as e:
            logger.error(f"{self.name}: search failed for '{term}': {e}")
            return []

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _fetch_price_isolated(self, asset: AssetToFetch) -> PriceData | None:
        """Fetch one item; any item-level failure becomes None."""
        try:
            price = self._execute_with_retry(self._fetch_price, asset)
        except TickerNotFoundError as e:
            logger.warning(f"{self.name}: {e}")
            return None
        except ITEM_ERRORS as e:
            logger.error(f"{self.name}: price fetch failed for {asset.ticker}: {e}")
            return None

        if price is None or price <= 0:
            logger.debug(f"{self.name}: no price for {asset.ticker}")
            return None
        return PriceData(ticker=asset.ticker, price=price)

    def _get(
            self,
            url: str,
            params: dict[str, Any] | None = None,
            headers: dict[str, str] | None = None,
            asset: AssetToFetch | None = None,
    ) -> httpx.Response:
        """
        GET with status classification.

        Raises:
            TickerNotFoundError: 404 while fetching a specific asset
            RateLimitError: 429
            ProviderUnavailableError: transport errors, timeouts, 5xx
            MarketDataError: other non-success statuses
        """
        if self._client is None:
            raise ProviderUnavailableError(self.name, "no HTTP client configured")

        try:
            response = self._client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(self.name, f"{type(e).__name__}: {e}")

        status = response.status_code
        if status == 404 and asset is not None:
            market = asset.market.value if asset.market else None
            raise TickerNotFoundError(ticker=asset.ticker, market=market, provider=self.name)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                self.name,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status >= 500:
            raise ProviderUnavailableError(self.name, f"HTTP {status}")
        if status >= 400:
            raise MarketDataError(f"{self.name} returned HTTP {status} for {url}", provider=self.name)
        return response

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function with retry logic for transient failures.

        Retries ProviderUnavailableError and RateLimitError with exponential
        backoff. Everything else propagates immediately.

        Raises:
            The last exception if all retries fail
        """

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name}>"
