# carteira/services/market_data/service.py
"""
Market data orchestrator.

Holds the provider list in priority order and routes price requests by
asset type through a sequential fallback chain:

    try provider 1 -> empty/failed -> try provider 2 -> ... -> None

The first non-empty result wins and later providers are never called.
"No price" is returned as None so callers can tell it apart from a real
zero price. Only get_price() (a plain cache read) uses the
PRICE_NOT_FOUND sentinel, and callers must treat it as "unknown".

Successful current-price fetches are written to the process-wide
PriceCache and forwarded to the optional NotificationSink.

Background work:
    refresh_all_market_data() and update_prices_for_tickers() submit a job
    to a bounded worker pool and return its Future at once. The scheduled
    refresh (PriceRefreshScheduler) runs the same job periodically and
    communicates only through the cache.
"""

import logging
from collections import OrderedDict
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import date
from decimal import Decimal

from carteira.config import settings
from carteira.models import AssetType, Market
from carteira.services.constants import ZERO
from carteira.services.market_data.base import (
    MarketDataProvider,
    AssetToFetch,
    AssetSearchResult,
    PriceData,
)
from carteira.services.market_data.cache import PriceCache
from carteira.services.market_data.scheduler import PriceRefreshScheduler
from carteira.services.protocols import TransactionStore, NotificationSink
from carteira.utils.context import correlation_scope

logger = logging.getLogger(__name__)

# Returned by get_price() for tickers that are not cached. Means "unknown".
PRICE_NOT_FOUND: Decimal = ZERO


class MarketDataService:
    """
    Routes price lookups across providers and owns the current-price cache.

    Example:
        service = MarketDataService([yahoo_scraper, coinmarketcap, yahoo_api, coingecko])
        service.initialize_providers()
        price = service.get_price_with_fallback(AssetToFetch("PETR4", AssetType.STOCK, Market.B3))
    """

    def __init__(
            self,
            providers: list[MarketDataProvider],
            transaction_store: TransactionStore | None = None,
            cache: PriceCache | None = None,
            notification_sink: NotificationSink | None = None,
            executor: Executor | None = None,
    ) -> None:
        """
        Args:
            providers: Providers in fallback priority order (first = preferred)
            transaction_store: Source of held assets for refresh_all_market_data
            cache: Current-price cache (default: a new PriceCache)
            notification_sink: Receives (ticker, price) for every cache update
            executor: Worker pool for background refresh jobs
        """
        self._providers = list(providers)
        self._transaction_store = transaction_store
        self._cache = cache if cache is not None else PriceCache()
        self._notification_sink = notification_sink
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.refresh_max_workers,
            thread_name_prefix="price-refresh",
        )
        self._scheduler: PriceRefreshScheduler | None = None

        logger.info(
            "MarketDataService initialized with providers: "
            + ", ".join(p.name for p in self._providers)
        )

    @property
    def providers(self) -> list[MarketDataProvider]:
        return list(self._providers)

    @property
    def cache(self) -> PriceCache:
        return self._cache

    # =========================================================================
    # PROVIDER ROUTING
    # =========================================================================

    def find_providers_for(self, asset_type: AssetType) -> list[MarketDataProvider]:
        """Providers supporting asset_type, in configured priority order."""
        return [p for p in self._providers if p.supports(asset_type)]

    def initialize_providers(self) -> None:
        """
        Run each provider's one-time setup.

        A provider that fails to initialize is logged and left in the chain;
        it will simply resolve fewer tickers.
        """
        for provider in self._providers:
            try:
                provider.initialize()
                logger.info(f"Provider '{provider.name}' initialized")
            except Exception:
                logger.critical(f"Provider '{provider.name}' failed to initialize", exc_info=True)

    # =========================================================================
    # FALLBACK CHAINS
    # =========================================================================

    def get_price_with_fallback(self, asset: AssetToFetch) -> Decimal | None:
        """
        Current price from the first provider that has one.

        Returns:
            The price in the asset's native currency, or None if every
            supporting provider came back empty
        """
        for provider in self.find_providers_for(asset.asset_type):
            for price_data in provider.fetch_prices([asset]):
                if price_data.ticker == asset.ticker:
                    logger.debug(f"{asset.ticker}: price {price_data.price} from {provider.name}")
                    self._update_cache([price_data])
                    return price_data.price
            logger.debug(f"{asset.ticker}: no price from {provider.name}, trying next provider")

        logger.warning(f"No provider returned a price for {asset.ticker} ({asset.asset_type.value})")
        return None

    def get_historical_price_with_fallback(self, asset: AssetToFetch, on_date: date) -> Decimal | None:
        """Close on or before on_date from the first provider that has one."""
        for provider in self.find_providers_for(asset.asset_type):
            price = provider.fetch_historical_price(asset, on_date)
            if price is not None:
                logger.debug(f"{asset.ticker}@{on_date}: price {price} from {provider.name}")
                return price

        logger.warning(f"No historical price for {asset.ticker} on {on_date}")
        return None

    def fetch_prices_with_fallback(
            self,
            asset_type: AssetType,
            assets: list[AssetToFetch],
    ) -> list[PriceData]:
        """
        Batch variant: each provider only receives the assets still unresolved.

        Returns:
            Prices found, at most one per ticker. Assets no provider could
            price are absent.
        """
        remaining = list(OrderedDict((a.ticker, a) for a in assets if a.asset_type == asset_type).values())
        found: list[PriceData] = []

        for provider in self.find_providers_for(asset_type):
            if not remaining:
                break
            results = provider.fetch_prices(remaining)
            resolved = {p.ticker for p in results}
            found.extend(p for p in results if p.ticker in {a.ticker for a in remaining})
            remaining = [a for a in remaining if a.ticker not in resolved]
            logger.debug(
                f"{provider.name}: resolved {len(resolved)} {asset_type.value} price(s), "
                f"{len(remaining)} left"
            )

        if remaining:
            logger.warning(
                f"No price for {len(remaining)} {asset_type.value} asset(s): "
                + ", ".join(a.ticker for a in remaining)
            )
        self._update_cache(found)
        return found

    # =========================================================================
    # CACHE ACCESS
    # =========================================================================

    def get_price(self, ticker: str) -> Decimal:
        """
        Cached current price, or PRICE_NOT_FOUND when absent.

        PRICE_NOT_FOUND is a sentinel for "unknown", not a real zero price.
        """
        price = self._cache.get(ticker)
        return price if price is not None else PRICE_NOT_FOUND

    def get_cached_price(self, ticker: str) -> Decimal | None:
        return self._cache.get(ticker)

    def get_all_prices(self) -> dict[str, Decimal]:
        return self._cache.snapshot()

    def invalidate_cache(self, ticker: str) -> None:
        if self._cache.invalidate(ticker):
            logger.info(f"Price cache invalidated for {ticker.upper()}")

    def invalidate_all_cache(self) -> None:
        self._cache.clear()
        logger.info("Price cache cleared")

    def _update_cache(self, prices: list[PriceData]) -> None:
        for price_data in prices:
            self._cache.put(price_data.ticker, price_data.price)
            if self._notification_sink is None:
                continue
            try:
                self._notification_sink.broadcast_price(price_data.ticker, price_data.price)
            except Exception as e:
                # Delivery is best-effort
                logger.warning(f"Price notification failed for {price_data.ticker}: {e}")

    # =========================================================================
    # SEARCH
    # =========================================================================

    def search_assets(self, term: str) -> list[AssetSearchResult]:
        """
        Merge search results from every provider, first occurrence wins.

        Duplicates are dropped by (ticker, asset type, market).
        """
        cleaned = term.replace("&", "").strip()
        if not cleaned:
            return []

        merged: OrderedDict[tuple[str, AssetType, Market | None], AssetSearchResult] = OrderedDict()
        for provider in self._providers:
            for result in provider.search(cleaned):
                key = (result.ticker, result.asset_type, result.market)
                merged.setdefault(key, result)
        return list(merged.values())

    # =========================================================================
    # BACKGROUND REFRESH
    # =========================================================================

    def refresh_all_market_data(self) -> Future:
        """
        Start a background refresh of every held asset's price.

        Returns immediately; the Future resolves to the number of prices updated.
        """
        logger.info("Background refresh of all market data requested")
        return self._executor.submit(self.refresh_now)

    def update_prices_for_tickers(
            self,
            tickers: list[str],
            asset_type: AssetType,
            market: Market | None = None,
    ) -> Future:
        """Start a background refresh for specific tickers of one asset type."""
        assets = [AssetToFetch(ticker=t, asset_type=asset_type, market=market) for t in tickers]
        return self._executor.submit(self._refresh_assets, {asset_type: assets})

    def refresh_now(self) -> int:
        """Synchronously refresh every held asset. Used by the scheduler."""
        if self._transaction_store is None:
            logger.warning("No transaction store configured; nothing to refresh")
            return 0
        return self._refresh_assets(self._held_assets_by_type())

    def _held_assets_by_type(self) -> dict[AssetType, list[AssetToFetch]]:
        grouped: dict[AssetType, OrderedDict[AssetToFetch, None]] = {}
        for tx in self._transaction_store.find_all():
            if not tx.ticker or tx.asset_type == AssetType.FIXED_INCOME:
                continue
            asset = AssetToFetch(ticker=tx.ticker, asset_type=tx.asset_type, market=tx.market)
            grouped.setdefault(tx.asset_type, OrderedDict())[asset] = None
        return {asset_type: list(assets) for asset_type, assets in grouped.items()}

    def _refresh_assets(self, assets_by_type: dict[AssetType, list[AssetToFetch]]) -> int:
        with correlation_scope("refresh"):
            total = sum(len(a) for a in assets_by_type.values())
            logger.info(f"Price refresh started for {total} asset(s)")
            updated = 0
            for asset_type, assets in assets_by_type.items():
                if not assets:
                    continue
                updated += len(self.fetch_prices_with_fallback(asset_type, assets))
            logger.info(f"Price refresh finished: {updated}/{total} price(s) updated")
            return updated

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start_scheduler(
            self,
            initial_delay: float | None = None,
            interval: float | None = None,
    ) -> PriceRefreshScheduler:
        """Start the periodic refresh. Call after initialize_providers()."""
        if self._scheduler is None:
            self._scheduler = PriceRefreshScheduler(
                self.refresh_now,
                initial_delay=(
                    initial_delay if initial_delay is not None
                    else settings.price_refresh_initial_delay_seconds
                ),
                interval=interval if interval is not None else settings.price_refresh_interval_seconds,
            )
        self._scheduler.start()
        return self._scheduler

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop the scheduler and the worker pool (if owned)."""
        wait_for = timeout if timeout is not None else settings.scheduler_shutdown_timeout_seconds
        if self._scheduler is not None:
            self._scheduler.stop(timeout=wait_for)
        if self._owns_executor:
            self._executor.shutdown(wait=True, cancel_futures=True)
        logger.info("MarketDataService shut down")
